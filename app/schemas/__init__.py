"""
Schema and DTO package.
"""

from app.schemas.gitlab import (
    Branch,
    MergeRequest,
    MergeRequestsPage,
    Project,
    ProjectsPage,
)
from app.schemas.merge_requests import (
    BatchSummary,
    MergeRequestCheck,
    MergeRequestCreateParams,
    MergeRequestResult,
)

__all__ = [
    "Branch",
    "MergeRequest",
    "MergeRequestsPage",
    "Project",
    "ProjectsPage",
    "BatchSummary",
    "MergeRequestCheck",
    "MergeRequestCreateParams",
    "MergeRequestResult",
]
