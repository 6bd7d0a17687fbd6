"""
Merge request workflow DTOs: batch parameters, pre-check facts and per-project
outcomes.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.core.exceptions import InvalidRequestError
from app.schemas.gitlab import MergeRequest

DEFAULT_TARGET_BRANCH = "main"


# -----------------------------------------------------------------------------
# Target branch specification
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class UniformTarget:
    """Same target branch for every project in the batch."""

    branch: str

    def resolve(self, project_id: int) -> str:
        return self.branch


@dataclass(frozen=True)
class PerProjectTarget:
    """Target branch chosen per project, with an explicit fallback."""

    branches: Dict[int, str] = field(default_factory=dict)
    default: str = DEFAULT_TARGET_BRANCH

    def resolve(self, project_id: int) -> str:
        return self.branches.get(project_id) or self.default


TargetSpec = Union[UniformTarget, PerProjectTarget]


def require_text(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("must not be blank")
    return value


# -----------------------------------------------------------------------------
# Batch input
# -----------------------------------------------------------------------------


class MergeRequestCreateParams(BaseModel):
    """
    Parameters shared by every project of a batch.

    ``target_branch`` is either one branch name for all projects or a map of
    project id to branch name.
    """

    source_branch: str
    target_branch: Union[str, Dict[int, str]]
    title: str
    description: Optional[str] = None
    remove_source_branch: bool = False
    squash: bool = False

    @field_validator("source_branch", "title")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        return require_text(value)

    @model_validator(mode="after")
    def _uniform_target_not_blank(self) -> "MergeRequestCreateParams":
        if isinstance(self.target_branch, str) and not self.target_branch.strip():
            raise ValueError("target_branch must not be blank")
        return self

    def target_spec(self, default: str = DEFAULT_TARGET_BRANCH) -> TargetSpec:
        if isinstance(self.target_branch, str):
            if not self.target_branch.strip():
                raise InvalidRequestError("target_branch must not be blank")
            return UniformTarget(self.target_branch)
        return PerProjectTarget(branches=dict(self.target_branch), default=default)


class CreateMergeRequestsRequest(MergeRequestCreateParams):
    """Body of the batch creation endpoints."""

    project_ids: List[int]
    skip_precheck: bool = Field(
        default=False,
        description="Submit even for projects that already have an open MR.",
    )

    def to_params(self) -> MergeRequestCreateParams:
        return MergeRequestCreateParams(
            **self.model_dump(exclude={"project_ids", "skip_precheck"})
        )


class CheckMergeRequestsRequest(BaseModel):
    """Body of the pre-check endpoint."""

    project_ids: List[int]
    source_branch: str

    @field_validator("source_branch")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        return require_text(value)


# -----------------------------------------------------------------------------
# Outcomes
# -----------------------------------------------------------------------------


class MergeRequestCheck(BaseModel):
    """Whether a project already has an open MR for the source branch."""

    project_id: int
    has_merge_request: bool
    merge_request: Optional[MergeRequest] = None
    status_code: Optional[int] = Field(
        default=None, description="GitLab status of a failed lookup."
    )


class MergeRequestResult(BaseModel):
    """Outcome of one project's creation attempt."""

    model_config = ConfigDict(frozen=True)

    project_id: int
    project_name: str
    success: bool
    merge_request: Optional[MergeRequest] = None
    error: Optional[str] = None
    status_code: Optional[int] = Field(
        default=None, description="GitLab status when the failure came from the API."
    )


class BatchSummary(BaseModel):
    """All results of a batch plus success/failure counts."""

    results: List[MergeRequestResult]
    total: int
    succeeded: int
    failed: int

    @classmethod
    def from_results(cls, results: List[MergeRequestResult]) -> "BatchSummary":
        succeeded = sum(1 for r in results if r.success)
        return cls(
            results=results,
            total=len(results),
            succeeded=succeeded,
            failed=len(results) - succeeded,
        )
