"""
GitLab resource DTOs.

These mirror the subset of the GitLab v4 payloads the service reads. Unknown
upstream fields are ignored.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProjectNamespace(BaseModel):
    """Namespace (group or user) owning a project."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""


class Project(BaseModel):
    """
    A GitLab project as returned by ``GET /projects``.

    Identity is ``id``. Snapshots are never mutated locally.
    """

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    description: Optional[str] = None
    web_url: str = ""
    avatar_url: Optional[str] = None
    namespace: ProjectNamespace = Field(default_factory=ProjectNamespace)
    star_count: int = 0
    visibility: str = "private"
    default_branch: Optional[str] = Field(
        default=None, description="None for projects with an empty repository."
    )
    last_activity_at: Optional[datetime] = None

    @property
    def namespace_name(self) -> str:
        return self.namespace.name


class Branch(BaseModel):
    """A repository branch. Identity is (project_id, name)."""

    model_config = ConfigDict(extra="ignore")

    name: str
    merged: bool = False
    protected: bool = False
    default: bool = False
    web_url: str = ""


class MergeRequest(BaseModel):
    """
    A merge request.

    ``id`` is globally unique; ``iid`` is the per-project number used in API
    paths and shown to users as ``!iid``.
    """

    model_config = ConfigDict(extra="ignore")

    id: int
    iid: int
    project_id: int
    title: str
    description: Optional[str] = ""
    state: Literal["opened", "merged", "closed", "locked"] = "opened"
    web_url: str = ""
    created_at: Optional[datetime] = None


class ProjectsPage(BaseModel):
    """One page of the project listing."""

    projects: List[Project]
    total_count: int
    cached: bool = Field(
        default=False, description="True when served from the local project cache."
    )


class MergeRequestsPage(BaseModel):
    """One page of the cross-project merge request listing."""

    merge_requests: List[MergeRequest]
    total_count: int
