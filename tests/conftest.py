"""Shared fixtures for the merge request workflow tests.

Provides an in-memory stand-in for GitLabClient so services can be exercised
without a GitLab instance, plus a controllable clock for cache expiry.
"""

import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from app.core.credentials import CredentialStore
from app.core.exceptions import GitLabAPIError
from app.core.project_cache import ProjectCache
from app.core.storage import MemoryStore
from app.schemas.gitlab import (
    Branch,
    MergeRequest,
    MergeRequestsPage,
    Project,
    ProjectNamespace,
    ProjectsPage,
)


def make_project(project_id: int, name: Optional[str] = None) -> Project:
    return Project(
        id=project_id,
        name=name or f"service-{project_id}",
        description=f"Service {project_id}",
        web_url=f"https://gitlab.example.com/acme/service-{project_id}",
        namespace=ProjectNamespace(name="acme"),
        star_count=project_id,
        visibility="private",
        default_branch="main",
    )


def make_merge_request(
    project_id: int,
    iid: int = 1,
    source_branch: str = "develop",
    state: str = "opened",
) -> MergeRequest:
    return MergeRequest(
        id=project_id * 1000 + iid,
        iid=iid,
        project_id=project_id,
        title=f"Release {source_branch}",
        description="",
        state=state,
        web_url=f"https://gitlab.example.com/acme/service-{project_id}/-/merge_requests/{iid}",
    )


class FakeGitLabClient:
    """In-memory GitLabClient replacement.

    Attributes:
        projects: Projects returned by get_project/list_projects.
        open_merge_requests: Open MRs keyed by (project_id, source_branch).
        get_project_errors: Exceptions raised by get_project, per project.
        create_errors: Exceptions raised by create_merge_request, per project.
        lookup_errors: Exceptions raised by list_open_merge_requests, per project.
        create_calls: kwargs of every create_merge_request call.
    """

    def __init__(self, projects: Optional[List[Project]] = None):
        self.projects: Dict[int, Project] = {p.id: p for p in projects or []}
        self.branches: Dict[int, List[Branch]] = {}
        self.open_merge_requests: Dict[Tuple[int, str], List[MergeRequest]] = {}
        self.get_project_errors: Dict[int, Exception] = {}
        self.create_errors: Dict[int, Exception] = {}
        self.lookup_errors: Dict[int, Exception] = {}
        self.list_projects_error: Optional[Exception] = None
        self.create_calls: List[dict] = []
        self.lookup_calls: List[Tuple[int, str]] = []
        self.list_projects_calls: List[dict] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._next_iid = 100

    async def list_projects(
        self, page: int = 1, per_page: int = 20, search: str = ""
    ) -> ProjectsPage:
        self.list_projects_calls.append(
            {"page": page, "per_page": per_page, "search": search}
        )
        if self.list_projects_error is not None:
            raise self.list_projects_error
        projects = [p for p in self.projects.values() if search in p.name]
        start = (page - 1) * per_page
        return ProjectsPage(
            projects=projects[start : start + per_page], total_count=len(projects)
        )

    async def get_project(self, project_id: int) -> Project:
        if project_id in self.get_project_errors:
            raise self.get_project_errors[project_id]
        if project_id not in self.projects:
            raise GitLabAPIError(404, "Not Found", '{"message":"404 Project Not Found"}')
        return self.projects[project_id]

    async def list_branches(self, project_id: int) -> List[Branch]:
        return self.branches.get(project_id, [])

    async def branch_exists(self, project_id: int, branch_name: str) -> bool:
        return any(b.name == branch_name for b in self.branches.get(project_id, []))

    async def list_open_merge_requests(
        self, project_id: int, source_branch: str
    ) -> List[MergeRequest]:
        self.lookup_calls.append((project_id, source_branch))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if project_id in self.lookup_errors:
                raise self.lookup_errors[project_id]
            return [
                mr
                for mr in self.open_merge_requests.get((project_id, source_branch), [])
                if mr.state == "opened"
            ]
        finally:
            self.in_flight -= 1

    async def close_merge_request(
        self, project_id: int, merge_request_iid: int
    ) -> MergeRequest:
        for key, mrs in self.open_merge_requests.items():
            if key[0] != project_id:
                continue
            for index, mr in enumerate(mrs):
                if mr.iid == merge_request_iid:
                    closed = mr.model_copy(update={"state": "closed"})
                    mrs[index] = closed
                    return closed
        raise GitLabAPIError(404, "Not Found", '{"message":"404 Not found"}')

    async def create_merge_request(
        self,
        project_id: int,
        source_branch: str,
        target_branch: str,
        title: str,
        description: Optional[str] = None,
        remove_source_branch: bool = False,
        squash: bool = False,
    ) -> MergeRequest:
        self.create_calls.append(
            {
                "project_id": project_id,
                "source_branch": source_branch,
                "target_branch": target_branch,
                "title": title,
                "description": description,
                "remove_source_branch": remove_source_branch,
                "squash": squash,
            }
        )
        if project_id in self.create_errors:
            raise self.create_errors[project_id]
        self._next_iid += 1
        merge_request = make_merge_request(
            project_id, iid=self._next_iid, source_branch=source_branch
        )
        self.open_merge_requests.setdefault((project_id, source_branch), []).append(
            merge_request
        )
        return merge_request

    async def list_merge_requests(
        self,
        state: str = "opened",
        scope: str = "created_by_me",
        page: int = 1,
        per_page: int = 20,
    ) -> MergeRequestsPage:
        merge_requests = [
            mr
            for mrs in self.open_merge_requests.values()
            for mr in mrs
            if mr.state == state
        ]
        return MergeRequestsPage(
            merge_requests=merge_requests[(page - 1) * per_page : page * per_page],
            total_count=len(merge_requests),
        )


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_client() -> FakeGitLabClient:
    return FakeGitLabClient([make_project(pid) for pid in (1, 2, 3)])


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def project_cache(clock) -> ProjectCache:
    return ProjectCache(MemoryStore(), ttl_seconds=60, clock=clock)


@pytest.fixture
def credential_store(project_cache) -> CredentialStore:
    return CredentialStore(
        persistent=MemoryStore(), session=MemoryStore(), cache=project_cache
    )
