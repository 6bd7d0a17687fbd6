"""
GitLab REST API client.

One method per capability the merge request workflow needs. Every call is a
single request/response: no retries, no caching, and failures propagate to
the caller as ``GitLabAPIError`` (non-2xx) or ``httpx.HTTPError`` (transport).
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from app.core.exceptions import GitLabAPIError, MissingCredentialError
from app.schemas.gitlab import (
    Branch,
    MergeRequest,
    MergeRequestsPage,
    Project,
    ProjectsPage,
)

DEFAULT_API_URL = "https://gitlab.com/api/v4"

# Developer access or higher (can create merge requests)
MIN_ACCESS_LEVEL = 30


class GitLabClient:
    """Client for interacting with the GitLab REST API (v4)."""

    def __init__(
        self,
        token: Optional[str],
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize GitLab client.

        Args:
            token: GitLab personal access token
            base_url: API root, e.g. "https://gitlab.example.com/api/v4"
            timeout: Transport timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "Release-MR-Orchestrator/1.0",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        if not self.token:
            raise MissingCredentialError()

        async with self._client() as client:
            response = await client.request(method, path, params=params, json=json)

        if not response.is_success:
            raise GitLabAPIError(
                status_code=response.status_code,
                reason=response.reason_phrase,
                body=response.text,
            )
        return response

    @staticmethod
    def _total_count(response: httpx.Response, items: List[Any]) -> int:
        header = response.headers.get("x-total")
        if header:
            try:
                return int(header)
            except ValueError:
                pass
        return len(items)

    # -------------------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------------------

    async def list_projects(
        self, page: int = 1, per_page: int = 20, search: str = ""
    ) -> ProjectsPage:
        """
        List projects the token owner can open merge requests in.

        Only member/owned projects with repository access enabled and at
        least Developer access are returned, most recently active first.

        Args:
            page: 1-based page number
            per_page: Page size
            search: Optional free-text filter

        Returns:
            ProjectsPage with the total taken from the x-total header
        """
        params: Dict[str, Any] = {
            "page": page,
            "per_page": per_page,
            "order_by": "last_activity_at",
            "sort": "desc",
            "membership": "true",
            "owned": "true",
            "min_access_level": MIN_ACCESS_LEVEL,
            "repository_access_level": "enabled",
        }
        if search:
            params["search"] = search

        response = await self._request("GET", "/projects", params=params)
        data = response.json()
        return ProjectsPage(
            projects=[Project.model_validate(item) for item in data],
            total_count=self._total_count(response, data),
        )

    async def get_project(self, project_id: int) -> Project:
        """Fetch a single project."""
        response = await self._request("GET", f"/projects/{project_id}")
        return Project.model_validate(response.json())

    # -------------------------------------------------------------------------
    # Branches
    # -------------------------------------------------------------------------

    async def list_branches(self, project_id: int) -> List[Branch]:
        """List the repository branches of a project."""
        response = await self._request(
            "GET", f"/projects/{project_id}/repository/branches"
        )
        return [Branch.model_validate(item) for item in response.json()]

    async def branch_exists(self, project_id: int, branch_name: str) -> bool:
        """
        Check whether a branch exists.

        Only a 404 means "does not exist"; any other error is raised.
        """
        try:
            await self._request(
                "GET",
                f"/projects/{project_id}/repository/branches/{quote(branch_name, safe='')}",
            )
        except GitLabAPIError as e:
            if e.is_not_found:
                return False
            raise
        return True

    # -------------------------------------------------------------------------
    # Merge requests
    # -------------------------------------------------------------------------

    async def list_open_merge_requests(
        self, project_id: int, source_branch: str
    ) -> List[MergeRequest]:
        """List open merge requests of a project whose source is *source_branch*."""
        response = await self._request(
            "GET",
            f"/projects/{project_id}/merge_requests",
            params={"state": "opened", "source_branch": source_branch},
        )
        return [MergeRequest.model_validate(item) for item in response.json()]

    async def close_merge_request(
        self, project_id: int, merge_request_iid: int
    ) -> MergeRequest:
        """Transition a merge request to the closed state."""
        response = await self._request(
            "PUT",
            f"/projects/{project_id}/merge_requests/{merge_request_iid}",
            json={"state_event": "close"},
        )
        return MergeRequest.model_validate(response.json())

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
        """
        Create a merge request in one project.

        Returns:
            The created merge request
        """
        body = {
            "source_branch": source_branch,
            "target_branch": target_branch,
            "title": title,
            "description": description or "",
            "remove_source_branch": bool(remove_source_branch),
            "squash": bool(squash),
        }
        response = await self._request(
            "POST", f"/projects/{project_id}/merge_requests", json=body
        )
        return MergeRequest.model_validate(response.json())

    async def list_merge_requests(
        self,
        state: str = "opened",
        scope: str = "created_by_me",
        page: int = 1,
        per_page: int = 20,
    ) -> MergeRequestsPage:
        """List merge requests across every project visible to the token."""
        response = await self._request(
            "GET",
            "/merge_requests",
            params={
                "state": state,
                "scope": scope,
                "page": page,
                "per_page": per_page,
            },
        )
        data = response.json()
        return MergeRequestsPage(
            merge_requests=[MergeRequest.model_validate(item) for item in data],
            total_count=self._total_count(response, data),
        )
