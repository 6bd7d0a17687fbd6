"""
GitLab service layer.

The single surface the HTTP routes talk to. It composes the REST client, the
project cache, the open-MR pre-check and the batch orchestrator; the latter
two never call each other directly.
"""

import asyncio
import json
from typing import (
    Any,
    AsyncGenerator,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Set,
)

from app.core.exceptions import InvalidRequestError
from app.core.logging import get_logger
from app.core.project_cache import ProjectCache
from app.integrations.gitlab.client import GitLabClient
from app.schemas.gitlab import Branch, MergeRequest, MergeRequestsPage, ProjectsPage
from app.schemas.merge_requests import (
    DEFAULT_TARGET_BRANCH,
    BatchSummary,
    MergeRequestCheck,
    MergeRequestCreateParams,
    MergeRequestResult,
)
from app.services.merge_requests.orchestrator import (
    MergeRequestOrchestrator,
    ProgressCallback,
)
from app.services.merge_requests.precheck import (
    DEFAULT_MAX_CONCURRENCY,
    MergeRequestPrecheck,
)

logger = get_logger(__name__)

# Batches keep running after a stream consumer goes away; hold a reference
# so the task is not garbage collected mid-flight.
_running_batches: Set[asyncio.Task] = set()

SessionExpiredCallback = Callable[[], Awaitable[None]]


class GitLabService:
    def __init__(
        self,
        client: GitLabClient,
        cache: ProjectCache,
        precheck_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        default_target_branch: str = DEFAULT_TARGET_BRANCH,
        on_session_expired: Optional[SessionExpiredCallback] = None,
    ):
        self.client = client
        self.cache = cache
        self.default_target_branch = default_target_branch
        self.on_session_expired = on_session_expired
        self.precheck = MergeRequestPrecheck(client, max_concurrency=precheck_concurrency)
        self.orchestrator = MergeRequestOrchestrator(
            client, default_target_branch=default_target_branch
        )

    # -------------------------------------------------------------------------
    # Projects & branches
    # -------------------------------------------------------------------------

    async def list_projects(
        self,
        page: int = 1,
        per_page: int = 20,
        search: str = "",
        skip_cache: bool = False,
    ) -> ProjectsPage:
        """
        List projects, serving the first unfiltered page from the local cache.

        Only (page=1, search="", skip_cache=False) reads the cache, and only a
        live fetch of page 1 without search writes it. Every other query goes
        straight to GitLab and leaves the cache untouched. A snapshot taken
        with a smaller page size than requested is treated as a miss.
        """
        cacheable = page == 1 and not search
        if cacheable and not skip_cache:
            cached = await self.cache.read()
            if cached is not None and len(cached.projects) < min(
                per_page, cached.total_count
            ):
                logger.debug("Cached snapshot too small for per_page=%d", per_page)
                cached = None
            if cached is not None:
                logger.debug("Serving %d projects from cache", len(cached.projects))
                return ProjectsPage(
                    projects=[p.to_project() for p in cached.projects[:per_page]],
                    total_count=cached.total_count,
                    cached=True,
                )

        result = await self.client.list_projects(page=page, per_page=per_page, search=search)
        if cacheable:
            await self.cache.write(result.projects, total_count=result.total_count)
        return result

    async def list_branches(self, project_id: int) -> List[Branch]:
        return await self.client.list_branches(project_id)

    async def branch_exists(self, project_id: int, branch_name: str) -> bool:
        return await self.client.branch_exists(project_id, branch_name)

    # -------------------------------------------------------------------------
    # Merge requests
    # -------------------------------------------------------------------------

    async def check_merge_requests(
        self, project_ids: List[int], source_branch: str
    ) -> Dict[int, MergeRequestCheck]:
        if not source_branch or not source_branch.strip():
            raise InvalidRequestError("source_branch must not be blank")
        if not project_ids:
            return {}
        checks = await self.precheck.check(project_ids, source_branch)
        await self._expire_session_if_rejected(c.status_code for c in checks.values())
        return checks

    async def close_merge_request(
        self, project_id: int, merge_request_iid: int
    ) -> MergeRequest:
        return await self.precheck.close(project_id, merge_request_iid)

    async def list_merge_requests(
        self,
        state: str = "opened",
        scope: str = "created_by_me",
        page: int = 1,
        per_page: int = 20,
    ) -> MergeRequestsPage:
        return await self.client.list_merge_requests(
            state=state, scope=scope, page=page, per_page=per_page
        )

    async def create_merge_requests(
        self,
        project_ids: List[int],
        params: MergeRequestCreateParams,
        on_progress: Optional[ProgressCallback] = None,
        skip_precheck: bool = False,
    ) -> BatchSummary:
        """
        Run a batch after gating it on the open-MR pre-check.

        Projects that already have an open MR from the source branch are
        reported as failed instead of being submitted, unless *skip_precheck*.
        A 401 from any project logs the session out once the batch is done.
        """
        # Reject a blank target before the pre-check touches GitLab
        params.target_spec(default=self.default_target_branch)

        blocked: Dict[int, MergeRequest] = {}
        checks: Dict[int, MergeRequestCheck] = {}
        if project_ids and not skip_precheck:
            checks = await self.precheck.check(project_ids, params.source_branch)
            blocked = {
                pid: check.merge_request
                for pid, check in checks.items()
                if check.has_merge_request and check.merge_request is not None
            }
            if blocked:
                logger.info(
                    "Skipping %d projects with an open MR from %s",
                    len(blocked),
                    params.source_branch,
                )

        results = await self.orchestrator.run(
            project_ids, params, on_progress=on_progress, blocked=blocked
        )
        await self._expire_session_if_rejected(
            [c.status_code for c in checks.values()] + [r.status_code for r in results]
        )
        return BatchSummary.from_results(results)

    async def _expire_session_if_rejected(
        self, status_codes: Iterable[Optional[int]]
    ) -> None:
        # Per-project errors never reach the HTTP error handler, so a revoked
        # token has to be detected here
        if 401 not in set(status_codes) or self.on_session_expired is None:
            return
        logger.warning("GitLab rejected the token during a batch; logging out")
        await self.on_session_expired()

    async def stream_merge_requests(
        self,
        project_ids: List[int],
        params: MergeRequestCreateParams,
        skip_precheck: bool = False,
    ) -> AsyncGenerator[Dict[str, Any], None]:
        """
        Run a batch and yield Server-Sent Event dicts as it progresses.

        Yields one ``progress`` event per project, in submission order, then a
        single ``complete`` event carrying the BatchSummary (or an ``error``
        event if the batch itself could not run).
        """
        queue: asyncio.Queue = asyncio.Queue()

        async def on_progress(result: MergeRequestResult) -> None:
            await queue.put(("progress", result))

        async def run_batch() -> None:
            try:
                summary = await self.create_merge_requests(
                    project_ids, params, on_progress=on_progress, skip_precheck=skip_precheck
                )
            except Exception as e:
                logger.error("Batch stream failed: %s", e, exc_info=True)
                await queue.put(("error", {"error": str(e)}))
            else:
                await queue.put(("complete", summary))

        task = asyncio.create_task(run_batch())
        _running_batches.add(task)
        task.add_done_callback(_running_batches.discard)

        while True:
            event, payload = await queue.get()
            if isinstance(payload, dict):
                data = json.dumps(payload)
            else:
                data = payload.model_dump_json()
            yield {"event": event, "data": data}
            if event in ("complete", "error"):
                break
