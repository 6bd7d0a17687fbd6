"""
Batch merge request creation.

Creates one merge request per selected project from a shared set of
parameters. Each project is handled in isolation: a failure is recorded as
that project's result and the batch carries on. A batch that ends with some
projects created and others failed is a normal outcome, nothing is rolled
back.
"""

import inspect
from typing import Awaitable, Callable, List, Mapping, Optional, Sequence, Union

from app.core.exceptions import upstream_status
from app.core.logging import get_logger
from app.integrations.gitlab.client import GitLabClient
from app.schemas.gitlab import MergeRequest
from app.schemas.merge_requests import (
    DEFAULT_TARGET_BRANCH,
    MergeRequestCreateParams,
    MergeRequestResult,
    TargetSpec,
)

logger = get_logger(__name__)

ProgressCallback = Callable[[MergeRequestResult], Union[None, Awaitable[None]]]


def fallback_project_name(project_id: int) -> str:
    return f"Project {project_id}"


class MergeRequestOrchestrator:
    def __init__(
        self, client: GitLabClient, default_target_branch: str = DEFAULT_TARGET_BRANCH
    ):
        self.client = client
        self.default_target_branch = default_target_branch

    async def run(
        self,
        project_ids: Sequence[int],
        params: MergeRequestCreateParams,
        on_progress: Optional[ProgressCallback] = None,
        blocked: Optional[Mapping[int, MergeRequest]] = None,
    ) -> List[MergeRequestResult]:
        """
        Create merge requests for every project in *project_ids*.

        Projects are processed one after another, so results come back in
        submission order. Every project yields exactly one result.

        Args:
            project_ids: Projects to submit, in order
            params: Shared source/target/title/description/flags
            on_progress: Called with each result as soon as it is known
            blocked: Projects that already have an open MR from the source
                branch; these are recorded as failures without a create call

        Returns:
            One MergeRequestResult per submitted project id
        """
        results: List[MergeRequestResult] = []
        if not project_ids:
            return results

        target = params.target_spec(default=self.default_target_branch)
        blocked = blocked or {}

        logger.info(
            "Starting batch of %d merge requests from %s",
            len(project_ids),
            params.source_branch,
        )

        for project_id in project_ids:
            result = await self._run_one(project_id, params, target, blocked)
            results.append(result)
            await self._notify(on_progress, result)

        succeeded = sum(1 for r in results if r.success)
        logger.info(
            "Batch finished: %d succeeded, %d failed",
            succeeded,
            len(results) - succeeded,
        )
        return results

    async def _run_one(
        self,
        project_id: int,
        params: MergeRequestCreateParams,
        target: TargetSpec,
        blocked: Mapping[int, MergeRequest],
    ) -> MergeRequestResult:
        # 1. Resolve the display name; without it the project cannot be reported properly
        try:
            project = await self.client.get_project(project_id)
        except Exception as e:
            logger.warning("Could not fetch project %s: %s", project_id, e)
            return MergeRequestResult(
                project_id=project_id,
                project_name=fallback_project_name(project_id),
                success=False,
                error=str(e) or type(e).__name__,
                status_code=upstream_status(e),
            )

        # 2. Never open a second MR from the same source branch
        existing = blocked.get(project_id)
        if existing is not None:
            return MergeRequestResult(
                project_id=project_id,
                project_name=project.name,
                success=False,
                error=(
                    f"Open merge request !{existing.iid} already exists "
                    f"for source branch {params.source_branch}"
                ),
            )

        # 3. Create against the project's effective target branch
        target_branch = target.resolve(project_id)
        try:
            merge_request = await self.client.create_merge_request(
                project_id,
                source_branch=params.source_branch,
                target_branch=target_branch,
                title=params.title,
                description=params.description,
                remove_source_branch=params.remove_source_branch,
                squash=params.squash,
            )
        except Exception as e:
            logger.warning(
                "Merge request creation failed for %s (%s -> %s): %s",
                project.name,
                params.source_branch,
                target_branch,
                e,
            )
            return MergeRequestResult(
                project_id=project_id,
                project_name=project.name,
                success=False,
                error=str(e) or type(e).__name__,
                status_code=upstream_status(e),
            )

        logger.info("Created merge request !%s in %s", merge_request.iid, project.name)
        return MergeRequestResult(
            project_id=project_id,
            project_name=project.name,
            success=True,
            merge_request=merge_request,
        )

    @staticmethod
    async def _notify(
        on_progress: Optional[ProgressCallback], result: MergeRequestResult
    ) -> None:
        if on_progress is None:
            return
        try:
            outcome = on_progress(result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error("Progress callback failed for project %s: %s", result.project_id, e)
