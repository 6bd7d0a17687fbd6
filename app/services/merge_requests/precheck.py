"""
Open merge request pre-check.

Before a batch is submitted, every selected project is asked whether it
already has an open merge request from the batch's source branch. The check
is advisory: a project whose lookup fails is reported as having none.
"""

import asyncio
from typing import Dict, Iterable

from app.core.exceptions import upstream_status
from app.core.logging import get_logger
from app.integrations.gitlab.client import GitLabClient
from app.schemas.gitlab import MergeRequest
from app.schemas.merge_requests import MergeRequestCheck

logger = get_logger(__name__)

DEFAULT_MAX_CONCURRENCY = 10


class MergeRequestPrecheck:
    def __init__(
        self, client: GitLabClient, max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    ):
        self.client = client
        self.max_concurrency = max(1, max_concurrency)

    async def check(
        self, project_ids: Iterable[int], source_branch: str
    ) -> Dict[int, MergeRequestCheck]:
        """
        Look up open merge requests for *source_branch* in every project.

        Lookups run concurrently, at most ``max_concurrency`` at a time.

        Args:
            project_ids: Projects to check (duplicates collapse)
            source_branch: Exact source branch name

        Returns:
            One MergeRequestCheck per distinct project id
        """
        unique_ids = list(dict.fromkeys(project_ids))
        results: Dict[int, MergeRequestCheck] = {}
        if not unique_ids:
            return results

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def check_one(project_id: int) -> None:
            async with semaphore:
                try:
                    merge_requests = await self.client.list_open_merge_requests(
                        project_id, source_branch
                    )
                except Exception as e:
                    logger.warning(
                        "Open MR lookup failed for project %s, treating as none: %s",
                        project_id,
                        e,
                    )
                    results[project_id] = MergeRequestCheck(
                        project_id=project_id,
                        has_merge_request=False,
                        status_code=upstream_status(e),
                    )
                    return

            first = merge_requests[0] if merge_requests else None
            results[project_id] = MergeRequestCheck(
                project_id=project_id,
                has_merge_request=first is not None,
                merge_request=first,
            )

        await asyncio.gather(*(check_one(pid) for pid in unique_ids))

        found = sum(1 for c in results.values() if c.has_merge_request)
        logger.info(
            "Pre-check for %s: %d of %d projects have an open MR",
            source_branch,
            found,
            len(unique_ids),
        )
        # Report in input order
        return {pid: results[pid] for pid in unique_ids}

    async def close(self, project_id: int, merge_request_iid: int) -> MergeRequest:
        """Close a merge request. Re-run check() to observe the new state."""
        merge_request = await self.client.close_merge_request(
            project_id, merge_request_iid
        )
        logger.info("Closed merge request !%s in project %s", merge_request_iid, project_id)
        return merge_request
