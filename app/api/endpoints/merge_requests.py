from typing import Dict

from fastapi import APIRouter, Query
from sse_starlette.sse import EventSourceResponse

from app.dependencies.gitlab import GitLabServiceDep
from app.schemas.gitlab import MergeRequest, MergeRequestsPage
from app.schemas.merge_requests import (
    BatchSummary,
    CheckMergeRequestsRequest,
    CreateMergeRequestsRequest,
    MergeRequestCheck,
)

router = APIRouter()


@router.get("", response_model=MergeRequestsPage)
async def list_merge_requests(
    service: GitLabServiceDep,
    state: str = Query("opened"),
    scope: str = Query("created_by_me"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
):
    """List merge requests across every accessible project."""
    return await service.list_merge_requests(
        state=state, scope=scope, page=page, per_page=per_page
    )


@router.post("/check", response_model=Dict[int, MergeRequestCheck])
async def check_merge_requests(
    body: CheckMergeRequestsRequest, service: GitLabServiceDep
):
    """Report, per project, whether an open MR from the source branch exists."""
    return await service.check_merge_requests(body.project_ids, body.source_branch)


@router.post("/create", response_model=BatchSummary)
async def create_merge_requests(
    body: CreateMergeRequestsRequest, service: GitLabServiceDep
):
    """Create merge requests in every selected project and return all results."""
    return await service.create_merge_requests(
        body.project_ids, body.to_params(), skip_precheck=body.skip_precheck
    )


@router.post("/create/stream")
async def stream_merge_requests(
    body: CreateMergeRequestsRequest, service: GitLabServiceDep
):
    """
    Same as /create, streamed as Server-Sent Events.

    Emits one "progress" event per project as it settles, then "complete"
    with the batch summary.
    """
    return EventSourceResponse(
        service.stream_merge_requests(
            body.project_ids, body.to_params(), skip_precheck=body.skip_precheck
        )
    )


@router.post("/{project_id}/{merge_request_iid}/close", response_model=MergeRequest)
async def close_merge_request(
    project_id: int, merge_request_iid: int, service: GitLabServiceDep
):
    """Close an existing merge request. Re-run /check to see the new state."""
    return await service.close_merge_request(project_id, merge_request_iid)
