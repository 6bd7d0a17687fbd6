from typing import List

from fastapi import APIRouter, Query

from app.dependencies.gitlab import GitLabServiceDep
from app.schemas.gitlab import Branch, ProjectsPage

router = APIRouter()


@router.get("", response_model=ProjectsPage)
async def list_projects(
    service: GitLabServiceDep,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    search: str = Query(""),
    skip_cache: bool = Query(False),
):
    """List projects with pagination; page 1 without search may come from cache."""
    return await service.list_projects(
        page=page, per_page=per_page, search=search.strip(), skip_cache=skip_cache
    )


@router.get("/{project_id}/branches", response_model=List[Branch])
async def list_branches(project_id: int, service: GitLabServiceDep):
    return await service.list_branches(project_id)


@router.get("/{project_id}/branches/{branch_name:path}/exists")
async def branch_exists(project_id: int, branch_name: str, service: GitLabServiceDep):
    return {"exists": await service.branch_exists(project_id, branch_name)}
