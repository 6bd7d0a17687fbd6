from fastapi import APIRouter
from app.api.endpoints import (
    auth_router,
    health_router,
    merge_requests_router,
    projects_router,
)

router = APIRouter(prefix="/api/v1")

router.include_router(health_router, prefix="/health", tags=["health"])
router.include_router(auth_router, prefix="/auth", tags=["auth"])
router.include_router(projects_router, prefix="/projects", tags=["projects"])
router.include_router(
    merge_requests_router, prefix="/merge-requests", tags=["merge-requests"]
)
