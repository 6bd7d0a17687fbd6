from .auth import router as auth_router
from .health import router as health_router
from .merge_requests import router as merge_requests_router
from .projects import router as projects_router

__all__ = ["auth_router", "health_router", "merge_requests_router", "projects_router"]
