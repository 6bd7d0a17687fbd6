from fastapi import APIRouter
from pydantic import BaseModel

from app.dependencies.gitlab import AuthServiceDep

router = APIRouter()


class ValidateTokenRequest(BaseModel):
    token: str
    use_session_storage: bool = False


@router.post("/validate")
async def validate_token(body: ValidateTokenRequest, service: AuthServiceDep):
    """
    Validate a GitLab personal access token and remember it.

    Returns {"success": true} or {"success": false, "error": "Invalid token"}.
    """
    return await service.validate_token(
        body.token, use_session_storage=body.use_session_storage
    )


@router.post("/logout")
async def logout(service: AuthServiceDep):
    """Forget the stored token and the project cache."""
    await service.logout()
    return {"success": True}


@router.get("/status")
async def auth_status(service: AuthServiceDep):
    return await service.status()
