from fastapi import APIRouter

from app.core.config import settings

router = APIRouter()


@router.get("")
def health_check():
    """
    Check the health of the API.
    """
    return {"status": "ok", "service": settings.PROJECT_NAME}
