from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.config import settings
from app.core.credentials import get_credential_store
from app.core.logging import get_logger, setup_logging
from app.core.valkey import close_valkey

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Lifespan function for the FastAPI application.
    Handles startup and shutdown events for application services.
    """
    # 1. Logging
    setup_logging(settings.LOG_LEVEL)

    # 2. Load persisted credential state
    store = get_credential_store()
    token = await store.get()
    logger.info(
        "%s starting against %s (stored token: %s)",
        settings.PROJECT_NAME,
        settings.GITLAB_API_URL,
        "yes" if token else "no",
    )

    yield

    # 3. Close Valkey/Redis connection (no-op when unused)
    await close_valkey()
    logger.info("%s stopped", settings.PROJECT_NAME)
