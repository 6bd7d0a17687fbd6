from dotenv import load_dotenv

import httpx
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.api_v1 import router as api_v1
from app.core.config import settings
from app.core.credentials import get_credential_store
from app.core.exceptions import (
    GitLabAPIError,
    InvalidRequestError,
    MissingCredentialError,
)
from app.core.lifespan import lifespan
from app.core.logging import get_logger

load_dotenv()  # Load .env variables into os.environ

logger = get_logger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Create GitLab merge requests across many projects in one batch",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -----------------------------------------------------------------------------
# Error handling
# -----------------------------------------------------------------------------


@app.exception_handler(GitLabAPIError)
async def gitlab_api_error_handler(request: Request, exc: GitLabAPIError):
    logger.error("[%s %s] %s", request.method, request.url.path, exc)
    if exc.is_unauthorized:
        # Token expired or revoked: force a logout
        await get_credential_store().clear()
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "GitLab API error", "message": str(exc)},
    )


@app.exception_handler(MissingCredentialError)
async def missing_credential_handler(request: Request, exc: MissingCredentialError):
    return JSONResponse(status_code=401, content={"error": str(exc)})


@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(request: Request, exc: InvalidRequestError):
    return JSONResponse(
        status_code=400, content={"error": "Validation error", "details": str(exc)}
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Validation error", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(httpx.HTTPError)
async def transport_error_handler(request: Request, exc: httpx.HTTPError):
    logger.error("[%s %s] GitLab unreachable: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=502, content={"error": "GitLab unreachable", "message": str(exc)}
    )


@app.get("/")
def root():
    return {"status": "ok"}


app.include_router(api_v1)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
