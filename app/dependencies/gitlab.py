"""
GitLab Dependencies
"""

from typing import Annotated, Optional

from fastapi import Depends, Header

from app.core.config import settings
from app.core.credentials import CredentialStore, get_credential_store
from app.core.exceptions import MissingCredentialError
from app.integrations.gitlab.client import GitLabClient
from app.services.auth import AuthService
from app.services.gitlab_service import GitLabService

CredentialStoreDep = Annotated[CredentialStore, Depends(get_credential_store)]


def build_gitlab_client(token: Optional[str]) -> GitLabClient:
    """Build a client against the configured GitLab instance."""
    return GitLabClient(
        token,
        base_url=settings.GITLAB_API_URL,
        timeout=settings.GITLAB_TIMEOUT_SECONDS,
    )


def get_client_factory():
    return build_gitlab_client


async def get_token(
    credentials: CredentialStoreDep,
    authorization: Optional[str] = Header(default=None),
) -> str:
    """Bearer token from the request, else the stored one."""
    if authorization:
        scheme, _, value = authorization.partition(" ")
        token = value.strip() if scheme.lower() == "bearer" else authorization.strip()
        if token:
            return token

    token = await credentials.get()
    if not token:
        raise MissingCredentialError()
    return token


def get_gitlab_client(
    token: Annotated[str, Depends(get_token)],
    client_factory=Depends(get_client_factory),
) -> GitLabClient:
    return client_factory(token)


def get_gitlab_service(
    client: Annotated[GitLabClient, Depends(get_gitlab_client)],
    credentials: CredentialStoreDep,
) -> GitLabService:
    """Get GitLab service (Dependency Injection)."""
    return GitLabService(
        client,
        cache=credentials.cache,
        precheck_concurrency=settings.PRECHECK_MAX_CONCURRENCY,
        default_target_branch=settings.DEFAULT_TARGET_BRANCH,
        on_session_expired=credentials.clear,
    )


def get_auth_service(
    credentials: CredentialStoreDep,
    client_factory=Depends(get_client_factory),
) -> AuthService:
    return AuthService(credentials, client_factory)


GitLabServiceDep = Annotated[GitLabService, Depends(get_gitlab_service)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
