"""Token validation and login/logout against the credential store."""

from typing import Callable, Dict, Optional

import httpx

from app.core.credentials import CredentialStore
from app.core.exceptions import GitLabAPIError, MissingCredentialError
from app.core.logging import get_logger
from app.integrations.gitlab.client import GitLabClient

logger = get_logger(__name__)

ClientFactory = Callable[[Optional[str]], GitLabClient]


class AuthService:
    def __init__(self, credentials: CredentialStore, client_factory: ClientFactory):
        self.credentials = credentials
        self.client_factory = client_factory

    async def validate_token(
        self, token: str, use_session_storage: bool = False
    ) -> Dict[str, object]:
        """
        Check a personal access token by listing a single project.

        A valid token is stored (replacing any previous one); an invalid one
        leaves the store untouched.
        """
        token = (token or "").strip()
        if not token:
            return {"success": False, "error": "Invalid token"}

        try:
            await self.client_factory(token).list_projects(page=1, per_page=1)
        except (GitLabAPIError, MissingCredentialError, httpx.HTTPError) as e:
            logger.warning("Token validation failed: %s", e)
            return {"success": False, "error": "Invalid token"}

        await self.credentials.cache.clear()
        await self.credentials.save(token, use_session_storage=use_session_storage)
        return {"success": True}

    async def logout(self) -> None:
        await self.credentials.clear()

    async def status(self) -> Dict[str, object]:
        token = await self.credentials.get()
        if not token:
            return {"authenticated": False, "storage": None}
        storage = "session" if await self.credentials.is_using_session_storage() else "local"
        return {"authenticated": True, "storage": storage}
