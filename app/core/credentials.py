"""
Process-wide credential state.

The personal access token lives in exactly one of two storage areas:
- persistent: survives restarts (JSON file or Valkey, see build_persistent_store)
- session: in-memory only, gone when the process exits

Saving into one area clears the other. Logging out clears both areas and the
project cache.
"""

from typing import Optional

from app.core.config import settings
from app.core.logging import get_logger
from app.core.project_cache import ProjectCache
from app.core.storage import JsonFileStore, KeyValueStore, MemoryStore, ValkeyStore
from app.core.valkey import get_valkey_client

logger = get_logger(__name__)

TOKEN_KEY = "gitlab_token"


class CredentialStore:
    """Holds the GitLab token and owns the project cache lifecycle."""

    def __init__(
        self,
        persistent: KeyValueStore,
        session: KeyValueStore,
        cache: ProjectCache,
    ):
        self.persistent = persistent
        self.session = session
        self.cache = cache

    async def save(self, token: str, use_session_storage: bool = False) -> None:
        if use_session_storage:
            await self.session.set(TOKEN_KEY, token)
            await self.persistent.delete(TOKEN_KEY)
        else:
            await self.persistent.set(TOKEN_KEY, token)
            await self.session.delete(TOKEN_KEY)
        logger.info(
            "Stored GitLab token in %s storage",
            "session" if use_session_storage else "persistent",
        )

    async def get(self) -> Optional[str]:
        return await self.persistent.get(TOKEN_KEY) or await self.session.get(
            TOKEN_KEY
        )

    async def clear(self) -> None:
        """Forget the token everywhere and drop the project cache."""
        await self.persistent.delete(TOKEN_KEY)
        await self.session.delete(TOKEN_KEY)
        await self.cache.clear()
        logger.info("Cleared GitLab token and project cache")

    async def is_using_session_storage(self) -> bool:
        return await self.session.get(TOKEN_KEY) is not None


def build_persistent_store() -> KeyValueStore:
    """Pick the persistent area from configuration: Valkey, then file, then memory."""
    if settings.VALKEY_URL:
        return ValkeyStore(get_valkey_client)
    if settings.STATE_FILE:
        return JsonFileStore(settings.STATE_FILE)
    logger.warning("No STATE_FILE or VALKEY_URL configured; persistent storage is in-memory")
    return MemoryStore()


# Global singleton
_store: Optional[CredentialStore] = None


def get_credential_store() -> CredentialStore:
    """Get the global credential store, building it on first use."""
    global _store
    if _store is None:
        persistent = build_persistent_store()
        _store = CredentialStore(
            persistent=persistent,
            session=MemoryStore(),
            cache=ProjectCache(persistent, ttl_seconds=settings.PROJECT_CACHE_TTL_SECONDS),
        )
    return _store


def reset_credential_store() -> None:
    """Drop the global instance so the next access rebuilds it."""
    global _store
    _store = None
