"""
Valkey client module.

Provides the lazily-initialized async client used by the Valkey-backed
storage area. Valkey is Redis-compatible, so redis-py is used.
"""

from typing import Optional

import redis.asyncio as redis

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

# Global client instance (lazily initialized)
_redis_client: Optional[redis.Redis] = None


def normalize_valkey_url(url: str) -> str:
    """Convert valkey:// and valkeys:// schemes to their redis-py equivalents."""
    return url.replace("valkeys://", "rediss://").replace("valkey://", "redis://")


async def get_valkey_client() -> redis.Redis:
    """
    Get or create the global async Redis client for Valkey.

    Returns a lazily-initialized singleton client.
    """
    global _redis_client
    if _redis_client is None:
        if not settings.VALKEY_URL:
            raise RuntimeError("VALKEY_URL is not configured")
        url = normalize_valkey_url(settings.VALKEY_URL)
        _redis_client = redis.from_url(url, decode_responses=True)
        logger.info("Valkey client initialized")
    return _redis_client


async def close_valkey() -> None:
    """Close the global Valkey client connection."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Valkey client closed.")
