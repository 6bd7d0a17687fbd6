"""
Key-value storage areas.

The credential store and the project cache only ever talk to the
``KeyValueStore`` protocol, so the backing area can be swapped (or faked in
tests) without touching them.

Backends:
- MemoryStore: lives and dies with the process (the "session" area).
- JsonFileStore: a JSON document on disk, read once at start, written through.
- ValkeyStore: keys in a Valkey instance under a common prefix.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Union

import redis.asyncio as redis

from app.core.logging import get_logger

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    """Minimal async storage port. Values are JSON-serializable."""

    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryStore:
    """In-process dictionary store."""

    def __init__(self):
        self._data: Dict[str, Any] = {}

    async def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """
    Store persisted as a single JSON object in *path*.

    The file is loaded lazily on first access; every mutation rewrites it.
    A missing or unreadable file starts an empty store.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self._data: Optional[Dict[str, Any]] = None
        self._lock = asyncio.Lock()

    def _load(self) -> Dict[str, Any]:
        if self._data is None:
            try:
                self._data = json.loads(self.path.read_text(encoding="utf-8"))
            except FileNotFoundError:
                self._data = {}
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Ignoring unreadable state file %s: %s", self.path, e)
                self._data = {}
        return self._data

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")

    async def get(self, key: str) -> Optional[Any]:
        return self._load().get(key)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            self._load()[key] = value
            self._flush()

    async def delete(self, key: str) -> None:
        async with self._lock:
            if self._load().pop(key, None) is not None:
                self._flush()


class ValkeyStore:
    """Store backed by Valkey. Values are JSON-encoded strings."""

    def __init__(
        self,
        client_factory: Callable[[], Awaitable[redis.Redis]],
        prefix: str = "release-mr:",
    ):
        self._client_factory = client_factory
        self.prefix = prefix

    async def get(self, key: str) -> Optional[Any]:
        client = await self._client_factory()
        raw = await client.get(self.prefix + key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        client = await self._client_factory()
        await client.set(self.prefix + key, json.dumps(value))

    async def delete(self, key: str) -> None:
        client = await self._client_factory()
        await client.delete(self.prefix + key)
