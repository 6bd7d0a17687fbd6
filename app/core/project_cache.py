"""
Single-slot cache for the first page of the unfiltered project listing.

The slot holds a denormalized snapshot of each project plus an absolute
expiry. It is not keyed per query; callers decide when it may be consulted.
"""

import time
from dataclasses import asdict, dataclass
from typing import Callable, List, Optional

from app.core.logging import get_logger
from app.core.storage import KeyValueStore
from app.schemas.gitlab import Project, ProjectNamespace

logger = get_logger(__name__)

CACHE_KEY = "gitlab_projects_cache"
DEFAULT_TTL_SECONDS = 24 * 60 * 60


@dataclass
class CachedProjectSnapshot:
    """Non-sensitive subset of a project, stamped with the time it was cached."""

    id: int
    name: str
    description: Optional[str]
    web_url: str
    avatar_url: Optional[str]
    namespace_name: str
    default_branch: Optional[str]
    visibility: str
    last_updated: float

    @classmethod
    def from_project(cls, project: Project, now: float) -> "CachedProjectSnapshot":
        return cls(
            id=project.id,
            name=project.name,
            description=project.description,
            web_url=project.web_url,
            avatar_url=project.avatar_url,
            namespace_name=project.namespace_name,
            default_branch=project.default_branch,
            visibility=project.visibility,
            last_updated=now,
        )

    def to_project(self) -> Project:
        return Project(
            id=self.id,
            name=self.name,
            description=self.description,
            web_url=self.web_url,
            avatar_url=self.avatar_url,
            namespace=ProjectNamespace(name=self.namespace_name),
            default_branch=self.default_branch,
            visibility=self.visibility,
        )


@dataclass
class CachedProjects:
    """Content of the cache slot."""

    projects: List[CachedProjectSnapshot]
    total_count: int
    expires_at: float


class ProjectCache:
    """TTL cache over a KeyValueStore slot."""

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    async def write(
        self,
        projects: List[Project],
        total_count: Optional[int] = None,
        ttl_seconds: Optional[float] = None,
    ) -> CachedProjects:
        """Replace the slot with a snapshot of *projects*."""
        now = self._clock()
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        entry = CachedProjects(
            projects=[CachedProjectSnapshot.from_project(p, now) for p in projects],
            total_count=len(projects) if total_count is None else total_count,
            expires_at=now + ttl,
        )
        try:
            await self.store.set(CACHE_KEY, asdict(entry))
        except Exception as e:
            # A cache that cannot be written is just a miss next time
            logger.error("Failed to cache projects: %s", e)
            await self.clear()
        else:
            logger.debug("Cached %d projects until %.0f", len(projects), entry.expires_at)
        return entry

    async def read(self) -> Optional[CachedProjects]:
        """Return the slot if it has not expired, otherwise drop it and return None."""
        raw = await self.store.get(CACHE_KEY)
        if not raw:
            return None

        try:
            entry = CachedProjects(
                projects=[CachedProjectSnapshot(**p) for p in raw["projects"]],
                total_count=raw["total_count"],
                expires_at=raw["expires_at"],
            )
        except (KeyError, TypeError) as e:
            logger.warning("Discarding malformed project cache: %s", e)
            await self.clear()
            return None

        if self._clock() > entry.expires_at:
            logger.debug("Project cache expired")
            await self.clear()
            return None
        return entry

    async def clear(self) -> None:
        try:
            await self.store.delete(CACHE_KEY)
        except Exception as e:
            logger.error("Failed to clear project cache: %s", e)
