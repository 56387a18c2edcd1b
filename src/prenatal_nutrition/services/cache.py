"""Resolution cache with lazy expiry and single-flight lookups."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from prenatal_nutrition.domain.foods import FoodProfile, FoodReference

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class CacheEntry:
    """Cached profile and the moment it stops being valid."""

    profile: FoodProfile
    expires_at: datetime


class ProfileStore(Protocol):
    """Storage backend for cache entries."""

    def load(self, key: str) -> CacheEntry | None:
        """Return the stored entry for a key, expired or not."""

    def save(self, key: str, entry: CacheEntry) -> None:
        """Store an entry, replacing any previous one."""


@dataclass
class InMemoryProfileStore(ProfileStore):
    """Process-local store for tests and local runs."""

    entries: dict[str, CacheEntry] = field(default_factory=dict)

    def load(self, key: str) -> CacheEntry | None:
        return self.entries.get(key)

    def save(self, key: str, entry: CacheEntry) -> None:
        self.entries[key] = entry


@dataclass
class ResolutionCache:
    """Maps food references to resolved profiles.

    Expired entries read as misses but stay in the store until they are
    overwritten. Store failures degrade to a miss instead of failing the
    lookup. ``single_flight`` keeps at most one resolution running per
    reference; late callers wait on the running one.
    """

    store: ProfileStore
    clock: Callable[[], datetime] = _utcnow
    _in_flight: dict[str, "asyncio.Future[FoodProfile]"] = field(
        default_factory=dict, init=False, repr=False
    )

    def get(self, reference: FoodReference) -> FoodProfile | None:
        """Return a cached profile if present and not expired."""
        entry = self.peek(reference)
        if entry is None or self.clock() >= entry.expires_at:
            return None
        return entry.profile

    def peek(self, reference: FoodReference) -> CacheEntry | None:
        """Return the stored entry regardless of expiry."""
        try:
            return self.store.load(reference.cache_key)
        except Exception as exc:
            _logger.warning(
                "Cache read failed for %s, bypassing cache: %s", reference, exc
            )
            return None

    def put(
        self, reference: FoodReference, profile: FoodProfile, ttl_seconds: int
    ) -> None:
        """Store a profile for ``ttl_seconds``."""
        entry = CacheEntry(
            profile=profile,
            expires_at=self.clock() + timedelta(seconds=ttl_seconds),
        )
        try:
            self.store.save(reference.cache_key, entry)
        except Exception as exc:
            _logger.warning(
                "Cache write failed for %s, continuing uncached: %s", reference, exc
            )

    def in_flight_count(self) -> int:
        """Return the number of resolutions currently running."""
        return len(self._in_flight)

    async def single_flight(
        self,
        reference: FoodReference,
        factory: Callable[[], Awaitable[FoodProfile]],
    ) -> FoodProfile:
        """Run ``factory`` unless a resolution for the reference is running.

        Cancelling a waiting caller detaches it from the shared resolution;
        the resolution keeps running for the remaining callers.
        """
        key = reference.cache_key
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._finish(key, done))
        return await asyncio.shield(task)

    def _finish(self, key: str, task: "asyncio.Future[FoodProfile]") -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled() and task.exception() is not None:
            _logger.debug("Resolution for %s failed: %s", key, task.exception())
