"""Per-service spec cache with a time-to-live.

Failed fetches are cached too, so a service that is down is not retried
until its entry expires or is invalidated.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable

import structlog

from .fetcher import SpecFetcher

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass
class CachedSpec:
    service: str
    document: Any
    fetched_at: float
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.document is not None


class SpecCache:
    """Owns every ``CachedSpec`` for the lifetime of the process."""

    def __init__(
        self,
        fetcher: SpecFetcher | None = None,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fetcher = fetcher or SpecFetcher()
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CachedSpec] = {}

    async def get_spec(self, name: str, base_url: str) -> CachedSpec:
        cached = self._entries.get(name)
        if cached is not None and self._clock() - cached.fetched_at < self.ttl:
            return cached

        result = await self.fetcher.fetch(base_url)
        entry = CachedSpec(
            service=name,
            document=result.document,
            fetched_at=self._clock(),
            error=result.error,
        )
        # Last writer wins when two callers fetch the same name concurrently
        self._entries[name] = entry
        logger.info("Spec fetched", service=name, error=entry.error)
        return entry

    def invalidate(self, name: str) -> None:
        if self._entries.pop(name, None) is not None:
            logger.info("Spec cache invalidated", service=name)

    def invalidate_all(self) -> None:
        self._entries.clear()
        logger.info("Spec cache cleared")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries
