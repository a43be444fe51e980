"""Fan out over every registered service and assemble registry views."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from ..errors import NotFoundError
from .directory import ServiceDirectory, ServiceEntry
from .openapi_parser import summarize
from .search import EndpointMatch, ServiceSummary, search_endpoints
from .spec_cache import CachedSpec, SpecCache

logger = structlog.get_logger(__name__)


class RegistryAggregator:
    """Combines the directory and the spec cache.

    Every multi-service operation fetches all specs concurrently and waits
    for all of them; results always follow directory order.
    """

    def __init__(self, directory: ServiceDirectory, cache: SpecCache):
        self.directory = directory
        self.cache = cache

    # ------------------------------------------------------------------
    # Single service
    # ------------------------------------------------------------------

    def lookup(self, service: str) -> ServiceEntry:
        entry = self.directory.get(service)
        if entry is None:
            raise NotFoundError(service, self.directory.names)
        return entry

    async def get_spec(self, service: str) -> CachedSpec:
        entry = self.lookup(service)
        return await self.cache.get_spec(entry.name, entry.base_url)

    async def refresh(self, service: str) -> CachedSpec:
        entry = self.lookup(service)
        self.cache.invalidate(entry.name)
        return await self.cache.get_spec(entry.name, entry.base_url)

    # ------------------------------------------------------------------
    # All services
    # ------------------------------------------------------------------

    def list_services(self) -> list[dict[str, str]]:
        return [entry.to_dict() for entry in self.directory]

    async def _fetch_all(self) -> list[tuple[ServiceEntry, CachedSpec]]:
        entries = self.directory.entries()
        results = await asyncio.gather(
            *(self.cache.get_spec(e.name, e.base_url) for e in entries)
        )
        return list(zip(entries, results))

    async def fetch_all(self) -> list[dict[str, Any]]:
        """Raw documents for every service (``spec`` is None on failure)."""
        return [
            {
                "name": entry.name,
                "baseUrl": entry.base_url,
                "spec": cached.document,
                "error": cached.error,
            }
            for entry, cached in await self._fetch_all()
        ]

    async def refresh_all(self) -> list[dict[str, Any]]:
        self.cache.invalidate_all()
        return [
            {"name": entry.name, "error": cached.error}
            for entry, cached in await self._fetch_all()
        ]

    async def aggregate_all(self) -> list[ServiceSummary]:
        summaries = [
            self._summarize(entry, cached) for entry, cached in await self._fetch_all()
        ]
        logger.info(
            "Aggregated services",
            service_count=len(summaries),
            failed=[s.service for s in summaries if s.error is not None],
        )
        return summaries

    async def search(self, keyword: str) -> list[EndpointMatch]:
        matches = search_endpoints(await self.aggregate_all(), keyword)
        logger.info("Endpoint search", query=keyword, match_count=len(matches))
        return matches

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _summarize(entry: ServiceEntry, cached: CachedSpec) -> ServiceSummary:
        if not cached.ok:
            return ServiceSummary(
                service=entry.name,
                base_url=entry.base_url,
                endpoints=[],
                error=cached.error or "Spec unavailable",
            )
        spec = summarize(cached.document)
        return ServiceSummary(
            service=entry.name,
            base_url=entry.base_url,
            endpoints=spec.endpoints,
            title=spec.title,
            description=spec.description,
        )
