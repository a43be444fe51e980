"""Fetch a service's OpenAPI document from its well-known location."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from ..errors import UpstreamFetchError

logger = structlog.get_logger(__name__)

SPEC_PATH = "/openapi.json"
DEFAULT_FETCH_TIMEOUT = 10.0


@dataclass
class FetchResult:
    """Outcome of one fetch: exactly one of *document* / *error* is set."""

    document: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SpecFetcher:
    """GETs ``{base_url}/openapi.json``; never raises to its caller."""

    def __init__(
        self,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self._transport = transport

    async def fetch(self, base_url: str) -> FetchResult:
        url = f"{base_url.rstrip('/')}{SPEC_PATH}"
        try:
            document = await asyncio.wait_for(self._fetch(url), timeout=self.timeout)
        except UpstreamFetchError as e:
            logger.warning("Spec fetch failed", url=url, error=e.message)
            return FetchResult(error=e.message)
        except asyncio.TimeoutError:
            message = f"Timed out after {self.timeout:g}s"
            logger.warning("Spec fetch failed", url=url, error=message)
            return FetchResult(error=message)
        return FetchResult(document=document)

    async def _fetch(self, url: str) -> Any:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise UpstreamFetchError(str(e) or type(e).__name__) from e

        if not resp.is_success:
            raise UpstreamFetchError(f"HTTP {resp.status_code}", resp.status_code)
        try:
            document = resp.json()
        except ValueError as e:
            raise UpstreamFetchError(f"Invalid JSON: {e}") from e
        if document is None:
            raise UpstreamFetchError("Empty spec document")
        return document
