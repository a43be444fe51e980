"""Generic HTTP dispatcher for calls to registered services."""

from __future__ import annotations

from typing import Any

import structlog

from ..client import ServiceClient
from ..errors import NotFoundError, ProxyCallError
from .directory import ServiceDirectory

logger = structlog.get_logger(__name__)


class Dispatcher:
    """Execute an arbitrary request against a registered service.

    Every outcome is returned as a plain dict; nothing raises, so a failed
    call never disturbs the session it was made from.
    """

    def __init__(self, directory: ServiceDirectory, client: ServiceClient):
        self.directory = directory
        self.client = client

    async def call_api(
        self,
        service: str,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        entry = self.directory.get(service)
        if entry is None:
            return NotFoundError(service, self.directory.names).to_dict()

        url = self._build_url(entry.base_url, path)
        logger.info("Dispatching", service=service, method=method, url=url)
        try:
            return await self.client.request(method, url, body=body, headers=headers)
        except ProxyCallError as e:
            return {"error": e.message}

    @staticmethod
    def _build_url(base_url: str, path: str) -> str:
        if path and not path.startswith("/"):
            path = f"/{path}"
        return f"{base_url}{path}"
