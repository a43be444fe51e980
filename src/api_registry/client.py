"""Outbound HTTP client for calls proxied to registered services."""

import asyncio
import json as jsonlib
from typing import Any, Dict, Optional

import httpx
import structlog

from .errors import ProxyCallError

logger = structlog.get_logger(__name__)

DEFAULT_CALL_TIMEOUT = 30.0
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class ServiceClient:
    """Asynchronous client shared by every proxied ``call_api`` request.

    Credentials for the target services are never added here; callers pass
    whatever the service needs through *headers*.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_CALL_TIMEOUT,
        max_concurrent_calls: int = 20,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.client: Optional[httpx.AsyncClient] = None
        self._transport = transport
        self._limiter = asyncio.Semaphore(max_concurrent_calls)

    async def __aenter__(self):
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def _ensure_client(self):
        if not self.client:
            self.client = httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            )

    async def aclose(self) -> None:
        if self.client:
            await self.client.aclose()
            self.client = None

    async def request(
        self,
        method: str,
        url: str,
        body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Send one request and return ``{status, ok, data}``.

        ``data`` is the decoded JSON body when it parses, else the raw text.
        Transport failures raise ProxyCallError; HTTP error statuses do not.
        """
        await self._ensure_client()
        method = method.upper()

        request_headers = {"Content-Type": "application/json"}
        request_headers.update(headers or {})
        content = None
        if body is not None and method in BODY_METHODS:
            content = jsonlib.dumps(body)

        async with self._limiter:
            try:
                response = await asyncio.wait_for(
                    self.client.request(
                        method=method,
                        url=url,
                        headers=request_headers,
                        content=content,
                    ),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError as e:
                logger.error("Proxied call timed out", method=method, url=url)
                raise ProxyCallError(f"Timed out after {self.timeout:g}s") from e
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                logger.error("Proxied call failed", method=method, url=url, error=str(e))
                raise ProxyCallError(str(e) or type(e).__name__) from e
            except (TypeError, ValueError) as e:
                # Request could not be built, e.g. non-ASCII header values
                logger.error("Invalid proxied request", method=method, url=url, error=str(e))
                raise ProxyCallError(f"Invalid request: {e}") from e

        logger.info(
            "Proxied call",
            method=method,
            url=url,
            status_code=response.status_code,
        )

        text = response.text
        try:
            data: Any = jsonlib.loads(text)
        except ValueError:
            data = text

        return {
            "status": response.status_code,
            "ok": response.is_success,
            "data": data,
        }
