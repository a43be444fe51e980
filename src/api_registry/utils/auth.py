"""Shared-secret gate for inbound requests."""

from __future__ import annotations

import hmac
from typing import Iterable, Mapping, Optional

import structlog
from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

logger = structlog.get_logger(__name__)

API_KEY_HEADER = "x-api-key"
EXEMPT_PATHS: frozenset[str] = frozenset({"/health", "/openapi.json"})
ERROR_INVALID_KEY = "Invalid or missing API key"


def extract_api_key(headers: Mapping[str, str]) -> Optional[str]:
    """Key from ``X-API-Key``, falling back to ``Authorization: Bearer``."""
    provided = headers.get(API_KEY_HEADER)
    if provided:
        return provided
    authorization = headers.get("authorization")
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip() or None
    return None


def is_authorized(expected: Optional[str], headers: Mapping[str, str]) -> bool:
    """True when no key is configured, or the request carries it."""
    if not expected:
        return True
    provided = extract_api_key(headers)
    if provided is None:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


class ApiKeyMiddleware:
    """ASGI middleware answering 401 for requests without the shared key.

    Exempt paths (health check, the registry's own spec) stay public. With no
    key configured the middleware is a pass-through.
    """

    def __init__(
        self,
        app: ASGIApp,
        api_key: Optional[str] = None,
        exempt_paths: Iterable[str] = EXEMPT_PATHS,
    ):
        self.app = app
        self.api_key = api_key or None
        self.exempt_paths = frozenset(exempt_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if (
            scope["type"] != "http"
            or self.api_key is None
            or scope["path"] in self.exempt_paths
        ):
            await self.app(scope, receive, send)
            return

        if not is_authorized(self.api_key, Headers(scope=scope)):
            logger.warning("Rejected request", path=scope["path"])
            response = JSONResponse({"error": ERROR_INVALID_KEY}, status_code=401)
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)
