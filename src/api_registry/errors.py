"""Error taxonomy for the API registry.

Errors that concern a single service are recorded or rendered as structured
results rather than propagated, so one failing service never breaks requests
about the others.
"""

from __future__ import annotations

from typing import Any


class RegistryError(Exception):
    """Base exception for registry errors."""

    code = "registry_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, **self.details}


class ConfigurationError(RegistryError):
    """A configured service entry is malformed (dropped, never fatal)."""

    code = "configuration_error"


class UpstreamFetchError(RegistryError):
    """Fetching a service's spec failed (non-2xx, timeout, network)."""

    code = "upstream_fetch_error"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(RegistryError):
    """An unknown service name was requested."""

    code = "not_found"

    def __init__(self, service: str, available: list[str]):
        super().__init__(
            f'Service "{service}" not found', {"available": list(available)}
        )
        self.service = service
        self.available = list(available)


class ProxyCallError(RegistryError):
    """A proxied call to a registered service failed at the transport level."""

    code = "proxy_call_error"


class ProtocolError(RegistryError):
    """A protocol-bridge request referenced a missing or unknown session."""

    code = "protocol_error"

    def __init__(self, message: str, status_code: int = 400, rpc_code: int = -32600):
        super().__init__(message)
        self.status_code = status_code
        self.rpc_code = rpc_code

    def to_jsonrpc(self) -> dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "error": {"code": self.rpc_code, "message": self.message},
            "id": None,
        }
