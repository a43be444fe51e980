"""Static service directory: service name → base URL."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Iterator, Mapping

import httpx
import structlog

from ..errors import ConfigurationError

logger = structlog.get_logger(__name__)

# Individually named variables; first match wins per variable
_ENV_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^SERVICE_(.+)_URL$"),
    re.compile(r"^(.+)_SERVICE_URL$"),
    re.compile(r"^(.+)_WORKER_URL$"),
)

_URL_SCHEMES = ("http://", "https://")


@dataclass(frozen=True)
class ServiceEntry:
    """One registered service."""

    name: str
    base_url: str

    @property
    def openapi_url(self) -> str:
        return f"{self.base_url}/openapi.json"

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "baseUrl": self.base_url,
            "openapiUrl": self.openapi_url,
        }


def normalize_name(token: str) -> str:
    """``CAMPAIGN_SERVICE`` → ``campaign-service``."""
    return token.strip().lower().replace("_", "-")


def validate_url(name: str, url: str) -> str:
    """Return *url* without trailing ``/``; it must be http(s) with a host."""
    url = url.strip().rstrip("/")
    error = ConfigurationError(
        f'Service "{name}" has an invalid URL',
        {"service": name, "url": url},
    )
    if not url.startswith(_URL_SCHEMES):
        raise error
    try:
        host = httpx.URL(url).host
    except httpx.InvalidURL as e:
        raise error from e
    if not host:
        raise error
    return url


def resolve_services(
    aggregate: str | None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Merge the aggregate ``name=url,...`` list with individually named
    ``*_SERVICE_URL`` / ``*_WORKER_URL`` / ``SERVICE_*_URL`` variables.

    Individual variables are applied last and overwrite aggregate entries of
    the same derived name. Entries with a non-HTTP(S) URL are dropped with a
    warning.
    """
    if environ is None:
        environ = os.environ

    candidates: list[tuple[str, str]] = []

    if aggregate:
        for raw in aggregate.split(","):
            name, sep, url = raw.strip().partition("=")
            if not sep or not name.strip() or not url.strip():
                continue
            candidates.append((normalize_name(name), url))

    for key, value in environ.items():
        if not value:
            continue
        for pattern in _ENV_PATTERNS:
            match = pattern.match(key)
            if match:
                candidates.append((normalize_name(match.group(1)), value))
                break

    services: dict[str, str] = {}
    for name, url in candidates:
        try:
            services[name] = validate_url(name, url)
        except ConfigurationError as e:
            logger.warning(
                "Dropping service entry", error=e.message, code=e.code, **e.details
            )
    return services


class ServiceDirectory:
    """Immutable name → base URL mapping built once at startup."""

    def __init__(self, services: Mapping[str, str] | None = None):
        self._entries: dict[str, ServiceEntry] = {
            name: ServiceEntry(name=name, base_url=url)
            for name, url in (services or {}).items()
        }

    @classmethod
    def from_environment(
        cls,
        aggregate: str | None,
        environ: Mapping[str, str] | None = None,
    ) -> ServiceDirectory:
        directory = cls(resolve_services(aggregate, environ))
        logger.info("Service directory resolved", services=directory.names)
        return directory

    def resolve(self) -> dict[str, str]:
        return {name: entry.base_url for name, entry in self._entries.items()}

    def get(self, name: str) -> ServiceEntry | None:
        return self._entries.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._entries)

    def entries(self) -> list[ServiceEntry]:
        return list(self._entries.values())

    def __iter__(self) -> Iterator[ServiceEntry]:
        return iter(self.entries())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries
