"""Keyword search across summarized endpoints of every service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from .openapi_parser import EndpointSummary


@dataclass
class ServiceSummary:
    """Compact view of one service; *error* set when its spec is unavailable."""

    service: str
    base_url: str
    endpoints: list[EndpointSummary]
    title: str | None = None
    description: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"service": self.service, "baseUrl": self.base_url}
        if self.title is not None:
            result["title"] = self.title
        if self.description is not None:
            result["description"] = self.description
        if self.error is not None:
            result["error"] = self.error
        result["endpoints"] = [e.to_dict() for e in self.endpoints]
        return result


@dataclass
class EndpointMatch:
    service: str
    base_url: str
    endpoint: EndpointSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "service": self.service,
            "baseUrl": self.base_url,
            **self.endpoint.to_dict(),
        }


def search_endpoints(
    summaries: Iterable[ServiceSummary], keyword: str
) -> list[EndpointMatch]:
    """Case-insensitive substring match over path, summary and body fields.

    Services carrying an error are skipped. Results keep the order of
    *summaries* and of each service's endpoints.
    """
    needle = keyword.lower()
    matches: list[EndpointMatch] = []
    for summary in summaries:
        if summary.error is not None:
            continue
        for endpoint in summary.endpoints:
            if needle in endpoint.search_text.lower():
                matches.append(
                    EndpointMatch(
                        service=summary.service,
                        base_url=summary.base_url,
                        endpoint=endpoint,
                    )
                )
    return matches
