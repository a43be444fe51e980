"""Service discovery: directory, spec cache, summaries, search and tools."""

from .aggregator import RegistryAggregator
from .directory import ServiceDirectory, ServiceEntry
from .dispatcher import Dispatcher
from .fetcher import FetchResult, SpecFetcher
from .openapi_parser import EndpointSummary, OpenAPIParser, summarize
from .registry_tools import RegistryTools
from .search import EndpointMatch, ServiceSummary, search_endpoints
from .spec_cache import CachedSpec, SpecCache

__all__ = [
    "CachedSpec",
    "Dispatcher",
    "EndpointMatch",
    "EndpointSummary",
    "FetchResult",
    "OpenAPIParser",
    "RegistryAggregator",
    "RegistryTools",
    "ServiceDirectory",
    "ServiceEntry",
    "ServiceSummary",
    "SpecCache",
    "SpecFetcher",
    "search_endpoints",
    "summarize",
]
