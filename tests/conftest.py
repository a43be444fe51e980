"""Shared fixtures for tests."""

import json
from pathlib import Path

import pytest

from api_registry.discovery.aggregator import RegistryAggregator
from api_registry.discovery.directory import ServiceDirectory
from api_registry.discovery.fetcher import FetchResult
from api_registry.discovery.spec_cache import SpecCache

FIXTURES_DIR = Path(__file__).parent / "fixtures"

CAMPAIGNS_URL = "http://campaigns.internal"
BILLING_URL = "https://billing.internal"
DOWN_URL = "http://down.internal"


class FakeFetcher:
    """Stands in for SpecFetcher; records every base URL it is asked for."""

    def __init__(self, responses=None):
        self.responses: dict[str, FetchResult] = dict(responses or {})
        self.calls: list[str] = []

    async def fetch(self, base_url: str) -> FetchResult:
        self.calls.append(base_url)
        return self.responses.get(base_url, FetchResult(error="HTTP 404"))


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def openapi_spec() -> dict:
    """Load the offline OpenAPI spec fixture."""
    with open(FIXTURES_DIR / "openapi_spec.json") as f:
        return json.load(f)


@pytest.fixture
def billing_spec() -> dict:
    return {
        "info": {"title": "Billing"},
        "paths": {
            "/v1/invoices": {
                "get": {"summary": "List invoices"},
                "post": {
                    "summary": "Create an invoice",
                    "requestBody": {
                        "content": {
                            "application/json": {
                                "schema": {
                                    "properties": {
                                        "amount": {"type": "integer"},
                                        "campaignRef": {"type": "string"},
                                    }
                                }
                            }
                        }
                    },
                },
            }
        },
    }


@pytest.fixture
def directory() -> ServiceDirectory:
    return ServiceDirectory(
        {
            "campaign-service": CAMPAIGNS_URL,
            "down-service": DOWN_URL,
            "billing": BILLING_URL,
        }
    )


@pytest.fixture
def fake_fetcher(openapi_spec, billing_spec) -> FakeFetcher:
    return FakeFetcher(
        {
            CAMPAIGNS_URL: FetchResult(document=openapi_spec),
            DOWN_URL: FetchResult(error="Connection refused"),
            BILLING_URL: FetchResult(document=billing_spec),
        }
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(fake_fetcher, clock) -> SpecCache:
    return SpecCache(fake_fetcher, clock=clock)


@pytest.fixture
def aggregator(directory, cache) -> RegistryAggregator:
    return RegistryAggregator(directory, cache)
