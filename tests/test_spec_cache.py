"""Tests for discovery.fetcher and discovery.spec_cache."""

import httpx
import pytest

from api_registry.discovery.fetcher import FetchResult, SpecFetcher
from api_registry.discovery.spec_cache import SpecCache

from .conftest import FakeClock, FakeFetcher

SPEC_URL = "http://campaigns.local/openapi.json"


# ---------------------------------------------------------------------------
# SpecFetcher
# ---------------------------------------------------------------------------


class TestSpecFetcher:
    async def test_success(self, httpx_mock):
        httpx_mock.add_response(url=SPEC_URL, json={"openapi": "3.0.0"})
        result = await SpecFetcher().fetch("http://campaigns.local")
        assert result.ok
        assert result.document == {"openapi": "3.0.0"}
        assert result.error is None

    async def test_trailing_slash_in_base_url(self, httpx_mock):
        httpx_mock.add_response(url=SPEC_URL, json={"paths": {}})
        result = await SpecFetcher().fetch("http://campaigns.local/")
        assert result.document == {"paths": {}}

    async def test_http_error_status(self, httpx_mock):
        httpx_mock.add_response(url=SPEC_URL, status_code=503)
        result = await SpecFetcher().fetch("http://campaigns.local")
        assert result.document is None
        assert result.error == "HTTP 503"

    async def test_network_error(self, httpx_mock):
        httpx_mock.add_exception(
            httpx.ConnectError("Connection refused"), url=SPEC_URL
        )
        result = await SpecFetcher().fetch("http://campaigns.local")
        assert not result.ok
        assert "Connection refused" in result.error

    async def test_timeout(self, httpx_mock):
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"), url=SPEC_URL)
        result = await SpecFetcher(timeout=0.5).fetch("http://campaigns.local")
        assert result.document is None
        assert result.error

    async def test_invalid_json(self, httpx_mock):
        httpx_mock.add_response(url=SPEC_URL, text="<html>oops</html>")
        result = await SpecFetcher().fetch("http://campaigns.local")
        assert result.document is None
        assert result.error.startswith("Invalid JSON")


# ---------------------------------------------------------------------------
# SpecCache
# ---------------------------------------------------------------------------


@pytest.fixture
def fetcher():
    return FakeFetcher(
        {
            "http://ok.local": FetchResult(document={"paths": {}}),
            "http://down.local": FetchResult(error="Connection refused"),
        }
    )


class TestSpecCache:
    async def test_second_call_within_ttl_is_cached(self, fetcher, clock):
        cache = SpecCache(fetcher, clock=clock)
        first = await cache.get_spec("ok", "http://ok.local")
        clock.advance(299)
        second = await cache.get_spec("ok", "http://ok.local")
        assert fetcher.calls == ["http://ok.local"]
        assert second is first

    async def test_errors_are_cached_within_ttl(self, fetcher, clock):
        cache = SpecCache(fetcher, clock=clock)
        first = await cache.get_spec("down", "http://down.local")
        second = await cache.get_spec("down", "http://down.local")
        assert first.error == "Connection refused"
        assert first.document is None
        assert second is first
        assert len(fetcher.calls) == 1

    async def test_expired_entry_is_refetched(self, fetcher, clock):
        cache = SpecCache(fetcher, clock=clock)
        await cache.get_spec("ok", "http://ok.local")
        clock.advance(300)
        await cache.get_spec("ok", "http://ok.local")
        assert len(fetcher.calls) == 2

    async def test_invalidate_forces_one_fetch(self, fetcher, clock):
        cache = SpecCache(fetcher, clock=clock)
        await cache.get_spec("ok", "http://ok.local")
        cache.invalidate("ok")
        assert "ok" not in cache
        await cache.get_spec("ok", "http://ok.local")
        await cache.get_spec("ok", "http://ok.local")
        assert len(fetcher.calls) == 2

    async def test_invalidate_unknown_is_noop(self, fetcher):
        cache = SpecCache(fetcher)
        cache.invalidate("never-fetched")
        assert len(cache) == 0

    async def test_invalidate_all(self, fetcher, clock):
        cache = SpecCache(fetcher, clock=clock)
        await cache.get_spec("ok", "http://ok.local")
        await cache.get_spec("down", "http://down.local")
        assert len(cache) == 2
        cache.invalidate_all()
        assert len(cache) == 0
        await cache.get_spec("ok", "http://ok.local")
        assert len(fetcher.calls) == 3

    async def test_success_clears_previous_error(self, clock):
        fetcher = FakeFetcher({"http://flaky.local": FetchResult(error="HTTP 500")})
        cache = SpecCache(fetcher, clock=clock)
        failed = await cache.get_spec("flaky", "http://flaky.local")
        assert failed.error == "HTTP 500"

        fetcher.responses["http://flaky.local"] = FetchResult(document={"paths": {}})
        clock.advance(301)
        recovered = await cache.get_spec("flaky", "http://flaky.local")
        assert recovered.error is None
        assert recovered.document == {"paths": {}}
        assert recovered.fetched_at == clock.now

    async def test_custom_ttl(self, fetcher):
        clock = FakeClock()
        cache = SpecCache(fetcher, ttl=10, clock=clock)
        await cache.get_spec("ok", "http://ok.local")
        clock.advance(11)
        await cache.get_spec("ok", "http://ok.local")
        assert len(fetcher.calls) == 2


class TestSpecCacheOverHttp:
    async def test_counts_real_requests(self, httpx_mock):
        httpx_mock.add_response(url=SPEC_URL, json={"paths": {}})
        cache = SpecCache(SpecFetcher())
        first = await cache.get_spec("campaigns", "http://campaigns.local")
        second = await cache.get_spec("campaigns", "http://campaigns.local")
        assert len(httpx_mock.get_requests()) == 1
        assert first is second

    async def test_invalidate_issues_fresh_request(self, httpx_mock):
        httpx_mock.add_response(url=SPEC_URL, json={"paths": {}})
        httpx_mock.add_response(url=SPEC_URL, json={"paths": {"/new": {}}})
        cache = SpecCache(SpecFetcher())
        await cache.get_spec("campaigns", "http://campaigns.local")
        cache.invalidate("campaigns")
        refreshed = await cache.get_spec("campaigns", "http://campaigns.local")
        assert len(httpx_mock.get_requests()) == 2
        assert refreshed.document == {"paths": {"/new": {}}}
