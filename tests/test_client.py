"""Tests for ServiceClient and Dispatcher."""

import json

import httpx
import pytest

from api_registry.client import ServiceClient
from api_registry.discovery.dispatcher import Dispatcher
from api_registry.errors import ProxyCallError

from .conftest import BILLING_URL, CAMPAIGNS_URL

CAMPAIGNS_ENDPOINT = f"{CAMPAIGNS_URL}/v1/campaigns"


# ---------------------------------------------------------------------------
# ServiceClient
# ---------------------------------------------------------------------------


class TestServiceClient:
    async def test_json_response(self, httpx_mock):
        httpx_mock.add_response(url=CAMPAIGNS_ENDPOINT, json=[{"id": "c1"}])
        async with ServiceClient() as client:
            result = await client.request("GET", CAMPAIGNS_ENDPOINT)
        assert result == {"status": 200, "ok": True, "data": [{"id": "c1"}]}

    async def test_non_json_response_returned_as_text(self, httpx_mock):
        httpx_mock.add_response(url=CAMPAIGNS_ENDPOINT, status_code=500, text="boom")
        async with ServiceClient() as client:
            result = await client.request("GET", CAMPAIGNS_ENDPOINT)
        assert result == {"status": 500, "ok": False, "data": "boom"}

    async def test_error_status_does_not_raise(self, httpx_mock):
        httpx_mock.add_response(
            url=CAMPAIGNS_ENDPOINT, status_code=422, json={"detail": "bad"}
        )
        async with ServiceClient() as client:
            result = await client.request("POST", CAMPAIGNS_ENDPOINT, body={})
        assert result["ok"] is False
        assert result["data"] == {"detail": "bad"}

    async def test_body_sent_as_json(self, httpx_mock):
        httpx_mock.add_response(url=CAMPAIGNS_ENDPOINT, status_code=201, json={})
        async with ServiceClient() as client:
            await client.request("POST", CAMPAIGNS_ENDPOINT, body={"name": "Spring"})

        request = httpx_mock.get_requests()[0]
        assert request.method == "POST"
        assert json.loads(request.content) == {"name": "Spring"}
        assert request.headers["content-type"] == "application/json"

    @pytest.mark.parametrize("method", ["GET", "DELETE"])
    async def test_body_ignored_for_get_and_delete(self, httpx_mock, method):
        httpx_mock.add_response(url=CAMPAIGNS_ENDPOINT, json={})
        async with ServiceClient() as client:
            await client.request(method, CAMPAIGNS_ENDPOINT, body={"name": "x"})
        assert httpx_mock.get_requests()[0].content == b""

    async def test_caller_headers_override_defaults(self, httpx_mock):
        httpx_mock.add_response(url=CAMPAIGNS_ENDPOINT, json={})
        async with ServiceClient() as client:
            await client.request(
                "GET",
                CAMPAIGNS_ENDPOINT,
                headers={"Content-Type": "text/plain", "X-API-Key": "svc-key"},
            )
        request = httpx_mock.get_requests()[0]
        assert request.headers["content-type"] == "text/plain"
        assert request.headers["x-api-key"] == "svc-key"

    async def test_lowercase_method_normalized(self, httpx_mock):
        httpx_mock.add_response(url=CAMPAIGNS_ENDPOINT, method="PATCH", json={})
        async with ServiceClient() as client:
            result = await client.request("patch", CAMPAIGNS_ENDPOINT, body={})
        assert result["ok"] is True

    async def test_connect_error_raises(self, httpx_mock):
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"))
        async with ServiceClient() as client:
            with pytest.raises(ProxyCallError) as exc_info:
                await client.request("GET", CAMPAIGNS_ENDPOINT)
        assert "Connection refused" in exc_info.value.message

    async def test_read_timeout_raises(self, httpx_mock):
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"))
        async with ServiceClient(timeout=1) as client:
            with pytest.raises(ProxyCallError):
                await client.request("GET", CAMPAIGNS_ENDPOINT)

    async def test_unencodable_header_raises(self):
        async with ServiceClient() as client:
            with pytest.raises(ProxyCallError) as exc_info:
                await client.request(
                    "GET", CAMPAIGNS_ENDPOINT, headers={"X-Name": "café中"}
                )
        assert exc_info.value.message.startswith("Invalid request")

    async def test_aclose_is_idempotent(self):
        client = ServiceClient()
        await client.aclose()
        async with client:
            assert client.client is not None
        assert client.client is None
        await client.aclose()


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


@pytest.fixture
async def dispatcher(directory):
    async with ServiceClient() as client:
        yield Dispatcher(directory, client)


class TestDispatcher:
    async def test_call_registered_service(self, httpx_mock, dispatcher):
        httpx_mock.add_response(url=f"{BILLING_URL}/v1/invoices", json=[])
        result = await dispatcher.call_api("billing", "GET", "/v1/invoices")
        assert result == {"status": 200, "ok": True, "data": []}

    async def test_path_without_leading_slash(self, httpx_mock, dispatcher):
        httpx_mock.add_response(url=f"{BILLING_URL}/v1/invoices", json=[])
        await dispatcher.call_api("billing", "GET", "v1/invoices")
        assert str(httpx_mock.get_requests()[0].url) == f"{BILLING_URL}/v1/invoices"

    async def test_query_string_passed_through(self, httpx_mock, dispatcher):
        httpx_mock.add_response(url=f"{CAMPAIGNS_ENDPOINT}?limit=5", json=[])
        result = await dispatcher.call_api(
            "campaign-service", "GET", "/v1/campaigns?limit=5"
        )
        assert result["ok"] is True

    async def test_unknown_service(self, dispatcher):
        result = await dispatcher.call_api("nope", "GET", "/")
        assert result == {
            "error": 'Service "nope" not found',
            "available": ["campaign-service", "down-service", "billing"],
        }

    async def test_network_failure_returns_error(self, httpx_mock, dispatcher):
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"))
        result = await dispatcher.call_api("campaign-service", "GET", "/v1/campaigns")
        assert set(result) == {"error"}
        assert "Connection refused" in result["error"]

    async def test_unencodable_header_returns_error(self, dispatcher):
        result = await dispatcher.call_api(
            "campaign-service",
            "GET",
            "/v1/campaigns",
            headers={"X-Name": "café中"},
        )
        assert set(result) == {"error"}
        assert result["error"].startswith("Invalid request")

    async def test_later_call_succeeds_after_failure(self, httpx_mock, dispatcher):
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"))
        httpx_mock.add_response(url=CAMPAIGNS_ENDPOINT, json={"ok": 1})

        failed = await dispatcher.call_api("campaign-service", "GET", "/v1/campaigns")
        succeeded = await dispatcher.call_api(
            "campaign-service", "GET", "/v1/campaigns"
        )
        assert "error" in failed
        assert succeeded["data"] == {"ok": 1}
