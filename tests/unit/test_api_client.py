"""
Unit Tests for the shared ProviderAPIClient

These tests verify that every failure mode of a single GET surfaces as FetchFailed
and that each request is throttled first.

Run with:
    pytest tests/unit/test_api_client.py -v
"""

import asyncio

import aiohttp
import pytest

from core.provider_interface import FetchFailed
from core.throttle import RateThrottle
from providers.api_client import ProviderAPIClient, to_float, to_int


class FakeResponse:
    def __init__(self, status=200, payload=None, error=None):
        self.status = status
        self._payload = payload
        self._error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def text(self):
        return "error body"

    async def json(self, content_type=None):
        if self._error:
            raise self._error
        return self._payload


class FakeSession:
    """Stands in for aiohttp.ClientSession.get"""

    def __init__(self, response=None, raises=None):
        self.response = response
        self.raises = raises
        self.calls = []
        self.closed = False

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        if self.raises:
            raise self.raises
        return self.response


class DemoClient(ProviderAPIClient):
    name = "demo"


@pytest.fixture
def client(clock):
    return DemoClient("https://api.demo.test/v1/", RateThrottle({"demo": 1000}, clock=clock),
                      metadata_timeout=10.0, history_timeout=15.0)


class TestGet:

    @pytest.mark.asyncio
    async def test_without_session_raises(self, client):
        with pytest.raises(FetchFailed):
            await client._get("/assets")

    @pytest.mark.asyncio
    async def test_success_returns_payload(self, client):
        client.session = FakeSession(FakeResponse(payload={"data": [1]}))
        assert await client._get("/assets", {"limit": 1}) == {"data": [1]}

        call = client.session.calls[0]
        assert call["url"] == "https://api.demo.test/v1/assets"
        assert call["params"] == {"limit": 1}
        assert call["timeout"].total == 10.0

    @pytest.mark.asyncio
    async def test_history_timeout_passed_through(self, client):
        client.session = FakeSession(FakeResponse(payload=[]))
        await client._get("/history", timeout=client.history_timeout)
        assert client.session.calls[0]["timeout"].total == 15.0

    @pytest.mark.asyncio
    async def test_non_2xx_raises_with_status(self, client):
        client.session = FakeSession(FakeResponse(status=429))
        with pytest.raises(FetchFailed) as exc_info:
            await client._get("/assets")
        assert exc_info.value.status == 429
        assert exc_info.value.provider == "demo"

    @pytest.mark.asyncio
    async def test_not_found_is_a_failure(self, client):
        client.session = FakeSession(FakeResponse(status=404))
        with pytest.raises(FetchFailed):
            await client._get("/assets/nope")

    @pytest.mark.asyncio
    async def test_timeout_raises(self, client):
        client.session = FakeSession(raises=asyncio.TimeoutError())
        with pytest.raises(FetchFailed):
            await client._get("/assets")

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, client):
        client.session = FakeSession(raises=aiohttp.ClientConnectionError("reset"))
        with pytest.raises(FetchFailed):
            await client._get("/assets")

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, client):
        client.session = FakeSession(FakeResponse(error=ValueError("bad json")))
        with pytest.raises(FetchFailed):
            await client._get("/assets")

    @pytest.mark.asyncio
    async def test_requests_are_throttled(self, client, clock):
        client.session = FakeSession(FakeResponse(payload={}))
        await client._get("/a")
        await client._get("/b")
        assert clock.sleeps == [pytest.approx(1.0)]


class TestParsing:

    def test_parsing_converts_schema_errors(self, client):
        with pytest.raises(FetchFailed):
            with client.parsing("/assets"):
                {}["data"]

    def test_parsing_passes_through_success(self, client):
        with client.parsing("/assets"):
            value = 1
        assert value == 1


def test_numeric_helpers():
    assert to_float("123.45") == 123.45
    assert to_float(None) is None
    assert to_float("") is None
    assert to_int("7") == 7
    assert to_int("7.0") == 7
    assert to_int(None) is None
