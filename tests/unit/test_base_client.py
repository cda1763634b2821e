"""
Unit Tests for the Base REST Client

These tests verify that BaseAPIClient._get:
- Applies the connect/read timeouts to every request
- Makes exactly one attempt per call (no retries)
- Maps timeouts, connection failures and non-200 answers to ProviderError
- Maps undecodable bodies to ParseError

Run with:
    pytest tests/unit/test_base_client.py -v
"""

import asyncio
import json

import aiohttp
import pytest

from core.errors import ParseError, ProviderError
from exchanges.base import BaseAPIClient, build_timeout


# ============================================
# Fake aiohttp Session
# ============================================

class FakeResponse:
    def __init__(self, status=200, body="{}"):
        self.status = status
        self._body = body.encode() if isinstance(body, str) else body

    async def text(self, encoding=None, errors="strict"):
        return self._body.decode(encoding or "utf-8", errors)

    async def json(self, content_type="application/json"):
        return json.loads(self._body)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    """Records requests; answers with a fixed response or raises."""

    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append({"url": url, "params": params, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def make_client(session, timeout=None):
    return BaseAPIClient("https://provider.test/", session=session, timeout=timeout)


# ============================================
# Timeouts
# ============================================

class TestTimeouts:
    """Tests for the request timeout"""

    def test_default_timeouts_are_ten_seconds(self):
        timeout = build_timeout()
        assert timeout.sock_connect == 10.0
        assert timeout.sock_read == 10.0

    def test_explicit_timeouts(self):
        timeout = build_timeout(2.5, 4.0)
        assert timeout.sock_connect == 2.5
        assert timeout.sock_read == 4.0

    @pytest.mark.asyncio
    async def test_timeout_passed_to_request(self):
        session = FakeSession()
        timeout = build_timeout(1.0, 2.0)
        client = make_client(session, timeout=timeout)

        await client._get("/ping")

        assert session.requests[0]["timeout"] is timeout


# ============================================
# Request Handling
# ============================================

class TestGet:
    """Tests for the _get request handler"""

    @pytest.mark.asyncio
    async def test_returns_decoded_json(self):
        session = FakeSession(FakeResponse(body='{"a": [1, 2]}'))
        client = make_client(session)

        assert await client._get("/data", {"x": "1"}) == {"a": [1, 2]}
        assert session.requests[0]["url"] == "https://provider.test/data"
        assert session.requests[0]["params"] == {"x": "1"}

    @pytest.mark.asyncio
    async def test_non_200_raises_provider_error_once(self):
        session = FakeSession(FakeResponse(status=502, body="Bad Gateway"))
        client = make_client(session)

        with pytest.raises(ProviderError) as exc_info:
            await client._get("/data")

        assert exc_info.value.status == 502
        assert len(session.requests) == 1

    @pytest.mark.asyncio
    async def test_non_200_with_undecodable_body_raises_provider_error(self):
        session = FakeSession(FakeResponse(status=502, body=b"\xff\xfe gateway \xc3\x28"))
        client = make_client(session)

        with pytest.raises(ProviderError) as exc_info:
            await client._get("/data")

        assert exc_info.value.status == 502
        assert "gateway" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_raises_provider_error_once(self):
        session = FakeSession(error=asyncio.TimeoutError())
        client = make_client(session)

        with pytest.raises(ProviderError) as exc_info:
            await client._get("/data")

        assert exc_info.value.status is None
        assert isinstance(exc_info.value.__cause__, asyncio.TimeoutError)
        assert len(session.requests) == 1

    @pytest.mark.asyncio
    async def test_connection_error_raises_provider_error(self):
        session = FakeSession(error=aiohttp.ClientConnectionError("connection refused"))
        client = make_client(session)

        with pytest.raises(ProviderError, match="connection refused"):
            await client._get("/data")

        assert len(session.requests) == 1

    @pytest.mark.asyncio
    async def test_malformed_json_raises_parse_error(self):
        session = FakeSession(FakeResponse(body="<html>maintenance</html>"))
        client = make_client(session)

        with pytest.raises(ParseError):
            await client._get("/data")

    @pytest.mark.asyncio
    async def test_null_body_raises_parse_error(self):
        session = FakeSession(FakeResponse(body="null"))
        client = make_client(session)

        with pytest.raises(ParseError):
            await client._get("/data")

    @pytest.mark.asyncio
    async def test_closed_client_raises_provider_error(self):
        client = BaseAPIClient("https://provider.test")

        with pytest.raises(ProviderError, match="not open"):
            await client._get("/data")


class TestSessionOwnership:
    """Tests for session lifecycle"""

    @pytest.mark.asyncio
    async def test_shared_session_is_not_closed(self):
        session = FakeSession()
        client = make_client(session)

        await client.close()

        assert client.session is session

    @pytest.mark.asyncio
    async def test_owned_session_closed_on_exit(self):
        async with BaseAPIClient("https://provider.test") as client:
            assert isinstance(client.session, aiohttp.ClientSession)
        assert client.session is None
