# ABOUTME: Unit tests for the async HTTP client abstraction.
# ABOUTME: Tests the HttpClient protocol, ReconHttpClient, rate limiting, retries, and error handling.

import time

import httpx
import pytest

from bibrecon.metadata.http import (
    HttpClient,
    MetadataFetchError,
    ReconHttpClient,
)


class FakeTransport(httpx.AsyncBaseTransport):
    """Fake async transport for httpx that returns canned responses."""

    def __init__(self, responses: list[httpx.Response] | None = None) -> None:
        self._responses = list(responses or [])
        self._call_count = 0
        self.requests: list[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self._call_count += 1
        self.requests.append(request)
        if self._responses:
            return self._responses.pop(0)
        return httpx.Response(200, json={"ok": True})

    @property
    def call_count(self) -> int:
        return self._call_count


class TestHttpClientProtocol:
    """Tests for HttpClient protocol compliance."""

    def test_recon_client_satisfies_protocol(self) -> None:
        """ReconHttpClient satisfies the HttpClient protocol."""
        client = ReconHttpClient(transport=FakeTransport())
        assert isinstance(client, HttpClient)


class TestReconHttpClient:
    """Tests for ReconHttpClient concrete class."""

    @pytest.mark.asyncio
    async def test_get_returns_json(self) -> None:
        """GET request returns parsed JSON response."""
        transport = FakeTransport()
        async with ReconHttpClient(transport=transport) as client:
            result = await client.get("https://example.com/api", params={"q": "test"})
        assert result == {"ok": True}
        assert transport.requests[0].url.params["q"] == "test"

    @pytest.mark.asyncio
    async def test_user_agent_header(self) -> None:
        """Requests carry the bibrecon User-Agent header."""
        transport = FakeTransport()
        async with ReconHttpClient(transport=transport) as client:
            await client.get("https://example.com/api")
        assert transport.requests[0].headers["user-agent"].startswith("bibrecon/")

    @pytest.mark.asyncio
    async def test_rate_limit_spaces_requests(self) -> None:
        """A budget of one request per window delays the second request."""
        transport = FakeTransport()
        async with ReconHttpClient(max_requests=1, per_seconds=0.2, transport=transport) as client:
            start = time.monotonic()
            await client.get("https://example.com/1")
            await client.get("https://example.com/2")
            elapsed = time.monotonic() - start

        assert elapsed >= 0.1
        assert transport.call_count == 2

    @pytest.mark.asyncio
    async def test_http_error_raises_metadata_fetch_error(self) -> None:
        """Non-retryable HTTP errors raise MetadataFetchError without retrying."""
        transport = FakeTransport([httpx.Response(404, json={"error": "not found"})])
        async with ReconHttpClient(transport=transport) as client:
            with pytest.raises(MetadataFetchError, match="404"):
                await client.get("https://example.com/missing")
        assert transport.call_count == 1

    @pytest.mark.asyncio
    async def test_retry_on_429(self) -> None:
        """Client retries on 429 status and succeeds on next attempt."""
        transport = FakeTransport(
            [
                httpx.Response(429, json={"error": "rate limited"}),
                httpx.Response(200, json={"ok": True}),
            ]
        )
        async with ReconHttpClient(transport=transport, retry_delay=0.01) as client:
            result = await client.get("https://example.com/api")
        assert result == {"ok": True}
        assert transport.call_count == 2

    @pytest.mark.asyncio
    async def test_retry_logs_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        """Each retry is logged at warning level with the status and attempt."""
        transport = FakeTransport([httpx.Response(503), httpx.Response(200, json={"ok": True})])
        async with ReconHttpClient(transport=transport, retry_delay=0.01) as client:
            with caplog.at_level("WARNING", logger="bibrecon.metadata.http"):
                await client.get("https://example.com/api")
        assert "HTTP 503" in caplog.text
        assert "attempt 1/3" in caplog.text

    @pytest.mark.asyncio
    async def test_retry_exhausted_raises(self) -> None:
        """After max retries, raises MetadataFetchError."""
        transport = FakeTransport([httpx.Response(500, json={"error": "server error"})] * 4)
        async with ReconHttpClient(transport=transport, max_retries=3, retry_delay=0.01) as client:
            with pytest.raises(MetadataFetchError, match="500"):
                await client.get("https://example.com/api")
        assert transport.call_count == 4  # 1 initial + 3 retries

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self) -> None:
        """A 200 response that isn't JSON raises MetadataFetchError."""
        transport = FakeTransport([httpx.Response(200, text="<html>oops</html>")])
        async with ReconHttpClient(transport=transport) as client:
            with pytest.raises(MetadataFetchError, match="Invalid JSON"):
                await client.get("https://example.com/api")
