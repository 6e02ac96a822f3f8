"""Tests for the async HTTP client."""

import httpx
import pytest

from grant_tracker.core.http_client import USER_AGENT, HttpClient, RateLimiter


def make_client(handler, max_retries: int = 1) -> HttpClient:
    return HttpClient(
        requests_per_second=1000,
        timeout=5,
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
    )


class TestHttpClient:
    """Tests for HttpClient class."""

    @pytest.mark.asyncio
    async def test_get_json(self):
        seen = {}

        def handler(request):
            seen["user_agent"] = request.headers.get("User-Agent")
            return httpx.Response(200, json={"ok": True})

        async with make_client(handler) as client:
            assert await client.get_json("https://api.example.gov/items") == {"ok": True}

        assert seen["user_agent"] == USER_AGENT

    @pytest.mark.asyncio
    async def test_post_json_sends_body(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = request.read()
            seen["content_type"] = request.headers.get("Content-Type")
            return httpx.Response(200, json={"results": []})

        async with make_client(handler) as client:
            result = await client.post_json("https://api.example.gov/search", {"keyword": "arts"})

        assert result == {"results": []}
        assert seen["method"] == "POST"
        assert seen["content_type"] == "application/json"
        assert b'"keyword"' in seen["body"]

    @pytest.mark.asyncio
    async def test_get_text(self):
        def handler(request):
            return httpx.Response(200, text="<rss/>")

        async with make_client(handler) as client:
            assert await client.get_text("https://feeds.example.org/rss") == "<rss/>"

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        def handler(request):
            return httpx.Response(404, text="missing")

        async with make_client(handler) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await client.get_json("https://api.example.gov/missing")

    @pytest.mark.asyncio
    async def test_network_error_retried(self):
        """A connection error is retried until max_retries is reached."""
        calls = []

        def handler(request):
            calls.append(request.url)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"ok": True})

        async with make_client(handler, max_retries=2) as client:
            assert await client.get_json("https://api.example.gov/flaky") == {"ok": True}

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_status_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(500)

        async with make_client(handler, max_retries=3) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await client.get_json("https://api.example.gov/broken")

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_requires_open_client(self):
        client = make_client(lambda request: httpx.Response(200))
        assert client.is_open is False
        with pytest.raises(RuntimeError):
            await client.get_json("https://api.example.gov/items")

    @pytest.mark.asyncio
    async def test_aclose(self):
        client = make_client(lambda request: httpx.Response(200))
        await client.__aenter__()
        assert client.is_open is True
        await client.aclose()
        assert client.is_open is False

    def test_rate_limiter_per_domain(self):
        client = make_client(lambda request: httpx.Response(200))
        a = client._get_rate_limiter("https://api.grants.gov/v1/search2")
        b = client._get_rate_limiter("https://api.grants.gov/other")
        c = client._get_rate_limiter("https://api.usaspending.gov/api")

        assert a is b
        assert a is not c


class TestRateLimiter:
    """Tests for RateLimiter class."""

    @pytest.mark.asyncio
    async def test_acquire_records_time(self):
        limiter = RateLimiter(requests_per_second=1000)
        await limiter.acquire()
        first = limiter.last_request
        await limiter.acquire()
        assert limiter.last_request >= first
