"""Tests for the async HTTP client."""

import httpx
import pytest

from grants_extractor.core.http_client import HttpClient, ResponseCache


def make_client(handler, **kwargs):
    """HttpClient wired to an in-memory transport."""
    client = HttpClient(requests_per_second=1000, **kwargs)
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


class TestHttpClient:
    """Tests for HttpClient class."""

    @pytest.mark.asyncio
    async def test_requires_context(self):
        client = HttpClient()
        with pytest.raises(RuntimeError):
            await client.get("https://grants.gov/")

    @pytest.mark.asyncio
    async def test_get_is_cached(self):
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(200, text="<rss/>")

        client = make_client(handler)
        first = await client.get_text("https://grants.gov/feed.xml")
        second = await client.get_text("https://grants.gov/feed.xml")
        await client._client.aclose()

        assert first == second == "<rss/>"
        assert len(calls) == 1
        assert client.cache_size == 1

    @pytest.mark.asyncio
    async def test_cache_disabled(self):
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(200, text="ok")

        client = make_client(handler, enable_cache=False)
        await client.get("https://grants.gov/a")
        await client.get("https://grants.gov/a")
        await client._client.aclose()

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_user_agent_sent(self):
        seen = {}

        def handler(request):
            seen["ua"] = request.headers.get("User-Agent")
            return httpx.Response(200, text="ok")

        client = make_client(handler)
        await client.get("https://grants.gov/")
        await client._client.aclose()

        assert seen["ua"].startswith("Mozilla/5.0")

    @pytest.mark.asyncio
    async def test_http_error_raised(self):
        client = make_client(lambda request: httpx.Response(503))

        with pytest.raises(httpx.HTTPStatusError):
            await client.get("https://grants.gov/")
        await client._client.aclose()

    @pytest.mark.asyncio
    async def test_post_json(self):
        def handler(request):
            assert request.method == "POST"
            assert request.headers["Authorization"] == "Bearer k"
            return httpx.Response(200, json={"ok": True})

        client = make_client(handler)
        data = await client.post_json("https://api.example.com/x", {"q": 1}, headers={"Authorization": "Bearer k"})
        await client._client.aclose()

        assert data == {"ok": True}
        assert client.cache_size == 0

    @pytest.mark.asyncio
    async def test_clear_cache(self):
        client = make_client(lambda request: httpx.Response(200, text="ok"))
        await client.get("https://grants.gov/")
        await client._client.aclose()

        client.clear_cache()
        assert client.cache_size == 0


class TestResponseCache:
    """Tests for ResponseCache class."""

    def test_expired_entry_dropped(self):
        """Test entries older than the TTL are not served."""
        cache = ResponseCache(ttl=-1)
        cache.put("https://grants.gov/", httpx.Response(200, text="ok"))

        assert cache.get("https://grants.gov/") is None
        assert len(cache) == 0

    def test_cached_body_keeps_charset(self):
        """Test a rebuilt response decodes like the original."""
        cache = ResponseCache()
        original = httpx.Response(
            200,
            content="Café grants".encode("latin-1"),
            headers={"content-type": "text/html; charset=latin-1"},
        )
        cache.put("https://grants.gov/", original)

        rebuilt = cache.get("https://grants.gov/").to_response("https://grants.gov/")
        assert rebuilt.text == "Café grants"
