"""Unit tests for the search and crawl clients."""

import json

import httpx
import pytest

from interviewprep_core.config import Settings
from interviewprep_core.integrations.base import CrawlOptions
from interviewprep_core.integrations.crawl import Crawl4AIProvider, create_crawl_provider
from interviewprep_core.integrations.search import TavilySearchProvider, create_search_provider


def mock_client(handler, base_url: str) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=base_url, transport=httpx.MockTransport(handler))


class TestTavilySearch:
    """Tests for TavilySearchProvider."""

    @pytest.mark.asyncio
    async def test_query(self):
        sent = {}

        def handler(request: httpx.Request) -> httpx.Response:
            sent.update(json.loads(request.content))
            return httpx.Response(200, json={
                "results": [
                    {"title": "FastAPI jobs", "url": "https://jobs.dev/1", "content": "Hiring", "score": 0.9},
                    {"url": "https://jobs.dev/2", "content": None},
                ],
            })

        provider = TavilySearchProvider("tvly-key", client=mock_client(handler, "https://api.tavily.com"))

        response = await provider.query("python jobs", max_results=2)
        await provider.close()

        assert sent["query"] == "python jobs"
        assert sent["max_results"] == 2
        assert sent["api_key"] == "tvly-key"
        assert response.results[0].score == 0.9
        assert response.results[1].title == "Untitled"
        assert response.results[1].snippet == ""

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        provider = TavilySearchProvider(
            "tvly-key",
            client=mock_client(lambda request: httpx.Response(401), "https://api.tavily.com"),
        )

        with pytest.raises(httpx.HTTPStatusError):
            await provider.query("python jobs")

    def test_api_key_required(self):
        with pytest.raises(ValueError):
            TavilySearchProvider("")

    def test_factory_disabled_without_key(self):
        assert create_search_provider(Settings(tavily_api_key="")) is None
        assert create_search_provider(Settings(tavily_api_key="k", search_enabled=False)) is None


class TestCrawl4AI:
    """Tests for Crawl4AIProvider."""

    @pytest.mark.asyncio
    async def test_crawl_success(self):
        sent = {}

        def handler(request: httpx.Request) -> httpx.Response:
            sent.update(json.loads(request.content))
            return httpx.Response(200, json={
                "results": [{
                    "url": "https://a.dev",
                    "success": True,
                    "markdown": {"raw_markdown": "# A"},
                    "metadata": {"title": "A"},
                    "links": {"internal": [{"href": "/x"}], "external": [{"href": "https://b.dev"}]},
                }],
            })

        provider = Crawl4AIProvider("http://crawl4ai:11235", client=mock_client(handler, "http://crawl4ai:11235"))

        result = await provider.crawl_url("https://a.dev", CrawlOptions(priority=8))

        assert sent["urls"] == ["https://a.dev"]
        assert sent["priority"] == 8
        assert result.success is True
        assert result.markdown == "# A"
        assert result.metadata == {"title": "A"}
        assert len(result.links) == 2

    @pytest.mark.asyncio
    async def test_http_error_is_unsuccessful_result(self):
        provider = Crawl4AIProvider(
            "http://crawl4ai:11235",
            client=mock_client(lambda request: httpx.Response(500), "http://crawl4ai:11235"),
        )

        result = await provider.crawl_url("https://a.dev")

        assert result.success is False
        assert result.error.startswith("HTTP 500")

    @pytest.mark.asyncio
    async def test_timeout_is_unsuccessful_result(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        provider = Crawl4AIProvider("http://crawl4ai:11235", client=mock_client(handler, "http://crawl4ai:11235"))

        result = await provider.crawl_url("https://a.dev", CrawlOptions(timeout_ms=500))

        assert result.success is False
        assert result.error == "Timed out after 500ms"

    @pytest.mark.asyncio
    async def test_empty_results(self):
        provider = Crawl4AIProvider(
            "http://crawl4ai:11235",
            client=mock_client(lambda request: httpx.Response(200, json={"results": []}), "http://crawl4ai:11235"),
        )

        result = await provider.crawl_url("https://a.dev")

        assert result.success is False
        assert result.error == "No results returned from crawl service"

    def test_factory_disabled_without_url(self):
        assert create_crawl_provider(Settings(crawl4ai_url=None)) is None
