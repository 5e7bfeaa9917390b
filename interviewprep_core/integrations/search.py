"""Tavily web search client."""

from typing import Optional

import httpx
import structlog

from interviewprep_core.config import Settings, get_settings
from interviewprep_core.integrations.base import SearchProvider, SearchResponse, SearchResult

logger = structlog.get_logger(__name__)


class TavilySearchProvider(SearchProvider):
    """Search through the Tavily REST API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.tavily.com",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise ValueError("Tavily API key is required")
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def query(self, query: str, max_results: int = 5) -> SearchResponse:
        logger.info("Web search", query=query[:60], max_results=max_results)
        response = await self._client.post(
            "/search",
            json={
                "api_key": self._api_key,
                "query": query,
                "max_results": max_results,
                "search_depth": "basic",
            },
        )
        response.raise_for_status()
        data = response.json()

        results = [
            SearchResult(
                title=item.get("title") or "Untitled",
                url=item.get("url", ""),
                snippet=(item.get("content") or "")[:2000],
                score=item.get("score"),
            )
            for item in data.get("results", [])
        ]
        return SearchResponse(query=query, results=results)

    async def close(self) -> None:
        await self._client.aclose()


def create_search_provider(settings: Optional[Settings] = None) -> Optional[SearchProvider]:
    """Configured search provider, or None when search is disabled."""
    settings = settings or get_settings()
    if not settings.search_enabled or not settings.tavily_api_key:
        return None
    return TavilySearchProvider(
        api_key=settings.tavily_api_key,
        base_url=settings.tavily_base_url,
    )


__all__ = ["TavilySearchProvider", "create_search_provider"]
