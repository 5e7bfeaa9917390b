"""Crawl4AI page crawl client."""

import time
from typing import Optional

import httpx
import structlog

from interviewprep_core.config import Settings, get_settings
from interviewprep_core.integrations.base import CrawlOptions, CrawlProvider, CrawlResult

logger = structlog.get_logger(__name__)


class Crawl4AIProvider(CrawlProvider):
    """Crawls pages through a Crawl4AI service.

    Every request carries an explicit timeout so a stalled page cannot hang
    the caller. Transport and HTTP failures are returned as unsuccessful
    results rather than raised.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        default_timeout_ms: int = 30000,
        client: Optional[httpx.AsyncClient] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._default_timeout_ms = default_timeout_ms
        self._client = client or httpx.AsyncClient(base_url=base_url, headers=headers)

    async def crawl_url(self, url: str, options: Optional[CrawlOptions] = None) -> CrawlResult:
        options = options or CrawlOptions()
        timeout_ms = options.timeout_ms or self._default_timeout_ms
        start = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - start) * 1000)

        try:
            response = await self._client.post(
                "/crawl",
                json={
                    "urls": [url],
                    "priority": options.priority,
                    "js_code": options.js_code,
                    "wait_for": options.wait_for,
                    "include_raw_html": options.include_raw_html,
                    "bypass_cache": options.bypass_cache,
                },
                timeout=timeout_ms / 1000,
            )
        except httpx.TimeoutException:
            logger.warning("Crawl timed out", url=url, timeout_ms=timeout_ms)
            return CrawlResult(url=url, success=False, error=f"Timed out after {timeout_ms}ms", crawl_time_ms=elapsed_ms())
        except httpx.HTTPError as e:
            logger.warning("Crawl request failed", url=url, error=str(e))
            return CrawlResult(url=url, success=False, error=str(e), crawl_time_ms=elapsed_ms())

        if response.status_code >= 400:
            return CrawlResult(
                url=url,
                success=False,
                error=f"HTTP {response.status_code}: {response.reason_phrase}",
                crawl_time_ms=elapsed_ms(),
            )

        results = response.json().get("results") or []
        if not results:
            return CrawlResult(
                url=url,
                success=False,
                error="No results returned from crawl service",
                crawl_time_ms=elapsed_ms(),
            )

        item = results[0]
        markdown = item.get("markdown")
        # Newer Crawl4AI versions nest markdown variants in an object
        if isinstance(markdown, dict):
            markdown = markdown.get("raw_markdown") or markdown.get("fit_markdown")

        links = item.get("links") or []
        if isinstance(links, dict):
            links = list(links.get("internal", [])) + list(links.get("external", []))

        return CrawlResult(
            url=item.get("url", url),
            success=bool(item.get("success")),
            markdown=markdown,
            metadata=item.get("metadata") or {},
            links=links,
            media=item.get("media") or {},
            error=item.get("error") or item.get("error_message"),
            crawl_time_ms=elapsed_ms(),
        )

    async def close(self) -> None:
        await self._client.aclose()


def create_crawl_provider(settings: Optional[Settings] = None) -> Optional[CrawlProvider]:
    """Configured crawl provider, or None when crawling is disabled."""
    settings = settings or get_settings()
    if not settings.crawl_enabled or not settings.crawl4ai_url:
        return None
    return Crawl4AIProvider(
        base_url=settings.crawl4ai_url,
        token=settings.crawl4ai_token,
        default_timeout_ms=settings.crawl4ai_timeout_ms,
    )


__all__ = ["Crawl4AIProvider", "create_crawl_provider"]
