"""Web search and crawl collaborators."""

from interviewprep_core.integrations.base import (
    CrawlOptions,
    CrawlProvider,
    CrawlResult,
    SearchProvider,
    SearchResponse,
    SearchResult,
)
from interviewprep_core.integrations.crawl import Crawl4AIProvider, create_crawl_provider
from interviewprep_core.integrations.search import TavilySearchProvider, create_search_provider

__all__ = [
    "CrawlOptions",
    "CrawlProvider",
    "CrawlResult",
    "SearchProvider",
    "SearchResponse",
    "SearchResult",
    "Crawl4AIProvider",
    "create_crawl_provider",
    "TavilySearchProvider",
    "create_search_provider",
]
