"""
Integration Base Types

Contracts for the web search and page crawl collaborators.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class SearchResult:
    """One ranked search hit."""

    title: str
    url: str
    snippet: str = ""
    score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "snippet": self.snippet, "url": self.url}


@dataclass
class SearchResponse:
    query: str
    results: List[SearchResult] = field(default_factory=list)


@dataclass
class CrawlOptions:
    """Per-call crawl options."""

    priority: int = 5  # 1-10, higher is processed sooner
    timeout_ms: Optional[int] = None
    include_raw_html: bool = False
    bypass_cache: bool = False
    wait_for: Optional[str] = None
    js_code: Optional[str] = None


@dataclass
class CrawlResult:
    """Extracted page content."""

    url: str
    success: bool
    markdown: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    links: List[Dict[str, Any]] = field(default_factory=list)
    media: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    crawl_time_ms: int = 0


class SearchProvider(ABC):
    """Query to ranked snippets."""

    @abstractmethod
    async def query(self, query: str, max_results: int = 5) -> SearchResponse:
        pass

    async def close(self) -> None:
        pass


class CrawlProvider(ABC):
    """URL to extracted markdown plus metadata."""

    @abstractmethod
    async def crawl_url(self, url: str, options: Optional[CrawlOptions] = None) -> CrawlResult:
        """Crawl one URL. Failures come back as CrawlResult(success=False)."""
        pass

    async def close(self) -> None:
        pass


__all__ = [
    "SearchResult",
    "SearchResponse",
    "CrawlOptions",
    "CrawlResult",
    "SearchProvider",
    "CrawlProvider",
]
