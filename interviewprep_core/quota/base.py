"""
Quota Base Types

Data model for per-user, per-period budgets on metered tools.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from interviewprep_core.tiers.base import Plan


@dataclass(frozen=True)
class QuotaLimits:
    """Budget for one plan."""

    daily: int
    max_units_per_request: int


DEFAULT_QUOTAS: Dict[Plan, QuotaLimits] = {
    Plan.FREE: QuotaLimits(daily=10, max_units_per_request=3),
    Plan.PRO: QuotaLimits(daily=75, max_units_per_request=10),
    Plan.MAX: QuotaLimits(daily=250, max_units_per_request=25),
}


def quota_setting_key(plan: Plan) -> str:
    return f"crawl.quota.{Plan(plan).value.lower()}"


def max_units_setting_key(plan: Plan) -> str:
    return f"crawl.maxUrls.{Plan(plan).value.lower()}"


@dataclass
class QuotaRecord:
    """Usage of one user within one period. 0 <= used <= limit."""

    user_id: str
    plan: Plan
    period_key: str
    used: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)


@dataclass
class QuotaCheck:
    """Admission decision. Returned instead of raising on exhaustion."""

    allowed: bool
    remaining: int
    limit: int
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "allowed": self.allowed,
            "remaining": self.remaining,
            "limit": self.limit,
        }
        if self.message is not None:
            data["message"] = self.message
        return data


@dataclass
class QuotaStatus:
    """Current usage for display."""

    used: int
    limit: int
    remaining: int
    resets_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "used": self.used,
            "limit": self.limit,
            "remaining": self.remaining,
            "resets_at": self.resets_at.isoformat(),
        }


class CrawlStatus(str, Enum):
    """Outcome of a crawl attempt."""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class CrawlLogRecord:
    """Audit record of one crawl attempt."""

    user_id: str
    request_id: str
    urls: List[str]
    plan: Plan
    status: CrawlStatus
    result_count: int = 0
    crawl_time_ms: int = 0
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "request_id": self.request_id,
            "urls": list(self.urls),
            "plan": Plan(self.plan).value,
            "status": CrawlStatus(self.status).value,
            "result_count": self.result_count,
            "crawl_time_ms": self.crawl_time_ms,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class CrawlStats:
    """Aggregate crawl activity over recent days."""

    total_crawls: int
    total_urls: int
    success_rate: float


__all__ = [
    "QuotaLimits",
    "DEFAULT_QUOTAS",
    "quota_setting_key",
    "max_units_setting_key",
    "QuotaRecord",
    "QuotaCheck",
    "QuotaStatus",
    "CrawlStatus",
    "CrawlLogRecord",
    "CrawlStats",
]
