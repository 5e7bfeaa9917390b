"""Quota admission control for metered tools."""

from interviewprep_core.quota.base import (
    DEFAULT_QUOTAS,
    CrawlLogRecord,
    CrawlStats,
    CrawlStatus,
    QuotaCheck,
    QuotaLimits,
    QuotaRecord,
    QuotaStatus,
)
from interviewprep_core.quota.guard import QuotaGuard, limits_from_settings

__all__ = [
    "DEFAULT_QUOTAS",
    "CrawlLogRecord",
    "CrawlStats",
    "CrawlStatus",
    "QuotaCheck",
    "QuotaLimits",
    "QuotaRecord",
    "QuotaStatus",
    "QuotaGuard",
    "limits_from_settings",
]
