"""
Quota Guard
===========

Admission control for metered tools such as page crawling.

Features:
    - Side-effect-free check with per-request and per-day limits
    - Atomic consume through the counter store's guarded increment
    - Daily UTC periods; a new day starts from zero without any sweep
    - Plan limits overridable in the settings store
    - Crawl audit records and recent-activity stats

Usage:
    guard = QuotaGuard(counters=counter_store, settings=kv_store)

    check = await guard.check(user_id, Plan.PRO, requested_units=3)
    if check.allowed:
        pages = await crawl(urls)
        await guard.consume(user_id, Plan.PRO, units=len(pages))
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

import structlog

from interviewprep_core.config import Settings
from interviewprep_core.quota.base import (
    DEFAULT_QUOTAS,
    CrawlLogRecord,
    CrawlStats,
    CrawlStatus,
    QuotaCheck,
    QuotaLimits,
    QuotaRecord,
    QuotaStatus,
    max_units_setting_key,
    quota_setting_key,
)
from interviewprep_core.storage.base import CounterStore, KeyValueStore, RecordStore
from interviewprep_core.tiers.base import Plan

logger = structlog.get_logger(__name__)

CRAWL_LOG_COLLECTION = "crawl_logs"

# Counters outlive their day by one extra day
PERIOD_TTL_SECONDS = 2 * 24 * 60 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def limits_from_settings(settings: Settings) -> Dict[Plan, QuotaLimits]:
    """Per-plan default limits taken from application settings."""
    return {
        Plan.FREE: QuotaLimits(settings.crawl_quota_free, settings.crawl_max_urls_free),
        Plan.PRO: QuotaLimits(settings.crawl_quota_pro, settings.crawl_max_urls_pro),
        Plan.MAX: QuotaLimits(settings.crawl_quota_max, settings.crawl_max_urls_max),
    }


class QuotaGuard:
    """Per-user daily quota for one metered resource."""

    def __init__(
        self,
        counters: CounterStore,
        settings: Optional[KeyValueStore] = None,
        records: Optional[RecordStore] = None,
        defaults: Optional[Dict[Plan, QuotaLimits]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        resource: str = "crawl",
    ):
        self._counters = counters
        self._settings = settings
        self._records = records
        self._defaults = defaults or DEFAULT_QUOTAS
        self._clock = clock or _utcnow
        self._resource = resource

    def period_key(self, now: Optional[datetime] = None) -> str:
        """Daily UTC bucket, e.g. "2024-05-01"."""
        now = now or self._clock()
        return now.astimezone(timezone.utc).strftime("%Y-%m-%d")

    def _counter_key(self, user_id: str, plan: Plan, period_key: str) -> str:
        return f"quota:{self._resource}:{user_id}:{Plan(plan).value}:{period_key}"

    async def _setting_int(self, key: str, default: int) -> int:
        if self._settings is None:
            return default
        value = await self._settings.get(key)
        if value is None:
            return default
        return int(value)

    async def get_limits(self, plan: Plan) -> QuotaLimits:
        """Plan limits, with settings-store overrides applied."""
        plan = Plan(plan)
        default = self._defaults[plan]
        daily, max_units = await asyncio.gather(
            self._setting_int(quota_setting_key(plan), default.daily),
            self._setting_int(max_units_setting_key(plan), default.max_units_per_request),
        )
        return QuotaLimits(daily=daily, max_units_per_request=max_units)

    async def get_record(self, user_id: str, plan: Plan) -> QuotaRecord:
        """Usage for the current period."""
        plan = Plan(plan)
        period = self.period_key()
        limits, used = await asyncio.gather(
            self.get_limits(plan),
            self._counters.read(self._counter_key(user_id, plan, period)),
        )
        return QuotaRecord(
            user_id=user_id,
            plan=plan,
            period_key=period,
            used=used,
            limit=limits.daily,
        )

    async def check(self, user_id: str, plan: Plan, requested_units: int = 1) -> QuotaCheck:
        """Check whether the user may consume the requested units.

        Advisory only: nothing is reserved or written.
        """
        plan = Plan(plan)
        limits = await self.get_limits(plan)
        record = await self.get_record(user_id, plan)
        remaining = record.limit - record.used

        if requested_units > limits.max_units_per_request:
            return self._reject(
                user_id,
                QuotaCheck(
                    allowed=False,
                    remaining=max(0, remaining),
                    limit=record.limit,
                    message=(
                        f"Cannot crawl {requested_units} URLs at once. {plan.value} plan "
                        f"allows maximum {limits.max_units_per_request} URLs per request."
                    ),
                ),
            )

        if remaining <= 0:
            return self._reject(
                user_id,
                QuotaCheck(
                    allowed=False,
                    remaining=0,
                    limit=record.limit,
                    message=(
                        f"Daily crawl quota exceeded ({record.used}/{record.limit} used). "
                        "Quota resets at midnight UTC."
                    ),
                ),
            )

        if requested_units > remaining:
            return self._reject(
                user_id,
                QuotaCheck(
                    allowed=False,
                    remaining=remaining,
                    limit=record.limit,
                    message=(
                        f"Insufficient quota. Requested {requested_units} crawls but only "
                        f"{remaining} remaining today."
                    ),
                ),
            )

        return QuotaCheck(allowed=True, remaining=remaining, limit=record.limit)

    async def consume(self, user_id: str, plan: Plan, units: int) -> QuotaCheck:
        """Atomically consume units for completed work.

        The increment is refused as a whole when it would exceed the limit,
        so used never passes the limit under concurrent consumers.

        Returns:
            QuotaCheck after the attempt; allowed is False when refused
        """
        if units <= 0:
            raise ValueError("units must be positive")

        plan = Plan(plan)
        limits = await self.get_limits(plan)
        key = self._counter_key(user_id, plan, self.period_key())
        result = await self._counters.try_increment(
            key,
            units,
            limits.daily,
            ttl_seconds=PERIOD_TTL_SECONDS,
        )
        remaining = max(0, limits.daily - result.value)

        if not result.applied:
            return self._reject(
                user_id,
                QuotaCheck(
                    allowed=False,
                    remaining=remaining,
                    limit=limits.daily,
                    message=(
                        f"Insufficient quota. Requested {units} crawls but only "
                        f"{remaining} remaining today."
                    ),
                ),
            )

        logger.debug("Quota consumed", user_id=user_id, units=units, used=result.value)
        return QuotaCheck(allowed=True, remaining=remaining, limit=limits.daily)

    async def status(self, user_id: str, plan: Plan) -> QuotaStatus:
        """Usage, limit and next reset (midnight UTC)."""
        record = await self.get_record(user_id, plan)
        now = self._clock().astimezone(timezone.utc)
        resets_at = datetime(now.year, now.month, now.day, tzinfo=timezone.utc) + timedelta(days=1)
        return QuotaStatus(
            used=record.used,
            limit=record.limit,
            remaining=record.remaining,
            resets_at=resets_at,
        )

    async def log_crawl(self, record: CrawlLogRecord) -> None:
        """Append a crawl audit record."""
        if self._records is None:
            return
        await self._records.append(CRAWL_LOG_COLLECTION, record.to_dict())

    async def get_crawl_stats(self, user_id: str, days: int = 7) -> CrawlStats:
        """Crawl totals and success rate over the last days."""
        if self._records is None:
            return CrawlStats(total_crawls=0, total_urls=0, success_rate=0.0)

        cutoff = self._clock() - timedelta(days=days)
        logs = [
            log for log in await self._records.list(CRAWL_LOG_COLLECTION)
            if log.get("user_id") == user_id
            and datetime.fromisoformat(log["created_at"]) >= cutoff
        ]
        total = len(logs)
        successful = sum(1 for log in logs if log.get("status") == CrawlStatus.SUCCESS.value)
        return CrawlStats(
            total_crawls=total,
            total_urls=sum(len(log.get("urls", [])) for log in logs),
            success_rate=successful / total if total else 0.0,
        )

    def _reject(self, user_id: str, check: QuotaCheck) -> QuotaCheck:
        logger.info(
            "Quota rejected",
            user_id=user_id,
            resource=self._resource,
            remaining=check.remaining,
            limit=check.limit,
        )
        return check


__all__ = ["QuotaGuard", "limits_from_settings", "CRAWL_LOG_COLLECTION"]
