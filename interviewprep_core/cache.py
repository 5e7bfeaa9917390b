"""
Refreshing Cache
================

Process-wide, read-mostly cache for values fetched from slow upstreams
(model pricing, tier configuration).

Features:
    - Time-to-live with an injectable clock
    - Single-flight refresh: concurrent readers share one upstream fetch
    - Stale-on-failure: a failed refresh keeps serving the last good value,
      or a static fallback when nothing was ever loaded
    - Retry delay: after a failure the loader is not called again until the
      delay has passed, as long as there is something to serve

Usage:
    cache = RefreshingCache(loader=fetch_pricing, ttl_seconds=900, fallback=STATIC)
    pricing = await cache.get()
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass
class CacheInfo:
    """Snapshot of cache state."""

    has_value: bool
    age_seconds: Optional[float]
    ttl_seconds: float
    is_stale: bool
    refresh_failures: int
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_value": self.has_value,
            "age_seconds": self.age_seconds,
            "ttl_seconds": self.ttl_seconds,
            "is_stale": self.is_stale,
            "refresh_failures": self.refresh_failures,
            "last_error": self.last_error,
        }


class RefreshingCache(Generic[T]):
    """TTL cache around an async loader."""

    def __init__(
        self,
        loader: Callable[[], Awaitable[T]],
        ttl_seconds: float,
        clock: Optional[Clock] = None,
        fallback: Optional[T] = None,
        name: str = "cache",
        retry_delay_seconds: Optional[float] = None,
    ):
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock or time.monotonic
        self._fallback = fallback
        self._name = name
        self._retry_delay = ttl_seconds if retry_delay_seconds is None else retry_delay_seconds

        self._value: Optional[T] = None
        self._loaded_at: Optional[float] = None
        self._retry_at: Optional[float] = None
        self._lock = asyncio.Lock()
        # Completed refresh attempts, successful or not
        self._attempts = 0
        self._failures = 0
        self._last_error: Optional[str] = None
        self._last_exception: Optional[BaseException] = None

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def is_stale(self) -> bool:
        """True when no value is loaded or the loaded value has expired."""
        if self._loaded_at is None:
            return True
        return self._clock() - self._loaded_at >= self._ttl

    def peek(self) -> Optional[T]:
        """Return the cached value without refreshing."""
        return self._value

    def in_retry_delay(self) -> bool:
        """True while a failed refresh is waiting out its retry delay."""
        return self._retry_at is not None and self._clock() < self._retry_at

    async def get(self) -> T:
        """Return the cached value, refreshing first when stale.

        After a failed refresh the stale value or fallback is served without
        calling the loader until the retry delay passes.
        """
        if not self.is_stale():
            return self._value  # type: ignore[return-value]
        if self.in_retry_delay() and (self._value is not None or self._fallback is not None):
            return self._current()

        attempt = self._attempts
        async with self._lock:
            # Another reader finished a refresh attempt while we waited.
            if self._attempts != attempt:
                return self._current()
            await self._refresh_locked()
            return self._current()

    async def refresh(self) -> T:
        """Force a refresh regardless of age."""
        async with self._lock:
            await self._refresh_locked()
            return self._current()

    def invalidate(self) -> None:
        """Drop the cached value so the next read reloads it."""
        self._value = None
        self._loaded_at = None
        self._retry_at = None

    def info(self) -> CacheInfo:
        age = None
        if self._loaded_at is not None:
            age = self._clock() - self._loaded_at
        return CacheInfo(
            has_value=self._value is not None,
            age_seconds=age,
            ttl_seconds=self._ttl,
            is_stale=self.is_stale(),
            refresh_failures=self._failures,
            last_error=self._last_error,
        )

    async def _refresh_locked(self) -> None:
        try:
            value = await self._loader()
        except Exception as e:
            self._attempts += 1
            self._failures += 1
            self._last_error = str(e)
            self._last_exception = e
            self._retry_at = self._clock() + self._retry_delay
            logger.warning(
                "Cache refresh failed, serving previous value",
                cache=self._name,
                error=str(e),
                has_value=self._value is not None,
                retry_in_seconds=self._retry_delay,
            )
            return

        self._attempts += 1
        self._value = value
        self._loaded_at = self._clock()
        self._retry_at = None
        self._last_error = None
        self._last_exception = None
        logger.debug("Cache refreshed", cache=self._name)

    def _current(self) -> T:
        if self._value is not None:
            return self._value
        if self._fallback is not None:
            return self._fallback
        if self._last_exception is not None:
            raise self._last_exception
        raise LookupError(f"{self._name} has no value and no fallback")


__all__ = ["CacheInfo", "Clock", "RefreshingCache"]
