"""
Redis Storage
=============

Redis-backed implementations of the storage contracts, shared across
processes.

Features:
    - JSON values for settings
    - Append-only records kept in Redis lists
    - Atomic compare-and-increment via a Lua script
"""

import json
from typing import Any, Dict, List, Optional

import redis.asyncio as redis
import structlog

from interviewprep_core.storage.base import (
    CounterStore,
    IncrementResult,
    KeyValueStore,
    RecordStore,
)

logger = structlog.get_logger(__name__)


def create_client(redis_url: str) -> "redis.Redis":
    """Create a Redis client that decodes responses to str."""
    return redis.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
    )


class RedisKeyValueStore(KeyValueStore):
    def __init__(self, client: "redis.Redis", key_prefix: str = "settings:"):
        self._redis = client
        self._key_prefix = key_prefix

    async def get(self, key: str) -> Optional[Any]:
        raw = await self._redis.get(f"{self._key_prefix}{key}")
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        await self._redis.set(f"{self._key_prefix}{key}", json.dumps(value))

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._key_prefix}{key}")


class RedisRecordStore(RecordStore):
    def __init__(self, client: "redis.Redis", key_prefix: str = "records:"):
        self._redis = client
        self._key_prefix = key_prefix

    async def append(self, collection: str, record: Dict[str, Any]) -> None:
        await self._redis.rpush(
            f"{self._key_prefix}{collection}",
            json.dumps(record, default=str),
        )

    async def list(
        self,
        collection: str,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        start = -limit if limit else 0
        raw = await self._redis.lrange(f"{self._key_prefix}{collection}", start, -1)
        return [json.loads(item) for item in raw]


class RedisCounterStore(CounterStore):
    """Counters with a server-side guarded increment."""

    # Lua script for atomic compare-and-increment
    GUARDED_INCREMENT_SCRIPT = """
    local key = KEYS[1]
    local units = tonumber(ARGV[1])
    local limit = tonumber(ARGV[2])
    local ttl = tonumber(ARGV[3])

    local current = tonumber(redis.call('GET', key)) or 0
    if current + units > limit then
        return {0, current}
    end

    local updated = redis.call('INCRBY', key, units)
    if ttl > 0 and updated == units then
        redis.call('EXPIRE', key, ttl)
    end

    return {1, updated}
    """

    def __init__(self, client: "redis.Redis", key_prefix: str = "counter:"):
        self._redis = client
        self._key_prefix = key_prefix
        self._increment_sha: Optional[str] = None

    async def _ensure_script(self) -> str:
        if self._increment_sha is None:
            self._increment_sha = await self._redis.script_load(
                self.GUARDED_INCREMENT_SCRIPT
            )
        return self._increment_sha

    async def read(self, key: str) -> int:
        raw = await self._redis.get(f"{self._key_prefix}{key}")
        return int(raw) if raw is not None else 0

    async def try_increment(
        self,
        key: str,
        units: int,
        limit: int,
        ttl_seconds: Optional[int] = None,
    ) -> IncrementResult:
        sha = await self._ensure_script()
        result = await self._redis.evalsha(
            sha,
            1,
            f"{self._key_prefix}{key}",
            str(units),
            str(limit),
            str(ttl_seconds or 0),
        )

        applied = bool(int(result[0]))
        value = int(result[1])
        if not applied:
            logger.debug("Guarded increment refused", key=key, value=value, limit=limit)
        return IncrementResult(applied=applied, value=value)


__all__ = [
    "create_client",
    "RedisKeyValueStore",
    "RedisRecordStore",
    "RedisCounterStore",
]
