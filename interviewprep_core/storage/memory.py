"""In-memory storage for development and tests.

Does not share state across processes.
"""

import asyncio
import copy
from typing import Any, Dict, List, Optional

from interviewprep_core.storage.base import (
    CounterStore,
    IncrementResult,
    KeyValueStore,
    RecordStore,
)


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    async def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class InMemoryRecordStore(RecordStore):
    def __init__(self):
        self._collections: Dict[str, List[Dict[str, Any]]] = {}

    async def append(self, collection: str, record: Dict[str, Any]) -> None:
        self._collections.setdefault(collection, []).append(copy.deepcopy(record))

    async def list(
        self,
        collection: str,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        records = self._collections.get(collection, [])
        if limit is not None:
            records = records[-limit:]
        return copy.deepcopy(records)


class InMemoryCounterStore(CounterStore):
    """Counters guarded by a single asyncio lock.

    Expiry is not tracked; period-scoped keys make stale counters unreachable.
    """

    def __init__(self):
        self._counters: Dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def read(self, key: str) -> int:
        return self._counters.get(key, 0)

    async def try_increment(
        self,
        key: str,
        units: int,
        limit: int,
        ttl_seconds: Optional[int] = None,
    ) -> IncrementResult:
        async with self._lock:
            current = self._counters.get(key, 0)
            if current + units > limit:
                return IncrementResult(applied=False, value=current)
            self._counters[key] = current + units
            return IncrementResult(applied=True, value=current + units)


__all__ = ["InMemoryKeyValueStore", "InMemoryRecordStore", "InMemoryCounterStore"]
