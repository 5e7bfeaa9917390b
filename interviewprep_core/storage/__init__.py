"""Persistence contracts and implementations."""

from interviewprep_core.storage.base import (
    CounterStore,
    IncrementResult,
    KeyValueStore,
    RecordStore,
)
from interviewprep_core.storage.memory import (
    InMemoryCounterStore,
    InMemoryKeyValueStore,
    InMemoryRecordStore,
)

__all__ = [
    "CounterStore",
    "IncrementResult",
    "KeyValueStore",
    "RecordStore",
    "InMemoryCounterStore",
    "InMemoryKeyValueStore",
    "InMemoryRecordStore",
]
