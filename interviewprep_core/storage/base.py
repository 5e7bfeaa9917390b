"""
Storage Contracts

Narrow persistence interfaces the core depends on: key/value settings,
append-only records and atomic counters.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass
class IncrementResult:
    """Outcome of a guarded counter increment."""

    applied: bool
    value: int


class KeyValueStore(ABC):
    """Settings storage keyed by string."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get a value, or None when the key is absent."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass


class RecordStore(ABC):
    """Append-only record storage grouped by collection."""

    @abstractmethod
    async def append(self, collection: str, record: Dict[str, Any]) -> None:
        """Append a record. Records are never updated."""
        pass

    @abstractmethod
    async def list(
        self,
        collection: str,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """List records in insertion order."""
        pass


class CounterStore(ABC):
    """Integer counters with an atomic compare-and-increment."""

    @abstractmethod
    async def read(self, key: str) -> int:
        """Current counter value, 0 when absent."""
        pass

    @abstractmethod
    async def try_increment(
        self,
        key: str,
        units: int,
        limit: int,
        ttl_seconds: Optional[int] = None,
    ) -> IncrementResult:
        """Add units only if the result stays within limit.

        Must be atomic with respect to concurrent callers on the same key.

        Args:
            key: Counter key
            units: Amount to add
            limit: Upper bound the counter may never exceed
            ttl_seconds: Optional expiry applied when the counter is created

        Returns:
            IncrementResult with the counter value after the attempt
        """
        pass


__all__ = ["IncrementResult", "KeyValueStore", "RecordStore", "CounterStore"]
