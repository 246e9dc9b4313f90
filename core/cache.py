"""
In-Memory Result Cache

Short-lived memoization of aggregator results keyed by logical query
(e.g. "coins:1:100", "history:bitcoin:7").

Policy:
    - Each entry carries its own TTL, chosen per operation kind.
    - An entry is absent once now - stored_at >= ttl.
    - Expired entries are deleted lazily on lookup; there is no background sweep,
      no capacity bound and no LRU. The key space is bounded by the distinct
      (operation, parameters) pairs actually requested.
"""

from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar

from core.logging import get_logger
from core.utils.time import Clock, system_clock

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with the time it was stored and its TTL (seconds)."""

    value: T
    stored_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at >= self.ttl


class ResultCache:
    """
    TTL cache with lazy eviction.

    Example:
        >>> cache = ResultCache()
        >>> cache.put("coins:1:100", coins, ttl=60)
        >>> cache.get("coins:1:100") is coins
        True
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or system_clock
        self._entries: Dict[str, CacheEntry[Any]] = {}
        self._logger = get_logger(__name__)

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock.now()):
            del self._entries[key]
            self._logger.debug(f"Cache expired: {key}")
            return None
        return entry.value

    def put(self, key: str, value: Any, ttl: float) -> None:
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock.now(), ttl=ttl)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        # Does not evict; use get() for TTL-aware reads
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
