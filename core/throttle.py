"""
Per-Provider Rate Throttle

Each upstream provider has its own request budget. The throttle enforces a minimum
interval between two consecutive outbound calls to the same provider.

Guarantees:
    - Two releases for the same provider are never closer than its interval, even
      when many coroutines call acquire() concurrently. Waiters queue on a
      per-provider asyncio.Lock (FIFO), and the wait is computed from the last
      release time recorded by the previous waiter.
    - Providers have independent locks; a slow provider never delays a fast one.

Usage:
    throttle = RateThrottle({"coingecko": 1500, "coinpaprika": 100})
    await throttle.acquire("coingecko")
"""

import asyncio
from typing import Dict, Optional

from core.logging import get_logger
from core.utils.time import Clock, system_clock


class RateThrottle:
    """
    Minimum-interval gate per provider.

    Args:
        min_intervals_ms: Provider name -> minimum spacing in milliseconds.
                          Providers not listed are not throttled.
        clock: Time source (virtual in tests)
    """

    def __init__(self, min_intervals_ms: Dict[str, int], clock: Optional[Clock] = None) -> None:
        self._intervals = {name: ms / 1000.0 for name, ms in min_intervals_ms.items()}
        self._clock = clock or system_clock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._last_release: Dict[str, float] = {}
        self._logger = get_logger(__name__)

    def interval_for(self, provider: str) -> float:
        """Minimum spacing for a provider in seconds (0.0 if unthrottled)."""
        return self._intervals.get(provider, 0.0)

    def last_release(self, provider: str) -> Optional[float]:
        """Monotonic time of the most recent release, or None if never acquired."""
        return self._last_release.get(provider)

    async def acquire(self, provider: str) -> None:
        """
        Wait until the provider's interval has elapsed since its last release.

        Args:
            provider: Provider name (e.g. "coingecko")
        """
        lock = self._locks.get(provider)
        if lock is None:
            lock = self._locks[provider] = asyncio.Lock()

        async with lock:
            interval = self.interval_for(provider)
            last = self._last_release.get(provider)
            if last is not None:
                wait = last + interval - self._clock.monotonic()
                if wait > 0:
                    self._logger.debug(f"Throttling {provider} for {wait * 1000:.0f}ms")
                    await self._clock.sleep(wait)
            self._last_release[provider] = self._clock.monotonic()
