"""
Time Utilities

Providers disagree on timestamp formats:
- CoinGecko market charts: milliseconds since epoch
- CoinCap history: milliseconds since epoch
- Asset metadata: ISO-8601 strings

This module normalizes those into UTC datetimes / epoch-millis, and provides the
injectable Clock used by the throttle, health tracker and caches so that tests can
simulate elapsed time without real waiting.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Callable, Union


def to_utc_datetime(timestamp: Union[int, float]) -> datetime:
    """
    Convert a timestamp (seconds or milliseconds) to UTC datetime.

    Detection Logic:
        - If timestamp > 1e12: Assumed to be milliseconds
        - Otherwise: Assumed to be seconds

    Args:
        timestamp: Unix timestamp in seconds or milliseconds

    Returns:
        datetime: Timezone-aware datetime object in UTC

    Raises:
        ValueError: If timestamp is negative or invalid

    Examples:
        >>> to_utc_datetime(1704110400000)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
        >>> to_utc_datetime(1704110400)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if timestamp < 0:
        raise ValueError(f"Timestamp cannot be negative: {timestamp}")

    if timestamp > 1e12:
        timestamp = timestamp / 1000.0

    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OSError, OverflowError, ValueError) as e:
        raise ValueError(f"Invalid timestamp: {timestamp}. Error: {e}")


def datetime_to_timestamp(dt: datetime, milliseconds: bool = False) -> int:
    """
    Convert a datetime object to Unix timestamp.

    Naive datetimes are assumed to be UTC.

    Examples:
        >>> dt = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        >>> datetime_to_timestamp(dt, milliseconds=True)
        1704110400000
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    timestamp = int(dt.timestamp())

    if milliseconds:
        timestamp *= 1000

    return timestamp


def current_utc_timestamp(milliseconds: bool = False) -> int:
    """Get current UTC timestamp in seconds (or milliseconds)."""
    return datetime_to_timestamp(datetime.now(timezone.utc), milliseconds)


def current_utc_datetime() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


# ============================================
# Injectable Clock
# ============================================

class Clock:
    """
    Time source used by the data-source layer.

    Everything that reads the time, sleeps or schedules a timer goes through a
    Clock instance so tests can substitute virtual time.

    Methods:
        now: Wall-clock epoch seconds (used for cache stamps, health timestamps)
        utcnow: now() as an aware UTC datetime (watchlist and alert timestamps)
        monotonic: Monotonic seconds (used for request spacing)
        sleep: Suspend the calling coroutine
        call_later: Schedule a callback, returns a handle with cancel()
    """

    def now(self) -> float:
        return time.time()

    def now_ms(self) -> int:
        return int(self.now() * 1000)

    def utcnow(self) -> datetime:
        return to_utc_datetime(self.now())

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def call_later(self, delay: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        """
        Schedule callback on the running event loop.

        Raises:
            RuntimeError: If called outside of a running event loop
        """
        return asyncio.get_running_loop().call_later(delay, callback)


class SystemClock(Clock):
    """The real clock. Exists as a named type for readability at call sites."""


system_clock = SystemClock()
