"""
Shared pytest fixtures.

FakeClock replaces wall time, monotonic time, sleeping and timers so throttle
spacing and health cooldowns can be tested without real waiting.
"""

import asyncio
from typing import Any, Callable, List

import pytest

from core.utils.time import Clock


class FakeTimer:
    """Handle returned by FakeClock.call_later."""

    def __init__(self, when: float, callback: Callable[[], Any]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock(Clock):
    """
    Virtual clock.

    sleep() and advance() move both wall and monotonic time forward and fire
    every timer that has become due, in order.
    """

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self._now = start
        self._monotonic = 0.0
        self.timers: List[FakeTimer] = []
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self._now

    def monotonic(self) -> float:
        return self._monotonic

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
        await asyncio.sleep(0)

    def call_later(self, delay: float, callback: Callable[[], Any]) -> FakeTimer:
        timer = FakeTimer(self._monotonic + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending_timers(self) -> List[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        self._now += seconds
        self._monotonic += seconds
        due = sorted(
            (t for t in self.timers if not t.cancelled and t.when <= self._monotonic),
            key=lambda t: t.when,
        )
        for timer in due:
            self.timers.remove(timer)
            timer.callback()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
