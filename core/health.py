"""
Provider Health Tracker

Per-provider availability state machine.

States:
    Available (initial)  --threshold consecutive errors-->  Unavailable
    Unavailable          --cooldown timer fires--------->  Available (errors reset to 0)
    any                  --record_success--------------->  Available (errors reset to 0)

While a provider is Unavailable the aggregator skips it entirely, so the upstream is
not hammered during an incident and no request timeout budget is wasted on it.

The cooldown is timer-driven through the injected Clock, not polled. Errors recorded
while the provider is already Unavailable (late failures of in-flight calls) leave the
counter frozen and do not reschedule or cancel the pending timer.
"""

from typing import Dict, List, Optional

from core.logging import get_logger, log_provider_event
from core.schemas import ProviderHealth
from core.utils.time import Clock, system_clock, to_utc_datetime


class HealthTracker:
    """
    Tracks availability for every registered provider.

    Args:
        clock: Time source and timer scheduler
        error_threshold: Consecutive errors that make a provider unavailable
        cooldown_seconds: Time an unavailable provider stays disabled

    Example:
        >>> tracker = HealthTracker(error_threshold=3, cooldown_seconds=300)
        >>> tracker.register("coingecko", "CoinGecko")
        >>> tracker.is_available("coingecko")
        True
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        error_threshold: int = 3,
        cooldown_seconds: float = 300.0
    ) -> None:
        self._clock = clock or system_clock
        self.error_threshold = error_threshold
        self.cooldown_seconds = cooldown_seconds
        self._records: Dict[str, ProviderHealth] = {}
        self._cooldowns: Dict[str, object] = {}
        self._logger = get_logger(__name__)

    def register(self, name: str, display_name: Optional[str] = None) -> None:
        """Add a provider in the Available state. Re-registering is a no-op."""
        if name not in self._records:
            self._records[name] = ProviderHealth(name=name, display_name=display_name or name)

    def _record(self, name: str) -> ProviderHealth:
        if name not in self._records:
            self.register(name)
        return self._records[name]

    # ============================================
    # Queries
    # ============================================

    def is_available(self, name: str) -> bool:
        return self._record(name).available

    def get(self, name: str) -> ProviderHealth:
        """Copy of one provider's current state."""
        return self._record(name).model_copy()

    def snapshot(self) -> List[ProviderHealth]:
        """Copies of every provider's state, in registration order."""
        return [record.model_copy() for record in self._records.values()]

    # ============================================
    # Transitions
    # ============================================

    def record_success(self, name: str) -> None:
        record = self._record(name)
        was_unavailable = not record.available
        record.available = True
        record.consecutive_errors = 0
        record.last_success_at = to_utc_datetime(self._clock.now())

        handle = self._cooldowns.pop(name, None)
        if handle is not None:
            handle.cancel()
        if was_unavailable:
            log_provider_event(name, "recovered", "successful response during cooldown")

    def record_error(self, name: str) -> None:
        record = self._record(name)
        if not record.available:
            self._logger.debug(f"{name} already unavailable; error count frozen at {record.consecutive_errors}")
            return

        record.consecutive_errors += 1
        if record.consecutive_errors >= self.error_threshold:
            record.available = False
            log_provider_event(
                name,
                "unavailable",
                f"{record.consecutive_errors} consecutive errors, cooling down {self.cooldown_seconds:.0f}s"
            )
            self._cooldowns[name] = self._clock.call_later(
                self.cooldown_seconds, lambda: self._end_cooldown(name)
            )

    def _end_cooldown(self, name: str) -> None:
        self._cooldowns.pop(name, None)
        record = self._record(name)
        record.available = True
        record.consecutive_errors = 0
        log_provider_event(name, "re-enabled", "cooldown elapsed")
