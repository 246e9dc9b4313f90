"""
Unit Tests for HealthTracker

Run with:
    pytest tests/unit/test_health.py -v
"""

import pytest

from core.health import HealthTracker


@pytest.fixture
def tracker(clock):
    tracker = HealthTracker(clock=clock, error_threshold=3, cooldown_seconds=300)
    tracker.register("coingecko", "CoinGecko")
    tracker.register("coincap", "CoinCap")
    return tracker


class TestTransitions:

    def test_initially_available(self, tracker):
        record = tracker.get("coingecko")
        assert record.available is True
        assert record.consecutive_errors == 0
        assert record.last_success_at is None
        assert record.display_name == "CoinGecko"

    def test_two_errors_keep_provider_available(self, tracker):
        tracker.record_error("coingecko")
        tracker.record_error("coingecko")
        assert tracker.is_available("coingecko")
        assert tracker.get("coingecko").consecutive_errors == 2

    def test_third_error_makes_provider_unavailable(self, tracker, clock):
        for _ in range(3):
            tracker.record_error("coingecko")
        assert not tracker.is_available("coingecko")
        assert tracker.get("coingecko").consecutive_errors == 3
        assert len(clock.pending_timers) == 1

    def test_errors_while_unavailable_are_frozen(self, tracker, clock):
        for _ in range(5):
            tracker.record_error("coingecko")
        assert tracker.get("coingecko").consecutive_errors == 3
        assert len(clock.pending_timers) == 1

    def test_success_resets_counter(self, tracker, clock):
        tracker.record_error("coingecko")
        tracker.record_error("coingecko")
        tracker.record_success("coingecko")

        record = tracker.get("coingecko")
        assert record.consecutive_errors == 0
        assert record.available is True
        assert record.last_success_at is not None
        assert record.last_success_at.timestamp() == pytest.approx(clock.now())

    def test_providers_are_tracked_independently(self, tracker):
        for _ in range(3):
            tracker.record_error("coingecko")
        assert tracker.is_available("coincap")


class TestCooldown:

    def test_cooldown_re_enables_provider(self, tracker, clock):
        for _ in range(3):
            tracker.record_error("coingecko")

        clock.advance(299)
        assert not tracker.is_available("coingecko")

        clock.advance(1)
        record = tracker.get("coingecko")
        assert record.available is True
        assert record.consecutive_errors == 0

    def test_late_errors_do_not_extend_cooldown(self, tracker, clock):
        for _ in range(3):
            tracker.record_error("coingecko")
        clock.advance(200)
        tracker.record_error("coingecko")
        clock.advance(100)
        assert tracker.is_available("coingecko")

    def test_success_during_cooldown_cancels_timer(self, tracker, clock):
        for _ in range(3):
            tracker.record_error("coingecko")
        tracker.record_success("coingecko")

        assert tracker.is_available("coingecko")
        assert clock.pending_timers == []

        # A fresh error streak starts from zero
        tracker.record_error("coingecko")
        clock.advance(300)
        assert tracker.get("coingecko").consecutive_errors == 1


class TestSnapshot:

    def test_snapshot_in_registration_order(self, tracker):
        assert [h.name for h in tracker.snapshot()] == ["coingecko", "coincap"]

    def test_snapshot_is_a_copy(self, tracker):
        snapshot = tracker.snapshot()
        snapshot[0].available = False
        assert tracker.is_available("coingecko")

    def test_unknown_provider_is_registered_on_use(self, tracker):
        tracker.record_error("coinpaprika")
        assert tracker.get("coinpaprika").consecutive_errors == 1
        assert len(tracker.snapshot()) == 3
