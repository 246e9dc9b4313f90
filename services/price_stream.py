"""
Live Price Stream

Periodically pulls the top assets from the aggregator and fans them out to every
connected WebSocket client.

- PriceBroadcaster: pub/sub on asyncio queues. Each subscriber gets its own bounded
  queue; a slow client loses snapshots instead of blocking the publisher. New
  subscribers immediately receive the latest snapshot.
- PriceStreamService: background loop calling aggregator.list_assets every
  stream_interval_seconds. Because the aggregator caches lists, polling faster than
  the list TTL does not add provider traffic. Each snapshot is also checked against
  pending price alerts; alerts it triggers go out as one {"type": "alerts"} event
  on a separate broadcaster.

Delivery is best-effort: no replay beyond the latest snapshot, no acknowledgements.
"""

import asyncio
import contextlib
from typing import Any, Dict, Optional, Set

from core.config import settings
from core.logging import get_logger
from core.utils.time import Clock, system_clock
from services.alerts import AlertService


class PriceBroadcaster:
    """
    Fan-out of price snapshots to subscriber queues.

    Unsubscribing is important to avoid queue leaks when clients disconnect.

    Args:
        max_queue_size: Events buffered per subscriber before dropping
        replay_latest: Queue the latest event for new subscribers (off for alerts,
            which must not be delivered twice)
    """

    def __init__(self, max_queue_size: int = 10, replay_latest: bool = True) -> None:
        self._subscribers: Set[asyncio.Queue] = set()
        self._max_queue_size = max_queue_size
        self._replay_latest = replay_latest
        self._latest: Optional[Dict[str, Any]] = None
        self._logger = get_logger(__name__)

    @property
    def latest(self) -> Optional[Dict[str, Any]]:
        return self._latest

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        """Register a subscriber. The latest snapshot, if any, is queued right away."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        if self._replay_latest and self._latest is not None:
            queue.put_nowait(self._latest)
        self._subscribers.add(queue)
        self._logger.debug(f"Price subscriber added. total={len(self._subscribers)}")
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)
        self._logger.debug(f"Price subscriber removed. total={len(self._subscribers)}")

    def publish(self, event: Dict[str, Any]) -> None:
        """Deliver an event to every subscriber; full queues drop it."""
        self._latest = event
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                self._logger.warning("Dropping price snapshot for a slow subscriber")


class PriceStreamService:
    """
    Background task publishing price snapshots.

    Args:
        aggregator: Source of asset lists
        broadcaster: Destination of snapshots
        interval_seconds: Delay between two snapshots
        coin_limit: Number of top assets per snapshot
        clock: Sleep source (virtual in tests)
        alerts: Alert service checked against every snapshot (optional)
        alert_broadcaster: Destination of triggered alerts
    """

    def __init__(
        self,
        aggregator,
        broadcaster: PriceBroadcaster,
        interval_seconds: Optional[float] = None,
        coin_limit: Optional[int] = None,
        clock: Optional[Clock] = None,
        alerts: Optional[AlertService] = None,
        alert_broadcaster: Optional[PriceBroadcaster] = None
    ) -> None:
        self.aggregator = aggregator
        self.broadcaster = broadcaster
        self.alerts = alerts
        self.alert_broadcaster = alert_broadcaster
        self.interval_seconds = interval_seconds if interval_seconds is not None else settings.stream_interval_seconds
        self.coin_limit = coin_limit or settings.stream_coin_limit
        self._clock = clock or system_clock
        self._task: Optional[asyncio.Task] = None
        self._running = asyncio.Event()
        self._logger = get_logger(__name__)

    @property
    def running(self) -> bool:
        return self._running.is_set()

    async def start(self) -> None:
        if self._running.is_set():
            return
        self._running.set()
        self._logger.info(f"Starting price stream (every {self.interval_seconds}s, top {self.coin_limit})")
        self._task = asyncio.create_task(self._run(), name="price_stream")

    async def stop(self) -> None:
        if not self._running.is_set():
            return
        self._logger.info("Stopping price stream...")
        self._running.clear()
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def publish_once(self) -> Dict[str, Any]:
        """Fetch one snapshot, broadcast it and check it against pending alerts."""
        assets = await self.aggregator.list_assets(1, self.coin_limit)
        event = {
            "type": "prices",
            "data": [asset.model_dump(mode="json") for asset in assets],
        }
        self.broadcaster.publish(event)

        if self.alerts is not None:
            triggered = await self.alerts.check(assets)
            if triggered and self.alert_broadcaster is not None:
                self.alert_broadcaster.publish({
                    "type": "alerts",
                    "data": [alert.model_dump(mode="json") for alert in triggered],
                })
        return event

    # ============================================
    # Core Loop
    # ============================================

    async def _run(self) -> None:
        while self._running.is_set():
            try:
                event = await self.publish_once()
                self._logger.debug(
                    f"Published {len(event['data'])} prices to {self.broadcaster.subscriber_count} subscriber(s)"
                )
            except Exception as e:
                self._logger.error(f"Price stream cycle failed: {e}")
            await self._clock.sleep(self.interval_seconds)
