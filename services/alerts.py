"""
Price Alert Service

Keeps one-shot price alerts and evaluates them against each price snapshot the
stream publishes. An alert on an asset outside the snapshot is not evaluated until
the asset shows up in one.
"""

from typing import Iterable, List, Optional

from core.logging import get_logger
from core.schemas import Asset, PriceAlert
from core.utils.time import Clock, system_clock
from storage import UserDataStore

logger = get_logger(__name__)


class AlertService:
    """
    Args:
        store: Persistence of alerts
        clock: Source of creation and trigger timestamps

    Example:
        >>> alerts = AlertService(store)
        >>> await alerts.create("bitcoin", 70000.0, "above")
        >>> await alerts.check(snapshot)   # [PriceAlert(..., triggered=True)] once BTC >= 70k
    """

    def __init__(self, store: UserDataStore, clock: Optional[Clock] = None) -> None:
        self.store = store
        self._clock = clock or system_clock

    async def list_all(self) -> List[PriceAlert]:
        return await self.store.list_alerts()

    async def create(self, coin_id: str, target_price: float, condition: str) -> PriceAlert:
        alert = await self.store.create_alert(coin_id, target_price, condition, self._clock.utcnow())
        logger.info(f"Alert created: {alert.id} {coin_id} {condition} {target_price}")
        return alert

    async def delete(self, alert_id: int) -> bool:
        return await self.store.delete_alert(alert_id)

    async def check(self, assets: Iterable[Asset]) -> List[PriceAlert]:
        """
        Trigger every pending alert whose condition the snapshot meets.

        Returns:
            The alerts triggered by this call, already marked in the store
        """
        prices = {asset.id: asset.current_price for asset in assets}
        triggered: List[PriceAlert] = []

        for alert in await self.store.read_pending_alerts():
            if alert.coin_id not in prices or not alert.is_met(prices[alert.coin_id]):
                continue
            now = self._clock.utcnow()
            await self.store.mark_alert_triggered(alert.id, now)
            triggered.append(alert.model_copy(update={"triggered": True, "triggered_at": now}))
            logger.info(
                f"Alert {alert.id} triggered: {alert.coin_id} {alert.condition} "
                f"{alert.target_price} (price {prices[alert.coin_id]})"
            )

        return triggered
