"""
Expired order sweeper.

Off by default: without it an expired but unpaid order stays registered
until it is settled or the process restarts. When
EXPIRY_SWEEP_INTERVAL_SECONDS is positive, the application runs this
sweeper as a background task that removes pending orders past their
expiry on a fixed interval. Swept orders are dropped silently: expiry
never notifies.
"""
import asyncio
from datetime import datetime, timezone
from typing import Callable, List, Optional

import structlog

from pos_checkout.core.models import OrderState, PendingOrder
from pos_checkout.core.store import OrderStore
from pos_checkout.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


class ExpirySweeper:
    """Periodically removes pending orders whose payment code has expired."""

    def __init__(
        self,
        store: OrderStore,
        interval_seconds: float,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.store = store
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()

    def sweep_once(self) -> List[PendingOrder]:
        """
        Remove every expired pending order.

        Returns:
            List[PendingOrder]: Expired snapshots of the removed orders
        """
        now = self.clock()
        removed = self.store.remove_expired(now)
        expired = [order.transition(OrderState.EXPIRED, now) for order in removed]

        if expired:
            metrics.record_orders_expired(len(expired))
            metrics.set_pending_orders(len(self.store))
            logger.info(
                "expired_orders_swept",
                count=len(expired),
                fingerprints=[order.fingerprint for order in expired],
            )
        return expired

    async def run(self) -> None:
        """Sweep on a fixed interval until stopped."""
        logger.info("expiry_sweeper_started", interval_seconds=self.interval_seconds)
        try:
            while not self._stopping.is_set():
                try:
                    await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    pass
                if self._stopping.is_set():
                    break

                try:
                    self.sweep_once()
                except Exception as e:
                    # Keep sweeping even if one pass fails
                    logger.error("expiry_sweep_failed", error=str(e))
        finally:
            logger.info("expiry_sweeper_stopped")

    def start(self) -> asyncio.Task:
        """Start the sweep loop on the running event loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Stop the sweep loop and wait for it to finish."""
        self._stopping.set()
        if self._task is not None:
            await self._task
            self._task = None
