"""
Settlement notification fan-out.

Delivers a settled order to two independent sinks: the real-time
broadcast channel and the Telegram notifier. Both are attempted for every
settlement, a failure in one never stops the other, and nothing here can
undo a settlement that has already been committed.

Delivery runs in a background task owned by the fan-out, so the
settlement path never waits on a sink and cancelling the request that
settled an order does not cancel its notifications.
"""
import asyncio
from typing import Any, Dict, Optional, Set

import structlog

from pos_checkout.integrations.broadcast import BroadcastHub
from pos_checkout.integrations.telegram_notifier import TelegramNotifier
from pos_checkout.monitoring.metrics import metrics

from .models import PendingOrder

logger = structlog.get_logger(__name__)


class NotificationFanout:
    """Best-effort delivery of payment-success events."""

    def __init__(self, hub: BroadcastHub, notifier: Optional[TelegramNotifier] = None) -> None:
        self.hub = hub
        self.notifier = notifier
        self._pending: Set[asyncio.Task] = set()

    def dispatch(self, order: PendingOrder) -> asyncio.Task:
        """
        Schedule delivery of a settled order without waiting for it.

        Must be called from the event loop. The task is held until it
        finishes so it cannot be garbage collected mid-delivery.
        """
        task = asyncio.create_task(self.publish(order), name=f"fanout-{order.fingerprint}")
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.warning("settlement_fanout_cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "settlement_fanout_failed",
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        while True:
            pending = [task for task in self._pending if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def publish(self, order: PendingOrder) -> Dict[str, Any]:
        """
        Notify every sink about a settled order.

        Returns:
            Dict[str, Any]: Per-sink outcome, for logging and tests
        """
        broadcast_result, telegram_result = await asyncio.gather(
            self._broadcast(order), self._notify(order)
        )
        outcome = {"broadcast": broadcast_result, "telegram": telegram_result}
        logger.info("settlement_fanout_completed", fingerprint=order.fingerprint, **outcome)
        return outcome

    async def _broadcast(self, order: PendingOrder) -> str:
        try:
            delivered = await self.hub.publish_payment_success(order.fingerprint)
        except Exception as e:
            logger.error(
                "broadcast_delivery_failed",
                fingerprint=order.fingerprint,
                error=str(e),
                error_type=type(e).__name__,
            )
            metrics.record_notification("broadcast", "failed")
            return "failed"

        metrics.record_notification("broadcast", "sent")
        logger.info("broadcast_delivered", fingerprint=order.fingerprint, subscribers=delivered)
        return "sent"

    async def _notify(self, order: PendingOrder) -> str:
        if self.notifier is None or not self.notifier.enabled:
            metrics.record_notification("telegram", "skipped")
            return "skipped"

        try:
            sent = await self.notifier.send_settlement(order)
        except Exception as e:
            logger.error(
                "telegram_delivery_failed",
                fingerprint=order.fingerprint,
                error=str(e),
                error_type=type(e).__name__,
            )
            sent = False

        status = "sent" if sent else "failed"
        metrics.record_notification("telegram", status)
        return status
