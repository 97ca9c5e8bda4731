"""
Settlement resolver: the only place an order becomes settled.

Claiming is a single atomic removal from the OrderStore. Whoever receives
the record is the one caller that notifies; every other caller for the
same fingerprint (a racing status check, a late duplicate confirmation)
finds nothing and does nothing.

The removal and the scheduling of notifications happen with no await in
between, so a caller cancelled mid-request cannot leave a claimed order
unnotified. resolve() returns without waiting for delivery.
"""
from typing import Optional

import structlog

from pos_checkout.monitoring.metrics import metrics

from .fanout import NotificationFanout
from .models import OrderState, PendingOrder
from .store import OrderStore

logger = structlog.get_logger(__name__)


class SettlementResolver:
    """Exactly-once pending to settled transition."""

    def __init__(self, store: OrderStore, fanout: NotificationFanout) -> None:
        self.store = store
        self.fanout = fanout

    async def resolve(self, fingerprint: str) -> Optional[PendingOrder]:
        """
        Settle the order for a confirmed fingerprint.

        Args:
            fingerprint: Fingerprint the payment network confirmed

        Returns:
            Optional[PendingOrder]: The settled snapshot, or None if the
            fingerprint is unknown or was already resolved
        """
        claimed = self.store.remove(fingerprint)
        if claimed is None:
            logger.info("settlement_resolve_noop", fingerprint=fingerprint)
            return None

        settled = claimed.transition(OrderState.SETTLED)
        metrics.record_settlement_resolved()
        metrics.set_pending_orders(len(self.store))
        logger.info("payment_settled", **settled.to_log_dict())

        self.fanout.dispatch(settled)
        return settled
