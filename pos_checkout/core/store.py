"""
In-memory registry of orders awaiting settlement.

The store is owned by the application container (one per process) and is
the only mutable shared state in the service. Every operation holds the
lock for a single dict operation, so put/get/remove are linearizable and
lookups for different fingerprints never wait on a network call.
"""
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

import structlog

from .models import OrderState, PendingOrder

logger = structlog.get_logger(__name__)


class OrderStore:
    """Thread-safe mapping from settlement fingerprint to pending order."""

    def __init__(self) -> None:
        self._orders: Dict[str, PendingOrder] = {}
        self._lock = threading.Lock()

    def put(self, fingerprint: str, order: PendingOrder) -> None:
        """
        Insert an order.

        Fingerprints are generated per payment code, so an existing key
        means the code generator repeated itself. The new record wins and
        the overwrite is logged.
        """
        with self._lock:
            replaced = self._orders.get(fingerprint)
            self._orders[fingerprint] = order

        if replaced is not None:
            logger.warning(
                "order_store_fingerprint_overwritten",
                fingerprint=fingerprint,
                previous_bill_number=replaced.bill_number,
                bill_number=order.bill_number,
            )

    def get(self, fingerprint: str) -> Optional[PendingOrder]:
        """Look up an order without changing it."""
        with self._lock:
            return self._orders.get(fingerprint)

    def remove(self, fingerprint: str) -> Optional[PendingOrder]:
        """
        Delete an order and hand it to the caller.

        Removing an unknown fingerprint is a silent no-op returning None.
        Because the pop is atomic, at most one concurrent caller receives
        the record.
        """
        with self._lock:
            return self._orders.pop(fingerprint, None)

    def remove_expired(self, now: Optional[datetime] = None) -> List[PendingOrder]:
        """Remove pending orders whose payment code has expired."""
        now = now or datetime.now(timezone.utc)
        with self._lock:
            expired = [
                fingerprint
                for fingerprint, order in self._orders.items()
                if order.state is OrderState.PENDING and order.is_expired(now)
            ]
            return [self._orders.pop(fingerprint) for fingerprint in expired]

    def snapshot(self) -> List[PendingOrder]:
        """Copy of the current records, for health and diagnostics."""
        with self._lock:
            return list(self._orders.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._orders)

    def __contains__(self, fingerprint: object) -> bool:
        with self._lock:
            return fingerprint in self._orders
