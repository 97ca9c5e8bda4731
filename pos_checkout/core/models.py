"""
Domain records for the pending-payment registry.

A PendingOrder is created when a payment code is issued and lives in the
OrderStore until the payment network confirms settlement (or, when the
expiry sweep is enabled, until its code expires).
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


class OrderState(str, Enum):
    """Lifecycle of a tracked order."""

    PENDING = "pending"
    SETTLED = "settled"  # terminal, record removed
    EXPIRED = "expired"  # terminal, only reached through the expiry sweep


class CodeMode(str, Enum):
    """Whether a payment code came from the live encoder or the mock fallback."""

    LIVE = "live"
    MOCK = "mock"


@dataclass(frozen=True)
class Customer:
    """Free-form customer details, checked for presence only."""

    name: str
    phone: Optional[str] = None
    address: Optional[str] = None


@dataclass(frozen=True)
class SellerContext:
    """Optional attribution shown in the settlement notification."""

    name: Optional[str] = None
    role: Optional[str] = None
    approved_by: Optional[str] = None


@dataclass(frozen=True)
class LineItem:
    """A priced cart line."""

    product_ref: str
    name: str
    quantity: int
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass
class PendingOrder:
    """Tracked order, keyed by the settlement fingerprint of its payment code."""

    fingerprint: str
    customer: Customer
    line_items: List[LineItem]
    total_amount: Decimal
    currency: str
    bill_number: str
    created_at: datetime
    expires_at: datetime
    code_mode: CodeMode
    seller: Optional[SellerContext] = None
    state: OrderState = OrderState.PENDING
    settled_at: Optional[datetime] = field(default=None)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check whether the payment code lifetime has passed."""
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at

    def transition(self, state: OrderState, at: Optional[datetime] = None) -> "PendingOrder":
        """Return a terminal-state snapshot; the stored record is never mutated."""
        if self.state is not OrderState.PENDING:
            raise ValueError(f"Order {self.fingerprint} is already {self.state.value}")
        return replace(
            self,
            state=state,
            settled_at=(at or datetime.now(timezone.utc)) if state is OrderState.SETTLED else None,
        )

    @property
    def expires_at_ms(self) -> int:
        return int(self.expires_at.timestamp() * 1000)

    def to_log_dict(self) -> Dict[str, Any]:
        """Non-sensitive summary for structured logs."""
        return {
            "fingerprint": self.fingerprint,
            "bill_number": self.bill_number,
            "amount": str(self.total_amount),
            "currency": self.currency,
            "items": len(self.line_items),
            "code_mode": self.code_mode.value,
            "state": self.state.value,
        }
