"""
Checkout orchestration behind the HTTP surface.

Flow:
1. Validate customer and cart
2. Price the cart server-side
3. Issue a payment code (live KHQR or mock)
4. Register the pending order under its fingerprint

Status checks poll the payment network once and, on confirmation, hand
the fingerprint to the SettlementResolver. Status checks are the only
trigger of settlement; there is no background poller.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Optional, Sequence

import structlog

from pos_checkout.config import Settings
from pos_checkout.integrations.bakong_client import BakongSettlementClient, SettlementStatus
from pos_checkout.integrations.khqr import KHQRGenerator
from pos_checkout.monitoring.metrics import metrics

from .errors import OrderValidationError
from .models import CodeMode, Customer, PendingOrder, SellerContext
from .pricing import CartLine, InvoiceNumberGenerator, PricingStrategy
from .resolver import SettlementResolver
from .store import OrderStore

logger = structlog.get_logger(__name__)

STATUS_SUCCESS = "success"
STATUS_PENDING = "pending"


@dataclass(frozen=True)
class CreatedOrder:
    """What the client needs to show the payment code."""

    payload: str
    fingerprint: str
    amount: Decimal
    currency: str
    bill_number: str
    expires_at: datetime
    code_mode: CodeMode

    @property
    def expires_at_ms(self) -> int:
        return int(self.expires_at.timestamp() * 1000)


class CheckoutService:
    """Creates orders and drives settlement checks."""

    def __init__(
        self,
        settings: Settings,
        store: OrderStore,
        pricing: PricingStrategy,
        code_generator: KHQRGenerator,
        settlement_client: BakongSettlementClient,
        resolver: SettlementResolver,
        invoice_numbers: Optional[InvoiceNumberGenerator] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.settings = settings
        self.store = store
        self.pricing = pricing
        self.code_generator = code_generator
        self.settlement_client = settlement_client
        self.resolver = resolver
        self.invoice_numbers = invoice_numbers or InvoiceNumberGenerator()
        self.clock = clock
        self.order_ttl = timedelta(seconds=settings.order_ttl_seconds)

    @property
    def settlement_enabled(self) -> bool:
        return self.settlement_client.enabled

    @staticmethod
    def _validate_order_request(customer: Optional[Customer], lines: Sequence[CartLine]) -> None:
        """
        Validate order request parameters.

        Raises:
            OrderValidationError: If validation fails
        """
        if customer is None or not customer.name or not customer.name.strip():
            raise OrderValidationError("Invalid data")
        if not lines:
            raise OrderValidationError("Invalid data")
        for line in lines:
            if line.quantity <= 0:
                raise OrderValidationError("Invalid data")

    def create_order(
        self,
        customer: Optional[Customer],
        lines: Sequence[CartLine],
        seller: Optional[SellerContext] = None,
    ) -> CreatedOrder:
        """
        Price a cart, issue its payment code and start tracking it.

        Raises:
            OrderValidationError: If the request is incomplete or the total is not positive
        """
        try:
            self._validate_order_request(customer, lines)
            items, total = self.pricing.quote(lines, self.settings.currency)
        except OrderValidationError as e:
            metrics.record_order_rejected(str(e))
            raise

        created_at = self.clock()
        expires_at = created_at + self.order_ttl
        bill_number = self.invoice_numbers.next(int(created_at.timestamp() * 1000))

        code = self.code_generator.generate(
            self.code_generator.build_request(total, bill_number, created_at, expires_at)
        )

        order = PendingOrder(
            fingerprint=code.fingerprint,
            customer=customer,
            line_items=items,
            total_amount=total,
            currency=self.settings.currency,
            bill_number=bill_number,
            created_at=created_at,
            expires_at=expires_at,
            code_mode=code.mode,
            seller=seller,
        )
        self.store.put(code.fingerprint, order)

        metrics.record_order_created(code.mode.value, order.currency, float(total))
        metrics.set_pending_orders(len(self.store))
        logger.info("order_created", pricing_mode=self.pricing.mode, **order.to_log_dict())

        return CreatedOrder(
            payload=code.payload,
            fingerprint=code.fingerprint,
            amount=total,
            currency=order.currency,
            bill_number=bill_number,
            expires_at=expires_at,
            code_mode=code.mode,
        )

    async def check_status(self, fingerprint: Optional[str]) -> str:
        """
        Report whether a payment has cleared.

        Returns "success" exactly once per fingerprint: for the one caller
        whose check resolved the order. Every other outcome is "pending".

        Raises:
            OrderValidationError: If the fingerprint is missing
        """
        if not fingerprint or not fingerprint.strip():
            raise OrderValidationError("MD5 missing")

        if not self.settlement_enabled:
            return STATUS_PENDING

        status = await self.settlement_client.check_settlement(fingerprint)
        if status is not SettlementStatus.SETTLED:
            return STATUS_PENDING

        settled = await self.resolver.resolve(fingerprint)
        if settled is None:
            return STATUS_PENDING
        return STATUS_SUCCESS
