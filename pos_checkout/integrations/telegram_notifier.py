"""
Telegram notification sink.

Sends one human-readable "payment received" message per settlement to a
fixed chat through the Telegram Bot API. Delivery is best-effort: no
retries, failures are logged and reported as False.
"""
import html
from decimal import Decimal
from typing import Optional

import httpx
import structlog

from pos_checkout.config import Settings
from pos_checkout.core.models import PendingOrder

logger = structlog.get_logger(__name__)


def format_amount(amount: Decimal, currency: str) -> str:
    if currency == "KHR":
        return f"{int(amount):,} KHR"
    return f"{amount:,.2f} {currency}"


def format_settlement_message(order: PendingOrder) -> str:
    """Build the settlement summary sent to the merchant chat."""
    esc = html.escape
    items = "\n".join(
        f"- {esc(item.name)} x{item.quantity} ({format_amount(item.subtotal, order.currency)})"
        for item in order.line_items
    )

    lines = [
        "✅ <b>Payment Received!</b>",
        f"Total: <b>{format_amount(order.total_amount, order.currency)}</b>",
        f"Invoice: <code>{esc(order.bill_number)}</code>",
        f"From: {esc(order.customer.name)}",
    ]
    if order.customer.phone:
        lines.append(f"Phone: {esc(order.customer.phone)}")
    if order.customer.address:
        lines.append(f"Address: {esc(order.customer.address)}")

    seller = order.seller
    if seller and (seller.name or seller.approved_by):
        role = f" ({esc(seller.role)})" if seller.role else ""
        if seller.name:
            lines.append(f"Seller: {esc(seller.name)}{role}")
        if seller.approved_by:
            lines.append(f"Approved by: {esc(seller.approved_by)}")

    lines.extend(["", "<b>Items:</b>", items])
    return "\n".join(lines)


class TelegramNotifier:
    """Send settlement notifications via Telegram Bot API."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.bot_token = settings.telegram_bot_token
        self.chat_id = settings.telegram_chat_id
        self.enabled = settings.notifier_enabled
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            base_url=settings.telegram_api_url,
            timeout=settings.notifier_timeout_seconds,
        )

        logger.info("telegram_notifier_initialized", enabled=self.enabled)

    async def send(self, message: str) -> bool:
        """Send a message to the configured chat."""
        if not self.enabled:
            return False

        try:
            resp = await self.http_client.post(
                f"/bot{self.bot_token}/sendMessage",
                json={
                    "chat_id": self.chat_id,
                    "text": message,
                    "parse_mode": "HTML",
                },
            )
        except httpx.HTTPError as e:
            logger.warning("telegram_delivery_failed", error=str(e), error_type=type(e).__name__)
            return False

        if resp.status_code != 200:
            logger.warning("telegram_delivery_rejected", status_code=resp.status_code)
            return False
        return True

    async def send_settlement(self, order: PendingOrder) -> bool:
        """Send the payment received summary for a settled order."""
        return await self.send(format_settlement_message(order))

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self.http_client.aclose()
