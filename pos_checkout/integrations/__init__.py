"""External integrations for the checkout service."""
from .bakong_client import BakongSettlementClient, CircuitBreaker, SettlementStatus
from .broadcast import BroadcastHub
from .khqr import GeneratedCode, KHQRGenerator
from .telegram_notifier import TelegramNotifier

__all__ = [
    "BakongSettlementClient",
    "BroadcastHub",
    "CircuitBreaker",
    "GeneratedCode",
    "KHQRGenerator",
    "SettlementStatus",
    "TelegramNotifier",
]
