"""
Health checks for liveness and readiness checks.

Reports:
- Settlement mode (live Bakong checks or offline demo)
- Code generation mode (live KHQR or mock)
- Telegram notifier configuration
- Pending order count and how many of them are past expiry
"""
from datetime import datetime, timezone
from typing import Any, Dict

import structlog

from pos_checkout.config import Settings
from pos_checkout.core.store import OrderStore

logger = structlog.get_logger(__name__)


class HealthCheck:
    """
    Health check service for the checkout process.

    None of the external collaborators are required for readiness: the
    service runs in mock/offline mode without them. Readiness only fails
    when the order registry is unusable.
    """

    def __init__(self, settings: Settings, store: OrderStore) -> None:
        self.settings = settings
        self.store = store

    def check_store(self) -> Dict[str, Any]:
        """Check the pending order registry."""
        orders = self.store.snapshot()
        now = datetime.now(timezone.utc)
        return {
            "status": "healthy",
            "service": "order_store",
            "pending_orders": len(orders),
            "expired_pending_orders": sum(1 for o in orders if o.is_expired(now)),
        }

    def check_collaborators(self) -> Dict[str, Any]:
        """Report which external collaborators are configured."""
        return {
            "settlement": {
                "status": "live" if self.settings.settlement_enabled else "disabled",
                "service": "bakong",
            },
            "code_generation": {
                "status": "live" if self.settings.code_generation_live else "mock",
                "service": "khqr",
            },
            "notifier": {
                "status": "live" if self.settings.notifier_enabled else "disabled",
                "service": "telegram",
            },
        }

    async def check_all(self) -> Dict[str, Any]:
        """
        Run all health checks.

        Returns:
            Dict[str, Any]: Overall health status
        """
        checks: Dict[str, Any] = {}
        all_healthy = True

        try:
            checks["order_store"] = self.check_store()
        except Exception as e:
            logger.error("order_store_health_check_failed", error=str(e))
            checks["order_store"] = {
                "status": "unhealthy",
                "service": "order_store",
                "error": str(e),
            }
            all_healthy = False

        checks.update(self.check_collaborators())

        return {
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": checks,
        }

    async def liveness(self) -> Dict[str, Any]:
        """
        Liveness check endpoint.

        Does not check external dependencies.
        """
        return {
            "status": "alive",
            "message": "Application is running",
        }

    async def readiness(self) -> Dict[str, Any]:
        """Readiness check endpoint."""
        return await self.check_all()
