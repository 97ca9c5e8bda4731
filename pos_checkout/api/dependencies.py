"""
Service wiring.

Everything stateful (the order registry above all) is built once per
application in build_container() and reached through app.state, never
through module-level globals.
"""
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request

from pos_checkout.config import Settings
from pos_checkout.core.checkout import CheckoutService
from pos_checkout.core.fanout import NotificationFanout
from pos_checkout.core.pricing import ProductCatalog, build_pricing_strategy
from pos_checkout.core.resolver import SettlementResolver
from pos_checkout.core.store import OrderStore
from pos_checkout.integrations.bakong_client import BakongSettlementClient
from pos_checkout.integrations.broadcast import BroadcastHub
from pos_checkout.integrations.khqr import KHQRGenerator
from pos_checkout.integrations.telegram_notifier import TelegramNotifier
from pos_checkout.monitoring.health import HealthCheck
from pos_checkout.workers.expiry_sweeper import ExpirySweeper


@dataclass
class ServiceContainer:
    """All per-process services of one application instance."""

    settings: Settings
    store: OrderStore
    catalog: ProductCatalog
    hub: BroadcastHub
    notifier: TelegramNotifier
    settlement_client: BakongSettlementClient
    code_generator: KHQRGenerator
    resolver: SettlementResolver
    checkout: CheckoutService
    health_check: HealthCheck
    sweeper: Optional[ExpirySweeper] = None

    async def close(self) -> None:
        await self.resolver.fanout.drain()
        await self.settlement_client.close()
        await self.notifier.close()


def build_container(
    settings: Settings,
    store: Optional[OrderStore] = None,
    catalog: Optional[ProductCatalog] = None,
    settlement_http_client: Optional[httpx.AsyncClient] = None,
    telegram_http_client: Optional[httpx.AsyncClient] = None,
) -> ServiceContainer:
    """
    Construct the service graph for one application.

    Args:
        settings: Application settings
        store: Optional order store (a fresh one if not provided)
        catalog: Optional product catalog (the default catalog if not provided)
        settlement_http_client: Optional HTTP client for the Bakong API
        telegram_http_client: Optional HTTP client for the Telegram API
    """
    store = store or OrderStore()
    catalog = catalog or ProductCatalog()
    hub = BroadcastHub()
    notifier = TelegramNotifier(settings, http_client=telegram_http_client)
    settlement_client = BakongSettlementClient(settings, http_client=settlement_http_client)
    code_generator = KHQRGenerator(settings)
    resolver = SettlementResolver(store, NotificationFanout(hub, notifier))

    checkout = CheckoutService(
        settings=settings,
        store=store,
        pricing=build_pricing_strategy(settings.pricing_mode, catalog),
        code_generator=code_generator,
        settlement_client=settlement_client,
        resolver=resolver,
    )

    sweeper = None
    if settings.expiry_sweep_interval_seconds > 0:
        sweeper = ExpirySweeper(store, settings.expiry_sweep_interval_seconds)

    return ServiceContainer(
        settings=settings,
        store=store,
        catalog=catalog,
        hub=hub,
        notifier=notifier,
        settlement_client=settlement_client,
        code_generator=code_generator,
        resolver=resolver,
        checkout=checkout,
        health_check=HealthCheck(settings, store),
        sweeper=sweeper,
    )


def get_container(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the application's services."""
    return request.app.state.container
