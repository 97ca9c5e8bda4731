"""
Pytest configuration and fixtures.
"""
import asyncio
import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional, Set

import httpx
import pytest
import pytest_asyncio

from pos_checkout.api.dependencies import ServiceContainer, build_container
from pos_checkout.api.main import create_app
from pos_checkout.config import Settings
from pos_checkout.core.models import CodeMode, Customer, LineItem, PendingOrder, SellerContext

MERCHANT_ID = "sokpheak@aclb"


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from the process environment and any .env file."""
    values: Dict[str, Any] = {
        "bakong_token": None,
        "bakong_merchant_id": None,
        "bakong_api_url": "https://bakong.test/v1",
        "telegram_bot_token": None,
        "telegram_chat_id": None,
        "telegram_api_url": "https://telegram.test",
        "app_name": "pos-checkout-test",
        "app_env": "test",
        "log_level": "DEBUG",
        "currency": "KHR",
        "pricing_mode": "catalog",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeBakongAPI:
    """In-memory stand-in for the Bakong check_transaction_by_md5 endpoint."""

    def __init__(self) -> None:
        self.settled: Set[str] = set()
        self.requests: List[httpx.Request] = []
        self.fail_with: Optional[Exception] = None
        self.status_code = 200

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        # Yield so concurrent checks really interleave.
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "unavailable"})

        md5 = json.loads(request.content)["md5"]
        if md5 in self.settled:
            return httpx.Response(
                200,
                json={"responseCode": 0, "responseMessage": "Getting transaction successfully."},
            )
        return httpx.Response(
            200, json={"responseCode": 1, "responseMessage": "Transaction could not be found."}
        )

    def client(self, base_url: str = "https://bakong.test/v1") -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), base_url=base_url)


class FakeTelegramAPI:
    """Records sendMessage calls."""

    def __init__(self) -> None:
        self.messages: List[Dict[str, Any]] = []
        self.status_code = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.messages.append({"path": request.url.path, **json.loads(request.content)})
        return httpx.Response(self.status_code, json={"ok": self.status_code == 200})

    def client(self, base_url: str = "https://telegram.test") -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), base_url=base_url)


@pytest.fixture
def offline_settings() -> Settings:
    """No Bakong or Telegram credentials: mock codes, settlement disabled."""
    return make_settings()


@pytest.fixture
def live_settings() -> Settings:
    """Bakong and Telegram configured."""
    return make_settings(
        bakong_token="test-token",
        bakong_merchant_id=MERCHANT_ID,
        telegram_bot_token="123:abc",
        telegram_chat_id="-100200300",
    )


@pytest.fixture
def fake_bakong() -> FakeBakongAPI:
    return FakeBakongAPI()


@pytest.fixture
def fake_telegram() -> FakeTelegramAPI:
    return FakeTelegramAPI()


@pytest.fixture
def container_factory(
    fake_bakong: FakeBakongAPI, fake_telegram: FakeTelegramAPI
) -> Callable[[Settings], ServiceContainer]:
    def factory(settings: Settings) -> ServiceContainer:
        return build_container(
            settings,
            settlement_http_client=fake_bakong.client(settings.bakong_api_url),
            telegram_http_client=fake_telegram.client(settings.telegram_api_url),
        )

    return factory


@pytest.fixture
def live_container(
    live_settings: Settings, container_factory: Callable[[Settings], ServiceContainer]
) -> ServiceContainer:
    return container_factory(live_settings)


@pytest.fixture
def offline_container(
    offline_settings: Settings, container_factory: Callable[[Settings], ServiceContainer]
) -> ServiceContainer:
    return container_factory(offline_settings)


def asgi_client(container: ServiceContainer) -> httpx.AsyncClient:
    app = create_app(container=container, configure_logging=False)
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest_asyncio.fixture
async def live_client(live_container: ServiceContainer) -> AsyncGenerator[httpx.AsyncClient, Any]:
    """HTTP client against an app with live settlement (faked network)."""
    async with asgi_client(live_container) as ac:
        yield ac


@pytest_asyncio.fixture
async def offline_client(
    offline_container: ServiceContainer,
) -> AsyncGenerator[httpx.AsyncClient, Any]:
    """HTTP client against an app in offline demo mode."""
    async with asgi_client(offline_container) as ac:
        yield ac


@pytest.fixture
def sample_order_data() -> Dict[str, Any]:
    """Sample create-order request: 2 x product 1 at 100 KHR."""
    return {
        "customer": {"name": "Dara", "phone": "012345678"},
        "cart": [{"id": 1, "qty": 2}],
        "seller": {"name": "Sokpheak", "role": "cashier", "approvedBy": "Admin Vanna"},
    }


@pytest.fixture
def make_order() -> Callable[..., PendingOrder]:
    """Build PendingOrder records directly for store/resolver tests."""

    def factory(
        fingerprint: str = "fp-1",
        created_at: Optional[datetime] = None,
        ttl_seconds: int = 300,
    ) -> PendingOrder:
        created_at = created_at or datetime.now(timezone.utc)
        return PendingOrder(
            fingerprint=fingerprint,
            customer=Customer(name="Dara", phone="012345678"),
            line_items=[
                LineItem(product_ref="1", name="Nike Air Max", quantity=2, unit_price=Decimal("100"))
            ],
            total_amount=Decimal("200"),
            currency="KHR",
            bill_number=f"INV-{fingerprint}",
            created_at=created_at,
            expires_at=created_at + timedelta(seconds=ttl_seconds),
            code_mode=CodeMode.LIVE,
            seller=SellerContext(name="Sokpheak", role="cashier"),
        )

    return factory


class GatedTelegramAPI(FakeTelegramAPI):
    """Telegram stand-in that holds every delivery until released."""

    def __init__(self) -> None:
        super().__init__()
        self.release = asyncio.Event()

    async def gated_handler(self, request: httpx.Request) -> httpx.Response:
        await self.release.wait()
        return self.handler(request)

    def client(self, base_url: str = "https://telegram.test") -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self.gated_handler), base_url=base_url
        )
