"""
Unit tests for the Bakong settlement poller.
"""
import json

import httpx
import pytest

from pos_checkout.integrations.bakong_client import (
    BakongSettlementClient,
    CircuitBreaker,
    SettlementStatus,
)

from .conftest import MERCHANT_ID, FakeBakongAPI, make_settings


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def live_client_settings():
    return make_settings(bakong_token="test-token", bakong_merchant_id=MERCHANT_ID)


class TestBakongSettlementClient:
    """Test suite for BakongSettlementClient."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_disabled_never_calls_network(self, fake_bakong: FakeBakongAPI) -> None:
        fake_bakong.settled.add("fp-1")
        client = BakongSettlementClient(make_settings(), http_client=fake_bakong.client())

        status = await client.check_settlement("fp-1")

        assert status is SettlementStatus.NOT_YET_SETTLED
        assert fake_bakong.requests == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_settled_on_success_response(
        self, live_client_settings, fake_bakong: FakeBakongAPI
    ) -> None:
        fake_bakong.settled.add("fp-1")
        client = BakongSettlementClient(live_client_settings, http_client=fake_bakong.client())

        assert await client.check_settlement("fp-1") is SettlementStatus.SETTLED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_request_shape(self, live_client_settings, fake_bakong: FakeBakongAPI) -> None:
        client = BakongSettlementClient(live_client_settings, http_client=fake_bakong.client())

        await client.check_settlement("fp-1")

        request = fake_bakong.requests[0]
        assert request.url.path == "/v1/check_transaction_by_md5"
        assert request.headers["Authorization"] == "Bearer test-token"
        assert json.loads(request.content) == {"md5": "fp-1", "merchantId": MERCHANT_ID}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_not_found_is_not_settled(
        self, live_client_settings, fake_bakong: FakeBakongAPI
    ) -> None:
        client = BakongSettlementClient(live_client_settings, http_client=fake_bakong.client())

        assert await client.check_settlement("unknown") is SettlementStatus.NOT_YET_SETTLED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_server_error_is_not_settled(
        self, live_client_settings, fake_bakong: FakeBakongAPI
    ) -> None:
        fake_bakong.settled.add("fp-1")
        fake_bakong.status_code = 503
        client = BakongSettlementClient(live_client_settings, http_client=fake_bakong.client())

        assert await client.check_settlement("fp-1") is SettlementStatus.NOT_YET_SETTLED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_transport_error_is_not_settled(
        self, live_client_settings, fake_bakong: FakeBakongAPI
    ) -> None:
        fake_bakong.fail_with = httpx.ConnectError("connection refused")
        client = BakongSettlementClient(live_client_settings, http_client=fake_bakong.client())

        assert await client.check_settlement("fp-1") is SettlementStatus.NOT_YET_SETTLED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_is_not_settled(
        self, live_client_settings, fake_bakong: FakeBakongAPI
    ) -> None:
        fake_bakong.fail_with = httpx.ReadTimeout("timed out")
        client = BakongSettlementClient(live_client_settings, http_client=fake_bakong.client())

        assert await client.check_settlement("fp-1") is SettlementStatus.NOT_YET_SETTLED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_malformed_body_is_not_settled(self, live_client_settings) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"<html>"))
        client = BakongSettlementClient(
            live_client_settings,
            http_client=httpx.AsyncClient(transport=transport, base_url="https://bakong.test/v1"),
        )

        assert await client.check_settlement("fp-1") is SettlementStatus.NOT_YET_SETTLED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_one_query_per_call(
        self, live_client_settings, fake_bakong: FakeBakongAPI
    ) -> None:
        fake_bakong.fail_with = httpx.ConnectError("down")
        client = BakongSettlementClient(live_client_settings, http_client=fake_bakong.client())

        await client.check_settlement("fp-1")

        assert len(fake_bakong.requests) == 1


class TestCircuitBreaker:
    """Circuit breaker around the settlement API."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_opens_after_threshold_and_skips_network(
        self, live_client_settings, fake_bakong: FakeBakongAPI
    ) -> None:
        fake_bakong.fail_with = httpx.ConnectError("down")
        breaker = CircuitBreaker(failure_threshold=3, timeout=30, clock=FakeClock())
        client = BakongSettlementClient(
            live_client_settings, http_client=fake_bakong.client(), circuit_breaker=breaker
        )

        for _ in range(5):
            assert await client.check_settlement("fp-1") is SettlementStatus.NOT_YET_SETTLED

        assert breaker.state == "open"
        assert len(fake_bakong.requests) == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_half_open_after_timeout_then_closes(
        self, live_client_settings, fake_bakong: FakeBakongAPI
    ) -> None:
        clock = FakeClock()
        fake_bakong.fail_with = httpx.ConnectError("down")
        breaker = CircuitBreaker(failure_threshold=2, timeout=30, clock=clock)
        client = BakongSettlementClient(
            live_client_settings, http_client=fake_bakong.client(), circuit_breaker=breaker
        )
        await client.check_settlement("fp-1")
        await client.check_settlement("fp-1")
        assert breaker.state == "open"

        clock.now += 31
        fake_bakong.fail_with = None
        fake_bakong.settled.add("fp-1")

        assert await client.check_settlement("fp-1") is SettlementStatus.SETTLED
        assert breaker.state == "closed"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failure_in_half_open_reopens(self) -> None:
        clock = FakeClock()
        breaker = CircuitBreaker(failure_threshold=1, timeout=10, clock=clock)

        async def failing() -> None:
            raise httpx.ConnectError("down")

        with pytest.raises(httpx.ConnectError):
            await breaker.call(failing)
        assert breaker.state == "open"

        clock.now += 11
        with pytest.raises(httpx.ConnectError):
            await breaker.call(failing)
        assert breaker.state == "open"
