"""
Bakong settlement client.

Answers "has fingerprint F settled?" with one query per call against the
Bakong open API (check_transaction_by_md5). Only an explicit success
response counts as settled; transport errors, timeouts, non-2xx responses,
malformed bodies and an open circuit all read as not yet settled. Retries
are the client's job, by polling check-status again.
"""
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import httpx
import structlog

from pos_checkout.config import Settings
from pos_checkout.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

CHECK_TRANSACTION_PATH = "/check_transaction_by_md5"
BAKONG_SUCCESS_CODE = 0


class SettlementStatus(str, Enum):
    """Classification of a single settlement query."""

    SETTLED = "settled"
    NOT_YET_SETTLED = "not_yet_settled"


class SettlementUnavailableError(Exception):
    """Raised when the settlement API cannot be asked right now."""

    pass


class CircuitBreaker:
    """
    Circuit breaker for Bakong API calls.

    Stops querying the network for a cool-down period after repeated
    transport failures, so a degraded payment network does not tie up
    every status poll for a full timeout.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: int = 30,
        success_threshold: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Number of failures before opening circuit
            timeout: Seconds before attempting to close circuit
            success_threshold: Successful calls needed to close circuit
            clock: Monotonic time source
        """
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.success_threshold = success_threshold
        self.clock = clock
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[float] = None
        self.state = "closed"  # closed, open, half_open

    async def call(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """
        Execute coroutine function with circuit breaker protection.

        Raises:
            SettlementUnavailableError: If circuit is open
        """
        if self.state == "open":
            if (
                self.last_failure_time is not None
                and self.clock() - self.last_failure_time > self.timeout
            ):
                self._set_state("half_open")
                self.success_count = 0
            else:
                raise SettlementUnavailableError("Circuit breaker is open")

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.on_failure()
            raise
        self.on_success()
        return result

    def on_success(self) -> None:
        """Record successful call."""
        self.failure_count = 0
        if self.state == "half_open":
            self.success_count += 1
            if self.success_count >= self.success_threshold:
                self._set_state("closed")

    def on_failure(self) -> None:
        """Record failed call."""
        self.failure_count += 1
        self.last_failure_time = self.clock()
        if self.state == "half_open" or self.failure_count >= self.failure_threshold:
            if self.state != "open":
                logger.warning("settlement_circuit_breaker_opened", failure_count=self.failure_count)
            self._set_state("open")

    def _set_state(self, state: str) -> None:
        if state != self.state:
            logger.info("settlement_circuit_breaker_state_changed", old=self.state, new=state)
        self.state = state
        metrics.set_circuit_breaker_state(state)


class BakongSettlementClient:
    """Settlement poller backed by the Bakong open API."""

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ) -> None:
        """
        Initialize settlement client.

        Args:
            settings: Application settings (token, merchant id, API URL)
            http_client: Optional HTTP client (creates one if not provided)
            circuit_breaker: Optional circuit breaker
        """
        self.settings = settings
        self.enabled = settings.settlement_enabled
        self.circuit_breaker = circuit_breaker or CircuitBreaker()
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            base_url=settings.bakong_api_url,
            timeout=settings.settlement_timeout_seconds,
        )

        logger.info(
            "bakong_settlement_client_initialized",
            enabled=self.enabled,
            api_url=settings.bakong_api_url,
        )

    async def check_settlement(self, fingerprint: str) -> SettlementStatus:
        """
        Query the payment network once for a fingerprint.

        Args:
            fingerprint: MD5 fingerprint of the payment code

        Returns:
            SettlementStatus: SETTLED only on an explicit success response
        """
        if not self.enabled:
            metrics.record_settlement_check("disabled")
            return SettlementStatus.NOT_YET_SETTLED

        start_time = time.time()
        try:
            body = await self.circuit_breaker.call(self._query, fingerprint)
        except SettlementUnavailableError:
            metrics.record_settlement_check("circuit_open")
            logger.info("settlement_check_skipped_circuit_open", fingerprint=fingerprint)
            return SettlementStatus.NOT_YET_SETTLED
        except Exception as e:
            duration = time.time() - start_time
            metrics.record_settlement_check("error", duration)
            logger.warning(
                "settlement_check_failed",
                fingerprint=fingerprint,
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=duration,
            )
            return SettlementStatus.NOT_YET_SETTLED

        duration = time.time() - start_time
        settled = isinstance(body, dict) and body.get("responseCode") == BAKONG_SUCCESS_CODE
        status = SettlementStatus.SETTLED if settled else SettlementStatus.NOT_YET_SETTLED
        metrics.record_settlement_check(status.value, duration)

        logger.info(
            "settlement_checked",
            fingerprint=fingerprint,
            status=status.value,
            response_code=body.get("responseCode") if isinstance(body, dict) else None,
            duration_seconds=duration,
        )
        return status

    async def _query(self, fingerprint: str) -> Any:
        response = await self.http_client.post(
            CHECK_TRANSACTION_PATH,
            json={"md5": fingerprint, "merchantId": self.settings.bakong_merchant_id},
            headers={"Authorization": f"Bearer {self.settings.bakong_token}"},
        )
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self.http_client.aclose()
