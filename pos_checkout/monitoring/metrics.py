"""
Prometheus metrics for checkout monitoring.

Tracks:
- Orders created by code mode
- Order amounts
- Settlement checks by result
- Bakong API call duration
- Settlements resolved
- Notification deliveries by sink
- Pending orders and expired orders swept
"""
from prometheus_client import Counter, Gauge, Histogram

# Order metrics
orders_created_total = Counter(
    "checkout_orders_created_total",
    "Total number of orders created",
    ["code_mode", "currency"],  # code_mode: live, mock
)

orders_rejected_total = Counter(
    "checkout_orders_rejected_total",
    "Total number of order requests rejected",
    ["reason"],
)

order_amount = Histogram(
    "checkout_order_amount",
    "Order totals in the deployment currency",
    buckets=(1, 5, 10, 50, 100, 500, 1000, 5000, 10000, 50000, 100000, 500000),
)

pending_orders = Gauge(
    "checkout_pending_orders",
    "Number of orders awaiting settlement",
)

# Settlement metrics
settlement_checks_total = Counter(
    "checkout_settlement_checks_total",
    "Total settlement checks",
    ["result"],  # settled, not_yet_settled, disabled, error, circuit_open
)

settlement_api_duration_seconds = Histogram(
    "checkout_settlement_api_duration_seconds",
    "Bakong settlement API call duration in seconds",
    buckets=(0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0),
)

settlement_circuit_breaker_state = Gauge(
    "checkout_settlement_circuit_breaker_state",
    "Settlement circuit breaker state (0=closed, 1=open, 2=half_open)",
)

settlements_resolved_total = Counter(
    "checkout_settlements_resolved_total",
    "Total orders transitioned to settled",
)

# Notification metrics
notifications_total = Counter(
    "checkout_notifications_total",
    "Total settlement notifications by sink",
    ["sink", "status"],  # sink: broadcast, telegram; status: sent, failed, skipped
)

# Expiry metrics
orders_expired_total = Counter(
    "checkout_orders_expired_total",
    "Total pending orders removed by the expiry sweep",
)


class MetricsCollector:
    """Helper class for collecting metrics."""

    @staticmethod
    def record_order_created(code_mode: str, currency: str, amount: float) -> None:
        """Record a created order."""
        orders_created_total.labels(code_mode=code_mode, currency=currency).inc()
        order_amount.observe(amount)

    @staticmethod
    def record_order_rejected(reason: str) -> None:
        """Record a rejected order request."""
        orders_rejected_total.labels(reason=reason).inc()

    @staticmethod
    def set_pending_orders(count: int) -> None:
        """Set pending order count."""
        pending_orders.set(count)

    @staticmethod
    def record_settlement_check(result: str, duration_seconds: float = 0) -> None:
        """Record a settlement check."""
        settlement_checks_total.labels(result=result).inc()
        if duration_seconds > 0:
            settlement_api_duration_seconds.observe(duration_seconds)

    @staticmethod
    def set_circuit_breaker_state(state: str) -> None:
        """Set circuit breaker state."""
        state_map = {"closed": 0, "open": 1, "half_open": 2}
        settlement_circuit_breaker_state.set(state_map.get(state, 0))

    @staticmethod
    def record_settlement_resolved() -> None:
        """Record a pending to settled transition."""
        settlements_resolved_total.inc()

    @staticmethod
    def record_notification(sink: str, status: str) -> None:
        """Record a notification delivery attempt."""
        notifications_total.labels(sink=sink, status=status).inc()

    @staticmethod
    def record_orders_expired(count: int) -> None:
        """Record orders removed by the expiry sweep."""
        if count > 0:
            orders_expired_total.inc(count)


# Export singleton instance
metrics = MetricsCollector()
