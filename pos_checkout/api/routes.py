"""
API routes for checkout and settlement.
"""
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from pos_checkout.core.errors import OrderValidationError
from pos_checkout.core.models import Customer, SellerContext
from pos_checkout.core.pricing import CartLine

from .dependencies import ServiceContainer, get_container
from .schemas import (
    CheckStatusRequest,
    CheckStatusResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    HealthCheckResponse,
    ProductResponse,
    PublicConfigResponse,
)

logger = structlog.get_logger(__name__)

SOCKET_PATH = "/socket"

# Create routers
checkout_router = APIRouter(prefix="/api", tags=["checkout"])
realtime_router = APIRouter(tags=["realtime"])
monitoring_router = APIRouter(tags=["monitoring"])


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def wire_amount(amount: Decimal, currency: str) -> Union[int, float]:
    """KHR has no minor unit, so riel amounts go out as integers."""
    if currency == "KHR":
        return int(amount)
    return float(amount)


def _to_domain(
    request: CreateOrderRequest,
) -> Tuple[Optional[Customer], List[CartLine], Optional[SellerContext]]:
    customer = None
    if request.customer is not None and request.customer.name:
        customer = Customer(
            name=request.customer.name,
            phone=request.customer.phone,
            address=request.customer.address,
        )

    lines = [
        CartLine(ref=item.product_ref, quantity=item.qty, price=item.price, name=item.name)
        for item in request.cart or []
    ]

    seller = None
    if request.seller is not None:
        seller = SellerContext(
            name=request.seller.name,
            role=request.seller.role,
            approved_by=request.seller.approved_by,
        )
    return customer, lines, seller


@checkout_router.post(
    "/create-order",
    response_model=CreateOrderResponse,
    summary="Create an order",
    description="Price a cart server-side and issue its payment code",
    responses={400: {"description": "Invalid data or invalid total"}},
)
async def create_order(
    request: CreateOrderRequest,
    container: ServiceContainer = Depends(get_container),
) -> Union[CreateOrderResponse, JSONResponse]:
    """Create an order and return the KHQR payload to display."""
    start_time = time.time()

    try:
        customer, lines, seller = _to_domain(request)
        order = container.checkout.create_order(customer, lines, seller)

    except OrderValidationError as e:
        logger.warning("api_create_order_validation_error", error=str(e))
        return error_response(status.HTTP_400_BAD_REQUEST, str(e))

    except Exception as e:
        logger.error(
            "api_create_order_unexpected_error",
            error=str(e),
            error_type=type(e).__name__,
        )
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server Error")

    logger.info(
        "api_create_order_success",
        fingerprint=order.fingerprint,
        mode=order.code_mode.value,
        duration_seconds=time.time() - start_time,
    )

    return CreateOrderResponse(
        qr_string=order.payload,
        md5=order.fingerprint,
        amount=wire_amount(order.amount, order.currency),
        currency=order.currency,
        bill_number=order.bill_number,
        expire_at=order.expires_at_ms,
        mode=order.code_mode.value,
    )


@checkout_router.post(
    "/check-status",
    response_model=CheckStatusResponse,
    summary="Check payment status",
    description="Poll the payment network once for a fingerprint",
    responses={400: {"description": "Missing fingerprint"}},
)
async def check_status(
    request: CheckStatusRequest,
    container: ServiceContainer = Depends(get_container),
) -> Union[Dict[str, Any], JSONResponse]:
    """
    Check whether the payment for a fingerprint has cleared.

    Returns "success" once, to the check that settles the order.
    """
    try:
        result = await container.checkout.check_status(request.md5)
    except OrderValidationError as e:
        return error_response(status.HTTP_400_BAD_REQUEST, str(e))

    if result == "success":
        logger.info("api_check_status_success", fingerprint=request.md5)
    return {"status": result}


@checkout_router.get(
    "/config",
    response_model=PublicConfigResponse,
    summary="Public client configuration",
)
async def public_config(container: ServiceContainer = Depends(get_container)) -> PublicConfigResponse:
    """Non-secret settings the checkout frontend needs."""
    settings = container.settings
    return PublicConfigResponse(
        merchant_name=settings.merchant_name,
        currency=settings.currency,
        pricing_mode=settings.pricing_mode,
        settlement_enabled=settings.settlement_enabled,
        code_mode=container.code_generator.mode.value,
        order_ttl_seconds=settings.order_ttl_seconds,
        socket_path=SOCKET_PATH,
        products=_products(container),
    )


@checkout_router.get(
    "/products",
    response_model=List[ProductResponse],
    summary="Product catalog",
)
async def products(container: ServiceContainer = Depends(get_container)) -> List[ProductResponse]:
    """Trusted catalog, so the frontend shows the prices the server charges."""
    return _products(container)


def _products(container: ServiceContainer) -> List[ProductResponse]:
    return [
        ProductResponse(
            id=p.id,
            name=p.name,
            category=p.category,
            price=wire_amount(p.price, container.settings.currency),
        )
        for p in container.catalog.all()
    ]


@realtime_router.websocket(SOCKET_PATH)
async def payment_events(websocket: WebSocket) -> None:
    """Subscribe-only stream of payment-success events."""
    hub = websocket.app.state.container.hub
    await hub.connect(websocket)
    try:
        while True:
            # Subscribers do not send anything meaningful; reading keeps the
            # connection open and notices disconnects.
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(websocket)


@monitoring_router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health check",
    description="Check overall system health",
)
async def health(container: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    """Health check endpoint for monitoring."""
    try:
        return await container.health_check.check_all()
    except Exception as e:
        logger.error("health_check_error", error=str(e))
        return {
            "status": "unhealthy",
            "checks": {"error": str(e)},
        }


@monitoring_router.get(
    "/health/live",
    response_model=HealthCheckResponse,
    summary="Liveness check",
)
async def liveness(container: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    """Liveness check endpoint."""
    return await container.health_check.liveness()


@monitoring_router.get(
    "/health/ready",
    response_model=HealthCheckResponse,
    summary="Readiness check",
)
async def readiness(container: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    """Readiness check endpoint."""
    result = await container.health_check.readiness()
    if result["status"] != "healthy":
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result)
    return result


@monitoring_router.get(
    "/metrics",
    summary="Prometheus metrics",
    include_in_schema=False,
)
async def prometheus_metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
