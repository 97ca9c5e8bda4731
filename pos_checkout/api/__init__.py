"""FastAPI application and routes."""
from .main import create_app
from .schemas import (
    CheckStatusRequest,
    CheckStatusResponse,
    CreateOrderRequest,
    CreateOrderResponse,
)

__all__ = [
    "create_app",
    "CheckStatusRequest",
    "CheckStatusResponse",
    "CreateOrderRequest",
    "CreateOrderResponse",
]
