"""
Pydantic schemas for API request/response models.

Field names on the wire follow the checkout frontend (camelCase, `md5` for
the settlement fingerprint).
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CustomerPayload(BaseModel):
    """Customer details, free-form."""

    name: Optional[str] = Field(default=None, description="Customer name")
    phone: Optional[str] = Field(default=None, description="Customer contact number")
    address: Optional[str] = Field(default=None, description="Optional delivery address")

    model_config = ConfigDict(extra="ignore")


class CartItemPayload(BaseModel):
    """One cart line. `price` is only honoured by client-priced deployments."""

    id: Optional[Union[int, str]] = Field(default=None, description="Catalog product id")
    ref: Optional[str] = Field(default=None, description="Product reference (alternative to id)")
    qty: int = Field(..., gt=0, description="Quantity")
    price: Optional[Decimal] = Field(default=None, description="Seller-entered unit price")
    name: Optional[str] = Field(default=None, description="Display name for free-priced items")

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="after")
    def require_reference(self) -> "CartItemPayload":
        """Each line needs an id or a ref."""
        if self.id is None and not self.ref:
            raise ValueError("Cart item needs an id or ref")
        return self

    @property
    def product_ref(self) -> str:
        return str(self.id) if self.id is not None else str(self.ref)


class SellerPayload(BaseModel):
    """Seller attribution for the settlement notification."""

    name: Optional[str] = Field(default=None, description="Seller name")
    role: Optional[str] = Field(default=None, description="Seller role")
    approved_by: Optional[str] = Field(
        default=None, alias="approvedBy", description="Approving admin"
    )

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CreateOrderRequest(BaseModel):
    """Request schema for creating an order."""

    customer: Optional[CustomerPayload] = Field(default=None, description="Customer details")
    cart: Optional[List[CartItemPayload]] = Field(default=None, description="Cart lines")
    seller: Optional[SellerPayload] = Field(default=None, description="Seller attribution")

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "customer": {"name": "Dara", "phone": "012345678"},
                    "cart": [{"id": 1, "qty": 2}],
                    "seller": {"name": "Sokpheak", "role": "cashier"},
                }
            ]
        }
    )


class CreateOrderResponse(BaseModel):
    """Response schema for order creation."""

    qr_string: str = Field(..., alias="qrString", description="Scannable KHQR payload")
    md5: str = Field(..., description="Settlement fingerprint")
    amount: Union[int, float] = Field(
        ..., description="Order total; whole riel for KHR, dollars and cents for USD"
    )
    currency: str = Field(..., description="Currency code")
    bill_number: str = Field(..., alias="billNumber", description="Invoice number")
    expire_at: int = Field(..., alias="expireAt", description="Code expiry (epoch ms)")
    mode: str = Field(..., description="Code mode (live or mock)")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "qrString": "00020101021230...6304ABCD",
                    "md5": "d41d8cd98f00b204e9800998ecf8427e",
                    "amount": 200,
                    "currency": "KHR",
                    "billNumber": "INV-1735689600000-0001",
                    "expireAt": 1735689900000,
                    "mode": "live",
                }
            ]
        },
    )


class CheckStatusRequest(BaseModel):
    """Request schema for a payment status check."""

    md5: Optional[str] = Field(default=None, description="Settlement fingerprint")


class CheckStatusResponse(BaseModel):
    """Response schema for a payment status check."""

    status: str = Field(..., description="success or pending")


class ProductResponse(BaseModel):
    """Catalog entry exposed to the frontend."""

    id: int
    name: str
    category: str
    price: Union[int, float]


class PublicConfigResponse(BaseModel):
    """Non-secret client configuration."""

    merchant_name: str = Field(..., alias="merchantName")
    currency: str
    pricing_mode: str = Field(..., alias="pricingMode")
    settlement_enabled: bool = Field(..., alias="settlementEnabled")
    code_mode: str = Field(..., alias="codeMode")
    order_ttl_seconds: int = Field(..., alias="orderTtlSeconds")
    socket_path: str = Field(..., alias="socketPath")
    products: List[ProductResponse]

    model_config = ConfigDict(populate_by_name=True)


class HealthCheckResponse(BaseModel):
    """Response schema for health checks."""

    status: str = Field(..., description="Overall health status (healthy/unhealthy)")
    checks: Optional[Dict[str, Any]] = Field(default=None, description="Individual checks")
    message: Optional[str] = Field(default=None, description="Status message")
