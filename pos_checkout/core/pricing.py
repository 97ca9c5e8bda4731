"""
Server-side cart pricing.

Two strategies share one interface and are selected per deployment:

- catalog: unit prices come from the trusted product catalog, any price
  the client sends is ignored, unknown products are dropped from the cart.
- client: the seller types the price at the till and the client price is
  used as-is.
"""
import itertools
import threading
import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import structlog

from .errors import OrderValidationError
from .models import LineItem

logger = structlog.get_logger(__name__)

# Smallest unit each currency is charged in.
CURRENCY_QUANTUM = {
    "KHR": Decimal("1"),
    "USD": Decimal("0.01"),
}


@dataclass(frozen=True)
class Product:
    """Catalog entry; the price is in the deployment currency."""

    id: int
    name: str
    category: str
    price: Decimal


@dataclass(frozen=True)
class CartLine:
    """Unpriced cart line as received from the client."""

    ref: str
    quantity: int
    price: Optional[Decimal] = None
    name: Optional[str] = None


DEFAULT_CATALOG: Tuple[Product, ...] = (
    Product(1, "Nike Air Max", "Shoes", Decimal("100")),
    Product(2, "Adidas Ultraboost", "Shoes", Decimal("100")),
    Product(3, "Classic White Tee", "Apparel", Decimal("100")),
    Product(4, "Urban Hoodie", "Apparel", Decimal("100")),
    Product(5, "Smart Watch Series 7", "Electronics", Decimal("250")),
    Product(6, "Wireless Headphones", "Electronics", Decimal("150")),
    Product(7, "Denim Jacket", "Apparel", Decimal("120")),
    Product(8, "Leather Wallet", "Accessories", Decimal("50")),
)


class ProductCatalog:
    """Read-only product lookup keyed by product reference."""

    def __init__(self, products: Iterable[Product] = DEFAULT_CATALOG) -> None:
        self._products: Dict[str, Product] = {str(p.id): p for p in products}

    def find(self, ref: Union[str, int]) -> Optional[Product]:
        return self._products.get(str(ref))

    def all(self) -> List[Product]:
        return list(self._products.values())


class PricingStrategy:
    """Base class for turning cart lines into priced line items."""

    mode: str = ""

    def price_lines(self, lines: Sequence[CartLine]) -> List[LineItem]:
        raise NotImplementedError

    def quote(self, lines: Sequence[CartLine], currency: str) -> Tuple[List[LineItem], Decimal]:
        """
        Price a cart and compute its total.

        Raises:
            OrderValidationError: If the cart is empty or the total is not positive
        """
        if not lines:
            raise OrderValidationError("Invalid data")

        items = self.price_lines(lines)
        total = sum((item.subtotal for item in items), Decimal("0"))
        try:
            total = total.quantize(CURRENCY_QUANTUM[currency], rounding=ROUND_HALF_UP)
        except InvalidOperation:
            # More digits than the decimal context can hold
            logger.info("order_total_out_of_range", pricing_mode=self.mode, lines=len(lines))
            raise OrderValidationError("Invalid total")

        if total <= 0:
            logger.info(
                "order_total_rejected",
                pricing_mode=self.mode,
                total=str(total),
                lines=len(lines),
            )
            raise OrderValidationError("Invalid total")

        return items, total


class CatalogPricing(PricingStrategy):
    """Prices come only from the trusted catalog."""

    mode = "catalog"

    def __init__(self, catalog: ProductCatalog) -> None:
        self.catalog = catalog

    def price_lines(self, lines: Sequence[CartLine]) -> List[LineItem]:
        items = []
        for line in lines:
            product = self.catalog.find(line.ref)
            if product is None:
                logger.warning("cart_unknown_product_dropped", product_ref=line.ref)
                continue
            items.append(
                LineItem(
                    product_ref=str(product.id),
                    name=product.name,
                    quantity=line.quantity,
                    unit_price=product.price,
                )
            )
        return items


class ClientPricing(PricingStrategy):
    """Seller-entered prices, trusted as sent."""

    mode = "client"

    def __init__(self, catalog: Optional[ProductCatalog] = None) -> None:
        self.catalog = catalog

    def price_lines(self, lines: Sequence[CartLine]) -> List[LineItem]:
        items = []
        for line in lines:
            if line.price is None:
                raise OrderValidationError("Invalid data")
            try:
                unit_price = Decimal(line.price)
            except (InvalidOperation, TypeError, ValueError):
                raise OrderValidationError("Invalid data")

            name = line.name
            if not name and self.catalog is not None:
                product = self.catalog.find(line.ref)
                name = product.name if product else None

            items.append(
                LineItem(
                    product_ref=line.ref,
                    name=name or line.ref,
                    quantity=line.quantity,
                    unit_price=unit_price,
                )
            )
        return items


def build_pricing_strategy(mode: str, catalog: ProductCatalog) -> PricingStrategy:
    """Select the pricing strategy configured for this deployment."""
    if mode == "catalog":
        return CatalogPricing(catalog)
    if mode == "client":
        return ClientPricing(catalog)
    raise ValueError(f"Unknown pricing mode: {mode}")


class InvoiceNumberGenerator:
    """
    Time-derived invoice numbers.

    Format: INV-<epoch ms>-<sequence>. The sequence is per process, so two
    orders created within the same millisecond still get distinct numbers.
    """

    def __init__(self, prefix: str = "INV") -> None:
        self.prefix = prefix
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def next(self, now_ms: Optional[int] = None) -> str:
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        with self._lock:
            seq = next(self._counter)
        return f"{self.prefix}-{now_ms}-{seq:04d}"
