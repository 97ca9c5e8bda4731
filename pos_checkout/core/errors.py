"""Exceptions raised by the checkout core."""


class CheckoutError(Exception):
    """Base exception for checkout processing errors."""

    pass


class OrderValidationError(CheckoutError):
    """Raised when an order or status request fails validation."""

    pass
