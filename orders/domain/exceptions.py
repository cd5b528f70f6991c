"""
Domain errors for order placement and order lifecycle.

Every error carries a stable ``code`` that the API layer maps to an HTTP
status, and optional ``details`` rendered back to the client.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any


class OrderError(Exception):
    """Base class for order subsystem errors."""

    code = "ORDER_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(OrderError):
    """Malformed or missing request fields."""

    code = "VALIDATION_ERROR"


class OrderTotalMismatch(OrderError):
    """Client-declared total disagrees with the server-computed total."""

    code = "ORDER_TOTAL_MISMATCH"

    def __init__(self, calculated: Decimal, received: Decimal):
        self.calculated = calculated
        self.received = received
        super().__init__(
            "Order total mismatch. Please refresh and try again.",
            details={"calculated": f"{calculated:.2f}", "received": f"{received:.2f}"},
        )


class InsufficientStock(OrderError):
    """A line item asks for more units than the product has in stock."""

    code = "INSUFFICIENT_STOCK"

    def __init__(self, product: str, available: int, requested: int):
        self.product = product
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product}. Available: {available}, requested: {requested}",
            details={"product": product, "available": available, "requested": requested},
        )


class NotFound(OrderError):
    code = "NOT_FOUND"


class Unauthorized(OrderError):
    code = "UNAUTHORIZED"


class Forbidden(OrderError):
    code = "FORBIDDEN"


class PersistenceError(OrderError):
    """Storage layer failure; fatal for the current request."""

    code = "PERSISTENCE_ERROR"


class DuplicateRequest(OrderError):
    """Idempotency key reused with a different request body."""

    code = "DUPLICATE_REQUEST"


class InvalidStatus(ValidationError):
    code = "INVALID_STATUS"


class InvalidDiscount(ValidationError):
    code = "INVALID_DISCOUNT"


class InvalidDate(ValidationError):
    code = "INVALID_DATE"


class TrackingNumberLocked(ValidationError):
    code = "TRACKING_NUMBER_LOCKED"


class InvalidTransition(ValidationError):
    code = "INVALID_TRANSITION"
