"""Exception hierarchy for the order fulfillment engine.

Every error carries a stable ``error_code`` and an HTTP-ish ``status_code`` so
outer layers (the API, background jobs) can react without string matching,
plus a ``context`` dict with the details a caller needs to react
programmatically (requested vs available stock, current vs attempted status).
"""

from typing import Any


class ShopError(Exception):
    """Base class for all domain errors."""

    error_code = "APP_ERROR"
    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "error": self.error_code,
            "message": self.message,
            "context": {k: _jsonable(v) for k, v in self.context.items()},
        }


def _jsonable(value):
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


# ---------------------------------------------------------------------------
# Structural / validation errors (rejected before any mutation)
# ---------------------------------------------------------------------------
class ValidationError(ShopError):
    error_code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid input"


class InvalidCartError(ValidationError):
    error_code = "INVALID_CART"
    default_message = "Cart contents are invalid"


class InvalidQuantityError(ValidationError):
    error_code = "INVALID_QUANTITY"
    default_message = "Quantity must be a positive integer"


class ProductNotFoundError(ValidationError):
    error_code = "PRODUCT_NOT_FOUND"
    status_code = 404
    default_message = "Product not found"


class ProductUnavailableError(ValidationError):
    error_code = "PRODUCT_UNAVAILABLE"
    status_code = 409
    default_message = "Product is not available"


class OrderNotFoundError(ValidationError):
    error_code = "ORDER_NOT_FOUND"
    status_code = 404
    default_message = "Order not found"


class RefundPreconditionError(ValidationError):
    error_code = "REFUND_PRECONDITION_FAILED"
    status_code = 409
    default_message = "Order has no completed payment capture to refund"


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------
class InventoryError(ShopError):
    error_code = "INVENTORY_ERROR"
    default_message = "Inventory error occurred"


class InsufficientStockError(InventoryError):
    """Raised when a product does not hold enough units for a request."""

    error_code = "INSUFFICIENT_STOCK"
    status_code = 409
    default_message = "Insufficient stock available"

    def __init__(self, message: str | None = None, *, requested: int, available: int, **context: Any) -> None:
        self.requested = requested
        self.available = available
        super().__init__(message, requested=requested, available=available, **context)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderError(ShopError):
    error_code = "ORDER_ERROR"
    default_message = "Order error occurred"


class OrderCreationError(OrderError):
    """Generic creation failure; the original error is kept as ``__cause__``."""

    error_code = "ORDER_CREATION_FAILED"
    default_message = "Failed to create order"


class OrderCancellationError(OrderError):
    error_code = "ORDER_CANCELLATION_FAILED"
    status_code = 409
    default_message = "Failed to cancel order"


class InvalidOrderStateError(OrderError):
    error_code = "INVALID_ORDER_STATE"
    status_code = 409
    default_message = "Invalid order state for this operation"


class InvalidTransitionError(InvalidOrderStateError):
    error_code = "INVALID_STATUS_TRANSITION"
    default_message = "Invalid status transition"


class StaleOrderError(OrderError):
    error_code = "STALE_ORDER"
    status_code = 409
    default_message = "The order has been modified by another process"


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class PaymentError(ShopError):
    error_code = "PAYMENT_ERROR"
    default_message = "Payment processing error occurred"


class PaymentFailedError(PaymentError):
    error_code = "PAYMENT_FAILED"
    status_code = 402
    default_message = "Payment failed"


class RefundFailedError(PaymentError):
    error_code = "REFUND_FAILED"
    status_code = 502
    default_message = "Refund processing failed"
