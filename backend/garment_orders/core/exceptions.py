"""
Domain error taxonomy.

Every failure the order lifecycle or the inventory ledger can report is a
subclass of GarmentOrdersError carrying a stable ``code`` and keyword
context for structured logging. The HTTP layer maps codes to status codes;
nothing below the API knows about HTTP.
"""

from typing import Any


class GarmentOrdersError(Exception):
    """Base exception for all domain failures."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class OrderValidationError(GarmentOrdersError):
    """Raised when request input is missing or malformed."""

    code = "VALIDATION_ERROR"


class NotFoundError(GarmentOrdersError):
    """Raised when a referenced order or product does not exist."""

    code = "NOT_FOUND"


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: Any):
        super().__init__("Order not found", order_id=str(order_id))


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: Any):
        super().__init__("Product not found", product_id=str(product_id))


class InsufficientStockError(GarmentOrdersError):
    """Raised when a reservation would drive product quantity negative."""

    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: Any, requested: int, available: int):
        super().__init__(
            f"Only {available} units available in stock",
            product_id=str(product_id),
            requested=requested,
            available=available,
        )
        self.available = available


class BelowMinimumOrderError(GarmentOrdersError):
    """Raised when the requested quantity is below the product minimum."""

    code = "BELOW_MINIMUM_ORDER"

    def __init__(self, product_id: Any, requested: int, min_order: int):
        super().__init__(
            f"Minimum order quantity is {min_order}",
            product_id=str(product_id),
            requested=requested,
            min_order=min_order,
        )
        self.min_order = min_order


class UnauthorizedError(GarmentOrdersError):
    """Raised when the caller may not act on the target order."""

    code = "UNAUTHORIZED"


class InvalidTransitionError(GarmentOrdersError):
    """Raised when a status change is illegal from the current status."""

    code = "INVALID_TRANSITION"


class PersistenceConflictError(GarmentOrdersError):
    """Raised when the store rejects a write; the unit of work is rolled back."""

    code = "CONFLICT_OR_PERSISTENCE_FAILURE"
