"""Order status and payment enums with the order transition table.

The lifecycle is linear with early exits:

    pending -> approved -> processing -> shipped -> delivered
    pending -> rejected
    pending | approved | processing -> cancelled

``delivered``, ``cancelled`` and ``rejected`` are terminal.
"""

from enum import Enum
from typing import Dict, Set

from garment_orders.core.exceptions import OrderValidationError


class OrderStatus(str, Enum):
    """Coarse order lifecycle status."""

    PENDING = "pending"
    APPROVED = "approved"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REJECTED = "rejected"

    @classmethod
    def from_string(cls, value: str) -> "OrderStatus":
        """Convert string to OrderStatus enum.

        Args:
            value: String representation of status

        Returns:
            OrderStatus enum value

        Raises:
            OrderValidationError: If value is not a valid status
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            valid_values = ", ".join(s.value for s in cls)
            raise OrderValidationError(
                "Invalid status",
                status=value,
                valid_values=valid_values,
            ) from e

    def is_terminal(self) -> bool:
        """Check if status is a terminal state."""
        return self in TERMINAL_STATUSES

    def releases_stock(self) -> bool:
        """Landing on this status gives the reserved quantity back."""
        return self in {OrderStatus.CANCELLED, OrderStatus.REJECTED}

    @property
    def display_name(self) -> str:
        """Capitalised label used for tracking entries, e.g. ``Shipped``."""
        return self.value.capitalize()


class PaymentMethod(str, Enum):
    """How the buyer pays."""

    COD = "cod"
    STRIPE = "stripe"
    PAYFAST = "payfast"

    @classmethod
    def from_string(cls, value: str) -> "PaymentMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            raise OrderValidationError(
                "Invalid payment method", payment_method=value
            ) from e


class PaymentType(str, Enum):
    """When the buyer pays relative to delivery."""

    CASH_ON_DELIVERY = "cashOnDelivery"
    ADVANCE_PAYMENT = "advancePayment"
    PARTIAL_PAYMENT = "partialPayment"

    @classmethod
    def from_string(cls, value: str) -> "PaymentType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip())
        except ValueError as e:
            raise OrderValidationError(
                "Invalid payment type", payment_type=value
            ) from e


class PaymentStatus(str, Enum):
    """Payment confirmation state as reported by the payment layer."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


TERMINAL_STATUSES: Set[OrderStatus] = {
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.REJECTED,
}

# Legal successors; self-transitions are handled separately
ORDER_STATUS_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.PENDING: {
        OrderStatus.APPROVED,
        OrderStatus.REJECTED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.APPROVED: {
        OrderStatus.PROCESSING,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PROCESSING: {
        OrderStatus.SHIPPED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.SHIPPED: {
        OrderStatus.DELIVERED,
    },
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REJECTED: set(),  # Terminal
}

# Manager work queue of orders that have passed approval
APPROVED_QUEUE_STATUSES: Set[OrderStatus] = {
    OrderStatus.APPROVED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
}

# Free-text tracking labels that also move the coarse status
TRACKING_SYNC_STATUSES: Set[OrderStatus] = {
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
}


def validate_order_status_transition(
    current: OrderStatus,
    new: OrderStatus
) -> bool:
    """Validate if order status transition is allowed.

    A self-transition is allowed from any non-terminal status and is
    treated by the state machine as a tracking-only no-op.

    Args:
        current: Current order status
        new: Desired new status

    Returns:
        True if transition is valid
    """
    if current == new:
        return not current.is_terminal()
    return new in ORDER_STATUS_TRANSITIONS.get(current, set())


def get_allowed_order_transitions(
    current: OrderStatus
) -> Set[OrderStatus]:
    """Get all allowed transitions from current order status.

    Args:
        current: Current order status

    Returns:
        Set of allowed next statuses
    """
    return ORDER_STATUS_TRANSITIONS.get(current, set()).copy()
