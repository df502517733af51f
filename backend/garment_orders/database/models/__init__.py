"""
Database models package initialization.

Importing the models here registers them with ``Base.metadata`` for
Alembic and for ``create_all`` in tests.
"""

from garment_orders.database.base import Base, BaseModel, TimestampMixin, UUIDMixin
from garment_orders.database.models.order import Order, OrderTrackingEntry
from garment_orders.database.models.product import (
    Product,
    ProductCategory,
    ProductPaymentOption,
)

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    "Order",
    "OrderTrackingEntry",
    "Product",
    "ProductCategory",
    "ProductPaymentOption",
]
