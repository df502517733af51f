"""
Order and tracking entry models.

An order references one product and one buyer. Its tracking log is an
append-only list of entries kept in insertion order by a per-order
sequence number; entries are never updated or removed.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from garment_orders.database.base import Base, BaseModel, as_utc, utcnow
from garment_orders.database.models.product import Product, enum_column
from garment_orders.services.orders.enums import (
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
)


class Order(BaseModel):
    """
    Buyer order for a single product.

    Attributes:
        product_id: Ordered product
        buyer_id: Buyer who placed the order
        quantity: Units ordered (reserved from product stock)
        unit_price: Product price at the time of ordering
        total_amount: Amount charged for the order
        shipping_address: Delivery address
        phone_number: Contact number
        notes: Buyer notes
        payment_method: cod, stripe or payfast
        payment_type: cashOnDelivery, advancePayment or partialPayment
        payment_status: pending, paid or failed
        payment_reference: Checkout reference handed over by the payment layer
        status: Coarse lifecycle status
        approved_at: Set once, when the order is first approved
        tracking: Append-only tracking log in insertion order
    """

    __tablename__ = "orders"

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Ordered product",
    )

    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
        comment="Buyer who placed the order",
    )

    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Units ordered",
    )

    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Product price at order time",
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Total order amount",
    )

    shipping_address: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        comment="Delivery address",
    )

    phone_number: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Contact phone number",
    )

    notes: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        comment="Buyer notes",
    )

    payment_method: Mapped[PaymentMethod] = mapped_column(
        enum_column(PaymentMethod, "payment_method"),
        nullable=False,
        default=PaymentMethod.COD,
        comment="Payment method",
    )

    payment_type: Mapped[PaymentType] = mapped_column(
        enum_column(PaymentType, "payment_type"),
        nullable=False,
        comment="Payment timing",
    )

    payment_status: Mapped[PaymentStatus] = mapped_column(
        enum_column(PaymentStatus, "payment_status"),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True,
        comment="Payment confirmation state",
    )

    payment_reference: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="External checkout reference",
    )

    status: Mapped[OrderStatus] = mapped_column(
        enum_column(OrderStatus, "order_status"),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
        comment="Current order status",
    )

    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the order was first approved",
    )

    product: Mapped[Product] = relationship(
        Product,
        foreign_keys=[product_id],
        lazy="selectin",
    )

    tracking: Mapped[list["OrderTrackingEntry"]] = relationship(
        "OrderTrackingEntry",
        back_populates="order",
        lazy="selectin",
        order_by="OrderTrackingEntry.sequence",
        cascade="save-update, merge",
    )

    __table_args__ = (
        Index("ix_orders_buyer_created", "buyer_id", "created_at"),
        Index("ix_orders_status_created", "status", "created_at"),
        CheckConstraint("quantity >= 1", name="ck_orders_quantity_positive"),
        CheckConstraint("total_amount > 0", name="ck_orders_total_amount_positive"),
        CheckConstraint("unit_price >= 0", name="ck_orders_unit_price_non_negative"),
        {"comment": "Buyer orders with lifecycle status"},
    )

    def __repr__(self) -> str:
        return (
            f"<Order(id={self.id}, buyer_id={self.buyer_id}, "
            f"status={self.status.value}, total_amount={self.total_amount})>"
        )

    @property
    def next_tracking_sequence(self) -> int:
        """Sequence number for the next tracking entry."""
        if not self.tracking:
            return 1
        return max(entry.sequence for entry in self.tracking) + 1


class OrderTrackingEntry(Base):
    """
    One entry in an order's tracking log.

    Attributes:
        order_id: Parent order
        sequence: 1-based insertion position within the order
        status: Free-text label, e.g. "Order Placed" or "Shipped"
        location: Where the event happened
        note: Human readable note
        timestamp: When the entry was appended
    """

    __tablename__ = "order_tracking_entries"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(String(100), nullable=False)

    location: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    note: Mapped[str] = mapped_column(Text, nullable=False, default="")

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    order: Mapped[Order] = relationship(
        Order,
        back_populates="tracking",
        foreign_keys=[order_id],
    )

    __table_args__ = (
        UniqueConstraint("order_id", "sequence", name="uq_order_tracking_sequence"),
        {"comment": "Append-only order tracking log"},
    )

    def to_dict(self, exclude: Optional[set[str]] = None) -> dict:
        return {
            "status": self.status,
            "location": self.location,
            "note": self.note,
            "timestamp": as_utc(self.timestamp).isoformat() if self.timestamp else None,
        }
