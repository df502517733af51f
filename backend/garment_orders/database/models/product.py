"""
Product model for the garment catalogue.

Catalogue management lives outside the order core; the only column the
core mutates is ``quantity``, and only through the inventory ledger.
"""

import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from garment_orders.database.base import BaseModel


class ProductCategory(str, Enum):
    SHIRT = "shirt"
    PANT = "pant"
    JACKET = "jacket"
    ACCESSORIES = "accessories"


class ProductPaymentOption(str, Enum):
    """Payment modes a seller accepts for a product."""

    CASH_ON_DELIVERY = "cashOnDelivery"
    PAY_FIRST = "payFirst"


def enum_column(enum_cls: type[Enum], name: str) -> SQLEnum:
    """Portable enum column storing the member values."""
    return SQLEnum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        length=32,
        values_callable=lambda members: [member.value for member in members],
    )


class Product(BaseModel):
    """
    Garment product with its available stock.

    Attributes:
        title: Display title
        description: Long description
        category: Garment category
        price: Unit price
        quantity: Units currently available (never negative)
        min_order: Smallest quantity a single order may request
        payment_options: Payment mode accepted by the seller
        show_on_home: Whether the product is featured
        created_by: Manager who listed the product
    """

    __tablename__ = "products"

    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Product title",
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        comment="Product description",
    )

    category: Mapped[ProductCategory] = mapped_column(
        enum_column(ProductCategory, "product_category"),
        nullable=False,
        default=ProductCategory.SHIRT,
        index=True,
        comment="Garment category",
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Unit price",
    )

    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Available stock",
    )

    min_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Minimum order quantity",
    )

    payment_options: Mapped[ProductPaymentOption] = mapped_column(
        enum_column(ProductPaymentOption, "product_payment_option"),
        nullable=False,
        default=ProductPaymentOption.CASH_ON_DELIVERY,
        comment="Accepted payment mode",
    )

    show_on_home: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Featured on the home page",
    )

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        comment="Manager who listed the product",
    )

    __table_args__ = (
        Index("ix_products_category_created", "category", "created_at"),
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        CheckConstraint("min_order >= 1", name="ck_products_min_order_positive"),
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        {"comment": "Garment catalogue with available stock"},
    )

    def __repr__(self) -> str:
        return (
            f"<Product(id={self.id}, title={self.title!r}, "
            f"quantity={self.quantity}, min_order={self.min_order})>"
        )
