"""
Inventory ledger for product stock.

Every change to ``products.quantity`` goes through ``reserve`` or
``release``. Both are single conditional UPDATE statements, so concurrent
requests for the same product serialise in the database and the quantity
can never be driven below zero. The ledger never commits: callers run it
inside the same unit of work as the paired order write.
"""

import uuid
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from garment_orders.core.exceptions import (
    InsufficientStockError,
    OrderValidationError,
    PersistenceConflictError,
    ProductNotFoundError,
)
from garment_orders.core.logging import get_logger
from garment_orders.database.models.product import Product

logger = get_logger(__name__)


def _validate_amount(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 1:
        raise OrderValidationError(
            "Stock amount must be a positive integer", amount=amount
        )
    return amount


class InventoryLedger:
    """
    Atomic stock reservation and release for products.

    The session is shared with the caller so that a stock change and the
    order write it belongs to commit or roll back together.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def reserve(self, product_id: uuid.UUID, amount: int) -> int:
        """
        Take ``amount`` units out of available stock.

        Args:
            product_id: Product to reserve from
            amount: Positive number of units

        Returns:
            Remaining available quantity

        Raises:
            OrderValidationError: If amount is not a positive integer
            ProductNotFoundError: If the product does not exist
            InsufficientStockError: If fewer than ``amount`` units are available
        """
        amount = _validate_amount(amount)

        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.quantity >= amount)
            .values(quantity=Product.quantity - amount)
            .returning(Product.quantity)
            .execution_options(synchronize_session="fetch")
        )

        try:
            result = await self.session.execute(stmt)
            remaining = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(
                "Stock reservation failed - database error",
                product_id=str(product_id),
                amount=amount,
                error=str(e),
            )
            raise PersistenceConflictError(
                "Failed to reserve stock",
                product_id=str(product_id),
                error=str(e),
            ) from e

        if remaining is None:
            available = await self.get_available(product_id)
            logger.warning(
                "Stock reservation rejected",
                product_id=str(product_id),
                requested=amount,
                available=available,
            )
            raise InsufficientStockError(product_id, amount, available)

        logger.info(
            "Stock reserved",
            product_id=str(product_id),
            amount=amount,
            remaining=remaining,
        )
        return remaining

    async def release(self, product_id: uuid.UUID, amount: int) -> int:
        """
        Return ``amount`` units to available stock.

        There is no upper bound; a release simply adds back what a
        reservation took.

        Returns:
            New available quantity

        Raises:
            ProductNotFoundError: If the product does not exist
        """
        amount = _validate_amount(amount)

        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(quantity=Product.quantity + amount)
            .returning(Product.quantity)
            .execution_options(synchronize_session="fetch")
        )

        try:
            result = await self.session.execute(stmt)
            available = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(
                "Stock release failed - database error",
                product_id=str(product_id),
                amount=amount,
                error=str(e),
            )
            raise PersistenceConflictError(
                "Failed to release stock",
                product_id=str(product_id),
                error=str(e),
            ) from e

        if available is None:
            raise ProductNotFoundError(product_id)

        logger.info(
            "Stock released",
            product_id=str(product_id),
            amount=amount,
            available=available,
        )
        return available

    async def get_available(self, product_id: uuid.UUID) -> int:
        """
        Read the current available quantity.

        Raises:
            ProductNotFoundError: If the product does not exist
        """
        result = await self.session.execute(
            select(Product.quantity).where(Product.id == product_id)
        )
        quantity = result.scalar_one_or_none()
        if quantity is None:
            raise ProductNotFoundError(product_id)
        return quantity
