"""
Order data access repository.

OrderRepository owns every query against ``orders`` and
``order_tracking_entries`` (plus the product lookups order creation needs).
It flushes but never commits; transaction boundaries belong to the caller's
unit of work. Database failures surface as PersistenceConflictError.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from garment_orders.core.exceptions import PersistenceConflictError
from garment_orders.core.logging import get_logger
from garment_orders.database.base import utcnow
from garment_orders.database.models.order import Order, OrderTrackingEntry
from garment_orders.database.models.product import Product
from garment_orders.services.orders.enums import OrderStatus

logger = get_logger(__name__)


class OrderRepository:
    """
    Repository for order data access operations.

    Read methods load the tracking log eagerly so responses can be built
    without lazy loads on the async session.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize order repository.

        Args:
            session: Async database session
        """
        self.session = session

    def _wrap(self, action: str, e: SQLAlchemyError, **context: Any) -> PersistenceConflictError:
        logger.error(
            f"Failed to {action}",
            error=str(e),
            error_type=type(e).__name__,
            **context,
        )
        return PersistenceConflictError(f"Failed to {action}", error=str(e), **context)

    # Products

    async def get_product(self, product_id: uuid.UUID) -> Optional[Product]:
        """Fetch a product by id, or None."""
        try:
            result = await self.session.execute(
                select(Product)
                .where(Product.id == product_id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise self._wrap("fetch product", e, product_id=str(product_id)) from e

    async def count_products(self) -> int:
        try:
            result = await self.session.execute(
                select(func.count()).select_from(Product)
            )
            return result.scalar_one()
        except SQLAlchemyError as e:
            raise self._wrap("count products", e) from e

    # Orders

    async def add_order(self, order: Order) -> Order:
        """
        Stage a new order and flush it so its id and defaults are assigned.

        The order's tracking entries are flushed with it.
        """
        try:
            self.session.add(order)
            await self.session.flush()
            logger.debug("Order staged", order_id=str(order.id))
            return order
        except SQLAlchemyError as e:
            raise self._wrap("create order", e, buyer_id=str(order.buyer_id)) from e

    async def get_order_by_id(self, order_id: uuid.UUID) -> Optional[Order]:
        """
        Get order by ID with its tracking log.

        Rows already in the identity map are refreshed from the database so
        that status checks see the latest committed value.
        """
        try:
            stmt = (
                select(Order)
                .where(Order.id == order_id)
                .execution_options(populate_existing=True)
            )
            result = await self.session.execute(stmt)
            order = result.scalar_one_or_none()

            logger.debug(
                "Order lookup",
                order_id=str(order_id),
                found=order is not None,
            )
            return order
        except SQLAlchemyError as e:
            raise self._wrap("fetch order", e, order_id=str(order_id)) from e

    async def get_buyer_orders(self, buyer_id: uuid.UUID) -> Sequence[Order]:
        """All orders placed by a buyer, newest first."""
        try:
            stmt = (
                select(Order)
                .where(Order.buyer_id == buyer_id)
                .order_by(Order.created_at.desc())
            )
            result = await self.session.execute(stmt)
            return result.scalars().all()
        except SQLAlchemyError as e:
            raise self._wrap("fetch buyer orders", e, buyer_id=str(buyer_id)) from e

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[Sequence[Order], int]:
        """
        List orders with an optional status filter.

        Returns:
            Tuple of (orders, total_count)
        """
        try:
            conditions = []
            if status is not None:
                conditions.append(Order.status == status)

            stmt = (
                select(Order)
                .where(*conditions)
                .order_by(Order.created_at.desc())
                .offset(skip)
                .limit(limit)
            )
            count_stmt = select(func.count()).select_from(Order).where(*conditions)

            result = await self.session.execute(stmt)
            count_result = await self.session.execute(count_stmt)

            orders = result.scalars().all()
            total_count = count_result.scalar_one()

            logger.debug(
                "Orders listed",
                status=status.value if status else None,
                count=len(orders),
                total=total_count,
            )
            return orders, total_count
        except SQLAlchemyError as e:
            raise self._wrap("list orders", e) from e

    async def get_orders_by_statuses(
        self, statuses: Iterable[OrderStatus]
    ) -> Sequence[Order]:
        """Orders whose status is in ``statuses``, newest first."""
        try:
            stmt = (
                select(Order)
                .where(Order.status.in_(list(statuses)))
                .order_by(Order.created_at.desc())
            )
            result = await self.session.execute(stmt)
            return result.scalars().all()
        except SQLAlchemyError as e:
            raise self._wrap("fetch orders by status", e) from e

    async def compare_and_set_status(
        self,
        order_id: uuid.UUID,
        expected: OrderStatus,
        new_status: OrderStatus,
        approved_at: Optional[datetime] = None,
    ) -> bool:
        """
        Move an order to ``new_status`` only if it is still ``expected``.

        Returns:
            True if the row was updated, False if another writer moved the
            order first
        """
        values: dict[str, Any] = {"status": new_status, "updated_at": utcnow()}
        if approved_at is not None:
            values["approved_at"] = approved_at

        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status == expected)
            .values(**values)
            .returning(Order.id)
            .execution_options(synchronize_session="fetch")
        )

        try:
            result = await self.session.execute(stmt)
            updated = result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            raise self._wrap(
                "update order status",
                e,
                order_id=str(order_id),
                new_status=new_status.value,
            ) from e

        logger.debug(
            "Order status compare-and-set",
            order_id=str(order_id),
            expected=expected.value,
            new_status=new_status.value,
            updated=updated,
        )
        return updated

    async def touch_order(self, order: Order) -> None:
        """Refresh ``updated_at`` without changing anything else."""
        try:
            await self.session.execute(
                update(Order)
                .where(Order.id == order.id)
                .values(updated_at=utcnow())
                .execution_options(synchronize_session="fetch")
            )
        except SQLAlchemyError as e:
            raise self._wrap("update order", e, order_id=str(order.id)) from e

    async def append_tracking(
        self,
        order: Order,
        status: str,
        location: str,
        note: str,
    ) -> OrderTrackingEntry:
        """Append one entry to the end of an order's tracking log."""
        try:
            entry = OrderTrackingEntry(
                order_id=order.id,
                sequence=order.next_tracking_sequence,
                status=status,
                location=location,
                note=note,
                timestamp=utcnow(),
            )
            order.tracking.append(entry)
            await self.session.flush()
            return entry
        except SQLAlchemyError as e:
            raise self._wrap("append tracking entry", e, order_id=str(order.id)) from e

    # Statistics

    async def count_orders(self) -> int:
        try:
            result = await self.session.execute(select(func.count()).select_from(Order))
            return result.scalar_one()
        except SQLAlchemyError as e:
            raise self._wrap("count orders", e) from e

    async def get_status_breakdown(self) -> dict[str, dict[str, Any]]:
        """
        Order count and revenue per status.

        Revenue excludes cancelled orders, so the cancelled bucket always
        reports zero revenue.
        """
        revenue = func.sum(
            case(
                (Order.status != OrderStatus.CANCELLED, Order.total_amount),
                else_=0,
            )
        )
        stmt = select(Order.status, func.count(), revenue).group_by(Order.status)

        try:
            result = await self.session.execute(stmt)
            rows = result.all()
        except SQLAlchemyError as e:
            raise self._wrap("fetch status breakdown", e) from e

        return {
            status.value: {
                "count": count,
                "revenue": Decimal(str(total or 0)),
            }
            for status, count, total in rows
        }

    async def get_delivered_revenue(self) -> Decimal:
        try:
            result = await self.session.execute(
                select(func.sum(Order.total_amount)).where(
                    Order.status == OrderStatus.DELIVERED
                )
            )
            total = result.scalar_one()
        except SQLAlchemyError as e:
            raise self._wrap("fetch delivered revenue", e) from e
        return Decimal(str(total or 0))

    async def get_orders_created_since(
        self, since: datetime
    ) -> Sequence[tuple[datetime, Decimal]]:
        """(created_at, total_amount) pairs for orders created at or after ``since``."""
        try:
            result = await self.session.execute(
                select(Order.created_at, Order.total_amount)
                .where(Order.created_at >= since)
                .order_by(Order.created_at)
            )
            return [tuple(row) for row in result.all()]
        except SQLAlchemyError as e:
            raise self._wrap("fetch recent orders", e) from e
