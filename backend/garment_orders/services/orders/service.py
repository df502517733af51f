"""
Order service orchestrating the order lifecycle and the inventory ledger.

Every operation takes the acting CallerIdentity explicitly. Mutations run
in one unit of work so the order row, its tracking log and the product
stock commit or roll back together; status changes go through
OrderStateMachine.apply_transition.
"""

import uuid
from collections import OrderedDict
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession

from garment_orders.core.config import get_settings
from garment_orders.core.exceptions import (
    BelowMinimumOrderError,
    InsufficientStockError,
    OrderNotFoundError,
    OrderValidationError,
    ProductNotFoundError,
)
from garment_orders.core.logging import get_logger
from garment_orders.core.security import (
    CallerIdentity,
    STAFF_ROLES,
    UserRole,
    require_owner,
    require_owner_or_staff,
    require_role,
)
from garment_orders.database.base import as_utc, utcnow
from garment_orders.database.connection import unit_of_work
from garment_orders.database.models.order import Order, OrderTrackingEntry
from garment_orders.services.inventory.ledger import InventoryLedger
from garment_orders.services.orders.enums import (
    APPROVED_QUEUE_STATUSES,
    TRACKING_SYNC_STATUSES,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    validate_order_status_transition,
)
from garment_orders.services.orders.repository import OrderRepository
from garment_orders.services.orders.state_machine import (
    OrderStateMachine,
    StateTransitionError,
)

logger = get_logger(__name__)

ORDER_PLACED_LABEL = "Order Placed"
ORDER_PLACED_LOCATION = "Online"
ORDER_PLACED_NOTE = "Your order has been received"
DEFAULT_TRACKING_LOCATION = "Warehouse"


def _parse_uuid(value: Union[uuid.UUID, str], message: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as e:
        raise OrderValidationError(message, value=str(value)) from e


def _parse_quantity(value: Any) -> int:
    """Accept ints and integral strings/floats; reject anything below 1."""
    quantity: Optional[int] = None
    if isinstance(value, bool):
        quantity = None
    elif isinstance(value, int):
        quantity = value
    elif isinstance(value, float) and value.is_integer():
        quantity = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        quantity = int(value.strip())

    if quantity is None or quantity < 1:
        raise OrderValidationError("Invalid quantity", quantity=value)
    return quantity


def _parse_amount(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise OrderValidationError("Invalid total amount", total_amount=value) from e
    if not amount.is_finite():
        raise OrderValidationError("Invalid total amount", total_amount=str(value))
    return amount


class OrderService:
    """
    Order service orchestrating business logic.

    Attributes:
        repository: Order repository for data access
        ledger: Inventory ledger for stock changes
        state_machine: State machine for order lifecycle management
    """

    def __init__(
        self,
        session: AsyncSession,
        state_machine: Optional[OrderStateMachine] = None,
    ):
        """
        Initialize order service.

        Args:
            session: Async database session
            state_machine: Optional pre-built state machine
        """
        self.session = session
        self.repository = OrderRepository(session)
        self.ledger = InventoryLedger(session)
        self.state_machine = state_machine or OrderStateMachine(
            session, repository=self.repository, ledger=self.ledger
        )

    # Creation

    async def create_order(
        self,
        caller: CallerIdentity,
        product_id: Union[uuid.UUID, str, None],
        quantity: Any,
        shipping_address: Optional[str],
        phone_number: Optional[str],
        payment_type: Union[PaymentType, str, None],
        payment_method: Union[PaymentMethod, str, None] = PaymentMethod.COD,
        notes: Optional[str] = None,
        total_amount: Any = None,
        payment_status: Optional[PaymentStatus] = None,
        payment_reference: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Place an order and reserve its stock in one unit of work.

        ``payment_status`` and ``payment_reference`` are set by the payment
        layer when it creates an order after out-of-band confirmation; buyers
        placing orders directly leave them unset.

        Returns:
            Dictionary containing the created order

        Raises:
            OrderValidationError: Missing fields, bad quantity or total
            ProductNotFoundError: Unknown product
            InsufficientStockError: Not enough stock
            BelowMinimumOrderError: Quantity below the product minimum
        """
        require_role(caller, UserRole.BUYER)

        required = {
            "product_id": product_id,
            "quantity": quantity,
            "shipping_address": shipping_address,
            "phone_number": phone_number,
            "payment_type": payment_type,
        }
        missing = [name for name, value in required.items() if value in (None, "")]
        if missing:
            raise OrderValidationError(
                f"Missing required fields: {', '.join(missing)}",
                missing_fields=missing,
            )

        product_uuid = _parse_uuid(product_id, "Invalid product ID format")
        order_quantity = _parse_quantity(quantity)
        method = PaymentMethod.from_string(payment_method or PaymentMethod.COD.value)
        timing = PaymentType.from_string(payment_type)
        supplied_total = _parse_amount(total_amount)

        logger.info(
            "Creating order",
            buyer_id=str(caller.user_id),
            product_id=str(product_uuid),
            quantity=order_quantity,
        )

        async with unit_of_work(self.session):
            product = await self.repository.get_product(product_uuid)
            if product is None:
                raise ProductNotFoundError(product_uuid)

            if product.quantity < order_quantity:
                raise InsufficientStockError(
                    product_uuid, order_quantity, product.quantity
                )

            min_order = product.min_order or 1
            if order_quantity < min_order:
                raise BelowMinimumOrderError(product_uuid, order_quantity, min_order)

            unit_price = Decimal(product.price)
            if supplied_total is not None and supplied_total > 0:
                order_total = supplied_total
            else:
                order_total = unit_price * order_quantity
            if order_total <= 0:
                raise OrderValidationError(
                    "Invalid total amount", total_amount=str(order_total)
                )

            if payment_status is None:
                payment_status = (
                    PaymentStatus.PENDING
                    if method == PaymentMethod.COD
                    else PaymentStatus.PAID
                )

            now = utcnow()
            order = Order(
                id=uuid.uuid4(),
                product_id=product_uuid,
                buyer_id=caller.user_id,
                quantity=order_quantity,
                unit_price=unit_price,
                total_amount=order_total,
                shipping_address=shipping_address,
                phone_number=phone_number,
                notes=notes or "",
                payment_method=method,
                payment_type=timing,
                payment_status=payment_status,
                payment_reference=payment_reference,
                status=OrderStatus.PENDING,
                created_at=now,
                updated_at=now,
                tracking=[
                    OrderTrackingEntry(
                        sequence=1,
                        status=ORDER_PLACED_LABEL,
                        location=ORDER_PLACED_LOCATION,
                        note=ORDER_PLACED_NOTE,
                        timestamp=now,
                    )
                ],
            )
            await self.repository.add_order(order)
            await self.ledger.reserve(product_uuid, order_quantity)

        logger.info(
            "Order created successfully",
            order_id=str(order.id),
            buyer_id=str(caller.user_id),
            total_amount=float(order_total),
        )
        return self._format_order_response(order)

    # Manager actions

    async def approve_order(
        self, order_id: Union[uuid.UUID, str], caller: CallerIdentity
    ) -> dict[str, Any]:
        """Approve a pending order."""
        require_role(caller, *STAFF_ROLES)
        order = await self._get_order_or_raise(order_id)

        if order.status != OrderStatus.PENDING:
            raise StateTransitionError(
                f"Order cannot be approved. Current status: {order.status.value}",
                current_state=order.status,
                target_state=OrderStatus.APPROVED,
                order_id=str(order.id),
            )

        await self.state_machine.apply_transition(
            order,
            OrderStatus.APPROVED,
            tracking_label="Approved",
            note="Order approved by manager",
            actor_id=caller.user_id,
        )
        return self._format_order_response(order)

    async def reject_order(
        self,
        order_id: Union[uuid.UUID, str],
        caller: CallerIdentity,
        reason: Optional[str] = None,
    ) -> dict[str, Any]:
        """Reject a pending order and release its stock."""
        require_role(caller, *STAFF_ROLES)
        order = await self._get_order_or_raise(order_id)

        if order.status != OrderStatus.PENDING:
            raise StateTransitionError(
                f"Order cannot be rejected. Current status: {order.status.value}",
                current_state=order.status,
                target_state=OrderStatus.REJECTED,
                order_id=str(order.id),
            )

        await self.state_machine.apply_transition(
            order,
            OrderStatus.REJECTED,
            tracking_label="Rejected",
            note=reason or "Order rejected by manager",
            actor_id=caller.user_id,
        )
        return self._format_order_response(order)

    async def update_order_status(
        self,
        order_id: Union[uuid.UUID, str],
        caller: CallerIdentity,
        new_status: Union[OrderStatus, str, None],
        note: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Move an order to any legal successor status.

        Landing on cancelled or rejected releases the order's stock exactly
        once; a self-transition only appends a tracking entry.
        """
        require_role(caller, *STAFF_ROLES)
        if new_status in (None, ""):
            raise OrderValidationError("Status is required")
        target = (
            new_status
            if isinstance(new_status, OrderStatus)
            else OrderStatus.from_string(new_status)
        )
        order = await self._get_order_or_raise(order_id)

        await self.state_machine.apply_transition(
            order,
            target,
            note=note,
            actor_id=caller.user_id,
        )
        return self._format_order_response(order)

    async def add_tracking(
        self,
        order_id: Union[uuid.UUID, str],
        caller: CallerIdentity,
        status: Optional[str],
        location: Optional[str] = None,
        note: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Append a free-text tracking entry.

        Labels naming processing, shipped or delivered also move the coarse
        status when that move is legal from the current status. No stock
        effect either way.
        """
        require_role(caller, *STAFF_ROLES)
        if not status or not status.strip():
            raise OrderValidationError("Tracking status is required")

        order = await self._get_order_or_raise(order_id)
        label = status.strip()
        location = location or DEFAULT_TRACKING_LOCATION
        note = note or ""

        sync_target = self._tracking_sync_target(order, label)
        if sync_target is not None:
            await self.state_machine.apply_transition(
                order,
                sync_target,
                tracking_label=label,
                location=location,
                note=note,
                actor_id=caller.user_id,
            )
        else:
            async with unit_of_work(self.session):
                await self.repository.append_tracking(order, label, location, note)
                await self.repository.touch_order(order)

        logger.info(
            "Tracking entry added",
            order_id=str(order.id),
            label=label,
            status_synced=sync_target is not None,
        )
        return self._format_order_response(order)

    @staticmethod
    def _tracking_sync_target(order: Order, label: str) -> Optional[OrderStatus]:
        try:
            candidate = OrderStatus(label.lower())
        except ValueError:
            return None
        if candidate not in TRACKING_SYNC_STATUSES:
            return None
        if not validate_order_status_transition(order.status, candidate):
            logger.info(
                "Tracking label does not move status",
                order_id=str(order.id),
                current_status=order.status.value,
                label=label,
            )
            return None
        return candidate

    # Buyer actions

    async def cancel_order(
        self, order_id: Union[uuid.UUID, str], caller: CallerIdentity
    ) -> dict[str, Any]:
        """
        Cancel the caller's own pending order and release its stock.

        Ownership is checked before status, so a non-owner is refused
        whatever state the order is in.
        """
        order = await self._get_order_or_raise(order_id)
        require_owner(caller, order.buyer_id, "Not authorized to cancel this order")

        if order.status != OrderStatus.PENDING:
            raise StateTransitionError(
                f"Cannot cancel order with status: {order.status.value}. "
                "Only pending orders can be cancelled.",
                current_state=order.status,
                target_state=OrderStatus.CANCELLED,
                order_id=str(order.id),
            )

        await self.state_machine.apply_transition(
            order,
            OrderStatus.CANCELLED,
            tracking_label="Cancelled",
            note="Cancelled by buyer",
            actor_id=caller.user_id,
        )
        return self._format_order_response(order)

    # Queries

    async def get_order(
        self, order_id: Union[uuid.UUID, str], caller: CallerIdentity
    ) -> dict[str, Any]:
        """Order details for its buyer, or for any manager/admin."""
        order = await self._get_order_or_raise(order_id)
        require_owner_or_staff(caller, order.buyer_id)
        return self._format_order_response(order)

    async def get_buyer_orders(self, caller: CallerIdentity) -> list[dict[str, Any]]:
        orders = await self.repository.get_buyer_orders(caller.user_id)
        return self._format_orders(orders)

    async def list_orders(
        self,
        caller: CallerIdentity,
        status: Union[OrderStatus, str, None] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> dict[str, Any]:
        """All orders, optionally filtered by status (``all`` means no filter)."""
        require_role(caller, UserRole.ADMIN)
        status_filter: Optional[OrderStatus] = None
        if isinstance(status, OrderStatus):
            status_filter = status
        elif status and status != "all":
            status_filter = OrderStatus.from_string(status)

        orders, total = await self.repository.list_orders(
            status=status_filter, skip=skip, limit=limit
        )
        return {
            "orders": self._format_orders(orders),
            "total": total,
            "skip": skip,
            "limit": limit,
        }

    async def get_pending_orders(self, caller: CallerIdentity) -> list[dict[str, Any]]:
        require_role(caller, *STAFF_ROLES)
        orders = await self.repository.get_orders_by_statuses({OrderStatus.PENDING})
        return self._format_orders(orders)

    async def get_approved_orders(self, caller: CallerIdentity) -> list[dict[str, Any]]:
        require_role(caller, *STAFF_ROLES)
        orders = await self.repository.get_orders_by_statuses(APPROVED_QUEUE_STATUSES)
        return self._format_orders(orders)

    async def get_order_stats(self, caller: CallerIdentity) -> dict[str, Any]:
        """
        Aggregate order statistics.

        Returns:
            total_orders, total_revenue (delivered orders only), by_status
            with count and revenue (cancelled orders contribute no revenue),
            daily_orders for the trailing window and a generation timestamp
        """
        require_role(caller, UserRole.ADMIN)
        window_days = get_settings().stats_window_days
        now = utcnow()

        total_orders = await self.repository.count_orders()
        total_revenue = await self.repository.get_delivered_revenue()
        by_status = await self.repository.get_status_breakdown()
        recent = await self.repository.get_orders_created_since(
            now - timedelta(days=window_days)
        )

        daily: "OrderedDict[str, dict[str, Any]]" = OrderedDict()
        for created_at, amount in recent:
            day = as_utc(created_at).strftime("%Y-%m-%d")
            bucket = daily.setdefault(day, {"date": day, "count": 0, "revenue": Decimal("0")})
            bucket["count"] += 1
            bucket["revenue"] += Decimal(str(amount))

        return {
            "total_orders": total_orders,
            "total_revenue": float(total_revenue),
            "by_status": {
                status: {"count": row["count"], "revenue": float(row["revenue"])}
                for status, row in by_status.items()
            },
            "daily_orders": [
                {**bucket, "revenue": float(bucket["revenue"])}
                for bucket in daily.values()
            ],
            "timestamp": now.isoformat(),
        }

    async def get_dashboard_counts(self) -> dict[str, int]:
        return {
            "total_products": await self.repository.count_products(),
            "total_orders": await self.repository.count_orders(),
        }

    # Helpers

    async def _get_order_or_raise(self, order_id: Union[uuid.UUID, str]) -> Order:
        order_uuid = _parse_uuid(order_id, "Invalid order ID")
        order = await self.repository.get_order_by_id(order_uuid)
        if order is None:
            raise OrderNotFoundError(order_uuid)
        return order

    def _format_orders(self, orders: Sequence[Order]) -> list[dict[str, Any]]:
        return [self._format_order_response(order) for order in orders]

    def _format_order_response(self, order: Order) -> dict[str, Any]:
        """
        Format order for response.

        Args:
            order: Order instance with its tracking log loaded

        Returns:
            Dictionary containing formatted order data
        """
        approved_at = as_utc(order.approved_at)
        return {
            "id": str(order.id),
            "product_id": str(order.product_id),
            "buyer_id": str(order.buyer_id),
            "quantity": order.quantity,
            "unit_price": float(order.unit_price),
            "total_amount": float(order.total_amount),
            "shipping_address": order.shipping_address,
            "phone_number": order.phone_number,
            "notes": order.notes,
            "payment_method": order.payment_method.value,
            "payment_type": order.payment_type.value,
            "payment_status": order.payment_status.value,
            "payment_reference": order.payment_reference,
            "status": order.status.value,
            "tracking": [entry.to_dict() for entry in order.tracking],
            "approved_at": approved_at.isoformat() if approved_at else None,
            "created_at": as_utc(order.created_at).isoformat(),
            "updated_at": as_utc(order.updated_at).isoformat(),
        }
