"""Order state machine implementation with transition validation.

OrderStateMachine is the single path through which an order changes status.
``apply_transition`` validates the move, writes the new status with a
compare-and-set on the expected current status, appends the tracking entry
and runs the stock side effect, all inside one unit of work.
"""

from typing import Any, Awaitable, Callable, Dict, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from garment_orders.core.config import get_settings
from garment_orders.core.exceptions import InvalidTransitionError
from garment_orders.core.logging import get_logger, log_performance
from garment_orders.database.base import utcnow
from garment_orders.database.connection import unit_of_work
from garment_orders.database.models.order import Order
from garment_orders.services.inventory.ledger import InventoryLedger
from garment_orders.services.orders.enums import (
    OrderStatus,
    PaymentStatus,
    PaymentType,
    get_allowed_order_transitions,
    validate_order_status_transition,
)
from garment_orders.services.orders.repository import OrderRepository

logger = get_logger(__name__)

SYSTEM_LOCATION = "System"


class StateTransitionError(InvalidTransitionError):
    """Raised when an invalid or stale state transition is attempted."""

    def __init__(
        self,
        message: str,
        current_state: OrderStatus,
        target_state: OrderStatus,
        **context: Any
    ):
        super().__init__(
            message,
            current_state=current_state.value,
            target_state=target_state.value,
            **context
        )
        self.current_state = current_state
        self.target_state = target_state


class OrderStateMachine:
    """State machine for managing order lifecycle transitions.

    Guards are keyed by (from, to) and may veto a legal transition. Side
    effects are keyed by target status and run only on a real status change,
    never on a self-transition.
    """

    def __init__(
        self,
        session: AsyncSession,
        repository: Optional[OrderRepository] = None,
        ledger: Optional[InventoryLedger] = None,
        require_payment_before_approval: Optional[bool] = None,
    ):
        """Initialize state machine with database session.

        Args:
            session: Async session shared with the caller's repository
            repository: Order repository (defaults to one on ``session``)
            ledger: Inventory ledger (defaults to one on ``session``)
            require_payment_before_approval: Override for the approval
                payment policy; read from settings when omitted
        """
        self.session = session
        self.repository = repository or OrderRepository(session)
        self.ledger = ledger or InventoryLedger(session)
        if require_payment_before_approval is None:
            require_payment_before_approval = (
                get_settings().require_payment_before_approval
            )
        self.require_payment_before_approval = require_payment_before_approval

        self._transition_guards: Dict[
            tuple[OrderStatus, OrderStatus],
            Callable[[Order], bool]
        ] = self._initialize_guards()
        self._side_effects: Dict[
            OrderStatus,
            Callable[[Order], Awaitable[None]]
        ] = self._initialize_side_effects()

    def _initialize_guards(
        self
    ) -> Dict[tuple[OrderStatus, OrderStatus], Callable[[Order], bool]]:
        guards: Dict[tuple[OrderStatus, OrderStatus], Callable[[Order], bool]] = {}
        if self.require_payment_before_approval:
            guards[(OrderStatus.PENDING, OrderStatus.APPROVED)] = (
                self._guard_advance_payment_received
            )
        return guards

    def _initialize_side_effects(
        self
    ) -> Dict[OrderStatus, Callable[[Order], Awaitable[None]]]:
        return {
            status: self._effect_release_stock
            for status in OrderStatus
            if status.releases_stock()
        }

    def validate_transition(
        self,
        order: Order,
        target_status: OrderStatus,
    ) -> bool:
        """Validate if transition to target status is allowed.

        Args:
            order: Order instance to validate
            target_status: Desired target status

        Returns:
            True if transition is valid

        Raises:
            StateTransitionError: If transition is invalid
        """
        current_status = order.status

        if current_status.is_terminal():
            raise StateTransitionError(
                f"Order is already {current_status.value}",
                current_state=current_status,
                target_state=target_status,
                order_id=str(order.id),
            )

        if not validate_order_status_transition(current_status, target_status):
            allowed = get_allowed_order_transitions(current_status)
            raise StateTransitionError(
                f"Cannot change status from {current_status.value} to "
                f"{target_status.value}",
                current_state=current_status,
                target_state=target_status,
                order_id=str(order.id),
                allowed_transitions=sorted(s.value for s in allowed),
            )

        guard = self._transition_guards.get((current_status, target_status))
        if guard is not None and not guard(order):
            raise StateTransitionError(
                "Advance payment must be received before approval",
                current_state=current_status,
                target_state=target_status,
                order_id=str(order.id),
                guard_failed=True,
            )

        return True

    async def apply_transition(
        self,
        order: Order,
        target_status: OrderStatus,
        tracking_label: Optional[str] = None,
        location: str = SYSTEM_LOCATION,
        note: Optional[str] = None,
        actor_id: Optional[Any] = None,
    ) -> Order:
        """Apply state transition to order with tracking and side effects.

        The status write is conditional on the order still holding the
        status it was read with; if another request moved it first the
        whole unit of work is rolled back and StateTransitionError raised.

        Args:
            order: Order instance to transition
            target_status: Target status to transition to
            tracking_label: Label for the tracking entry (defaults to the
                capitalised status name)
            location: Location for the tracking entry
            note: Tracking note (when None, "Status changed from X to Y")
            actor_id: Caller performing the change, for logging

        Returns:
            The updated order

        Raises:
            StateTransitionError: If transition is invalid or lost a race
        """
        current_status = order.status
        transition = f"{current_status.value}->{target_status.value}"

        with log_performance(
            logger, "apply_transition", order_id=str(order.id), transition=transition
        ):
            self.validate_transition(order, target_status)

            async with unit_of_work(self.session):
                now = utcnow()
                approved_at = None
                if target_status == OrderStatus.APPROVED and order.approved_at is None:
                    approved_at = now

                updated = await self.repository.compare_and_set_status(
                    order.id,
                    expected=current_status,
                    new_status=target_status,
                    approved_at=approved_at,
                )
                if not updated:
                    logger.warning(
                        "State transition lost a concurrent update",
                        order_id=str(order.id),
                        transition=transition,
                    )
                    raise StateTransitionError(
                        "Order was modified by another request",
                        current_state=current_status,
                        target_state=target_status,
                        order_id=str(order.id),
                        concurrent=True,
                    )

                await self._record_status_change(
                    order,
                    label=tracking_label or target_status.display_name,
                    location=location,
                    note=(
                        f"Status changed from {current_status.value} to "
                        f"{target_status.value}"
                        if note is None
                        else note
                    ),
                )

                if target_status != current_status:
                    side_effect = self._side_effects.get(target_status)
                    if side_effect is not None:
                        await side_effect(order)

        logger.info(
            "State transition applied",
            order_id=str(order.id),
            transition=transition,
            actor_id=str(actor_id) if actor_id else None,
        )
        return order

    def get_allowed_transitions(self, order: Order) -> Set[OrderStatus]:
        return get_allowed_order_transitions(order.status)

    async def _record_status_change(
        self,
        order: Order,
        label: str,
        location: str,
        note: str,
    ) -> None:
        await self.repository.append_tracking(order, label, location, note)

    # Transition Guards

    def _guard_advance_payment_received(self, order: Order) -> bool:
        """Advance-payment orders may only be approved once paid."""
        if order.payment_type != PaymentType.ADVANCE_PAYMENT:
            return True
        paid = order.payment_status == PaymentStatus.PAID
        logger.debug(
            "Advance payment guard check",
            order_id=str(order.id),
            payment_status=order.payment_status.value,
            paid=paid,
        )
        return paid

    # Side Effects

    async def _effect_release_stock(self, order: Order) -> None:
        """Give the order's reserved quantity back to the product."""
        await self.ledger.release(order.product_id, order.quantity)


def get_order_state_machine(session: AsyncSession) -> OrderStateMachine:
    """Factory function to create OrderStateMachine instance.

    Args:
        session: Async database session

    Returns:
        OrderStateMachine instance
    """
    return OrderStateMachine(session)
