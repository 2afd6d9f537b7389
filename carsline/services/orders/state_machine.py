"""Order state machine implementation with transition validation.

This module implements the OrderStateMachine class, which checks a
requested status change against the transition table and applies the
field changes that come with entering a status.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from carsline.core.exceptions import InvalidTransitionError
from carsline.core.logging import get_logger
from carsline.database.models import Order
from carsline.services.orders.enums import OrderStatus

logger = get_logger(__name__)


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.CREATED: frozenset({OrderStatus.CANCELLED, OrderStatus.DELIVERED}),
    OrderStatus.IN_PROCESS: frozenset({OrderStatus.CANCELLED, OrderStatus.DELIVERED}),
    OrderStatus.FINISHED: frozenset({OrderStatus.CANCELLED, OrderStatus.DELIVERED}),
    # A repeat cancel re-applies the cancellation instead of failing.
    OrderStatus.CANCELLED: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
}


def get_allowed_transitions(status: OrderStatus) -> frozenset[OrderStatus]:
    """Statuses reachable from ``status``."""
    return ALLOWED_TRANSITIONS.get(status, frozenset())


def is_valid_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in get_allowed_transitions(current)


class OrderStateMachine:
    """State machine for managing order lifecycle transitions.

    Validates transitions against ALLOWED_TRANSITIONS and runs the side
    effect registered for the target status. It only mutates the order
    object; persisting it is up to the caller's transaction.
    """

    def __init__(self):
        self._side_effects: dict[OrderStatus, Callable[[Order, datetime], None]] = {
            OrderStatus.CANCELLED: self._effect_cancelled,
            OrderStatus.DELIVERED: self._effect_delivered,
        }

    def validate_transition(self, order: Order, target_status: OrderStatus) -> None:
        """Check that ``order`` may move to ``target_status``.

        Raises:
            InvalidTransitionError: If the transition table forbids it
        """
        current_status = OrderStatus(order.status)

        if not is_valid_transition(current_status, target_status):
            allowed = sorted(s.name for s in get_allowed_transitions(current_status))
            logger.warning(
                "Invalid order status transition",
                order_id=order.id,
                current_status=current_status.name,
                target_status=target_status.name,
                allowed=allowed,
            )
            raise InvalidTransitionError(
                f"Order {order.order_number} cannot go from "
                f"{current_status.display_name} to {target_status.display_name}",
                current_status=current_status,
                target_status=target_status,
                order_id=order.id,
                allowed_transitions=allowed,
            )

    def apply(
        self,
        order: Order,
        target_status: OrderStatus,
        now: Optional[datetime] = None,
    ) -> OrderStatus:
        """Validate and apply a transition.

        Args:
            order: Order to transition
            target_status: Status to move to
            now: Transition time, defaults to the current UTC time

        Returns:
            The status the order had before the transition

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        self.validate_transition(order, target_status)

        now = now or datetime.now(timezone.utc)
        previous_status = OrderStatus(order.status)
        order.status = target_status

        side_effect = self._side_effects.get(target_status)
        if side_effect is not None:
            side_effect(order, now)

        logger.info(
            "Order status changed",
            order_id=order.id,
            order_number=order.order_number,
            transition=f"{previous_status.name}->{target_status.name}",
        )

        return previous_status

    @staticmethod
    def _effect_cancelled(order: Order, now: datetime) -> None:
        # Leaves the active queues; status stays the source of truth.
        order.active = False

    @staticmethod
    def _effect_delivered(order: Order, now: datetime) -> None:
        order.delivered_at = now
