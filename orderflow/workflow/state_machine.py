"""Order state machine.

Legal moves::

    pending          -> accepted | rejected
    accepted         -> preparing | cancelled
    preparing        -> ready_for_pickup | cancelled
    ready_for_pickup -> dispatched
    dispatched       -> in_transit
    in_transit       -> delivered

``delivered``, ``cancelled`` and ``rejected`` are terminal. Customers cancel
through their own entry point (also allowed from ``pending``), agents complete
through another (also allowed from ``dispatched``), and admins may force a
move with an audit annotation. All four paths share ``_apply``, so every
status change appends exactly one tracking event.

The machine only mutates the order it is handed; persisting the result and
running stock or earnings side effects is the engine's job.
"""

from orderflow.errors import AuthorizationError, InvalidStateTransition, NotCancellable
from orderflow.models.order import (
    GeoLocation,
    Order,
    OrderStatus,
    PaymentStatus,
    TrackingEvent,
)
from orderflow.models.user import Principal
from orderflow.workflow.base import WorkflowComponent

TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.ACCEPTED, OrderStatus.REJECTED}),
    OrderStatus.ACCEPTED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY_FOR_PICKUP, OrderStatus.CANCELLED}),
    OrderStatus.READY_FOR_PICKUP: frozenset({OrderStatus.DISPATCHED}),
    OrderStatus.DISPATCHED: frozenset({OrderStatus.IN_TRANSIT}),
    OrderStatus.IN_TRANSIT: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
}

TERMINAL_STATES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

CUSTOMER_CANCELLABLE = frozenset(
    {OrderStatus.PENDING, OrderStatus.ACCEPTED, OrderStatus.PREPARING}
)

COMPLETABLE = frozenset({OrderStatus.DISPATCHED, OrderStatus.IN_TRANSIT})

# Statuses whose entry hands reserved stock back to the inventory ledger
RESTOCKING_STATES = frozenset({OrderStatus.CANCELLED})


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Check if a state transition is valid."""
    return target in TRANSITIONS.get(current, frozenset())


def default_message(status: OrderStatus) -> str:
    return f"Order {status.value}"


class OrderStateMachine(WorkflowComponent):
    """Validates and applies status changes to an order."""

    def __init__(self) -> None:
        super().__init__("state_machine")

    def transition(
        self,
        order: Order,
        target: OrderStatus,
        actor: Principal,
        message: str | None = None,
        location: GeoLocation | None = None,
    ) -> TrackingEvent:
        """Move ``order`` to ``target`` if the table allows it."""
        if not can_transition(order.order_status, target):
            raise InvalidStateTransition(order.order_status.value, target.value)
        if target == OrderStatus.CANCELLED and message:
            order.cancellation_reason = message
        return self._apply(order, target, message or default_message(target), location)

    def cancel(self, order: Order, actor: Principal, reason: str) -> TrackingEvent:
        """Customer cancellation, allowed only before the order is ready."""
        if order.order_status not in CUSTOMER_CANCELLABLE:
            raise NotCancellable(order.order_number, order.order_status.value)
        order.cancellation_reason = reason
        return self._apply(
            order,
            OrderStatus.CANCELLED,
            f"Order cancelled by customer. Reason: {reason}",
        )

    def complete(
        self,
        order: Order,
        actor: Principal,
        delivery_notes: str | None = None,
        customer_signature: str | None = None,
    ) -> TrackingEvent:
        """Agent hand-over: forces ``delivered`` once the order is out for delivery."""
        if order.order_status not in COMPLETABLE:
            raise InvalidStateTransition(order.order_status.value, OrderStatus.DELIVERED.value)
        if delivery_notes:
            order.notes.delivery = delivery_notes
        if customer_signature:
            order.customer_signature = customer_signature
        return self._apply(order, OrderStatus.DELIVERED, "Order delivered successfully")

    def force(
        self,
        order: Order,
        target: OrderStatus,
        actor: Principal,
        reason: str,
    ) -> TrackingEvent:
        """Admin override: any move except out of a terminal state or onto itself."""
        if not actor.is_admin:
            raise AuthorizationError("Only administrators may override the order workflow")
        if order.order_status in TERMINAL_STATES or order.order_status == target:
            raise InvalidStateTransition(order.order_status.value, target.value)
        if target == OrderStatus.CANCELLED:
            order.cancellation_reason = reason
        return self._apply(
            order,
            target,
            f"[admin override by {actor.user_id}] {reason}",
        )

    def _apply(
        self,
        order: Order,
        target: OrderStatus,
        message: str,
        location: GeoLocation | None = None,
    ) -> TrackingEvent:
        order.order_status = target
        event = order.add_tracking(target.value, message, location)

        if target == OrderStatus.DELIVERED:
            # Cash on delivery: the hand-over settles payment
            order.actual_delivery_time = event.timestamp
            order.payment_status = PaymentStatus.PAID

        return event
