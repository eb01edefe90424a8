"""Error taxonomy for the order workflow.

Every business failure carries a stable machine-readable ``kind`` and a human
message. The API layer turns them into the error envelope; nothing here knows
about HTTP beyond the suggested status code.
"""

from typing import Any


class OrderflowError(Exception):
    """Base exception for all workflow errors."""

    kind = "error"
    status_code = 400

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "error": self.kind, "message": self.message}


class ValidationError(OrderflowError):
    """Malformed input, caught before any mutation."""

    kind = "validation_error"


class NotFoundError(OrderflowError):
    """An order, product or user does not exist."""

    kind = "not_found"
    status_code = 404


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found", order_id=order_id)


class ProductNotFound(NotFoundError):
    kind = "product_not_found"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found", product_id=product_id)


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found", user_id=user_id)


class AuthenticationError(OrderflowError):
    """No usable principal came with the request."""

    kind = "not_authenticated"
    status_code = 401


class AuthorizationError(OrderflowError):
    """The calling principal may not perform this action."""

    kind = "not_authorized"
    status_code = 403


class InvalidStateTransition(OrderflowError):
    """The target status is not a legal successor of the current status."""

    kind = "invalid_state_transition"
    status_code = 409

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot change status from {current} to {target}",
            current=current,
            target=target,
        )


class NotCancellable(OrderflowError):
    kind = "not_cancellable"
    status_code = 409

    def __init__(self, order_number: str, status: str):
        self.status = status
        super().__init__(
            f"Order {order_number} cannot be cancelled at this stage ({status})",
            order_number=order_number,
            status=status,
        )


class ReservationError(OrderflowError):
    """Base class for stock reservation rule violations."""

    kind = "reservation_error"

    def __init__(self, message: str, product_id: str, **context: Any):
        self.product_id = product_id
        super().__init__(message, product_id=product_id, **context)


class InsufficientStock(ReservationError):
    kind = "insufficient_stock"

    def __init__(self, product_id: str, name: str, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {name}",
            product_id,
            available=available,
            requested=requested,
        )


class ProductInactive(ReservationError):
    kind = "product_inactive"

    def __init__(self, product_id: str, name: str):
        super().__init__(f"Product {name} is not available", product_id)


class QuantityOutOfRange(ReservationError):
    kind = "quantity_out_of_range"

    def __init__(self, product_id: str, name: str, minimum: int, maximum: int, requested: int):
        self.minimum = minimum
        self.maximum = maximum
        if requested < minimum:
            message = f"Minimum order quantity for {name} is {minimum}"
        else:
            message = f"Maximum order quantity for {name} is {maximum}"
        super().__init__(message, product_id, minimum=minimum, maximum=maximum, requested=requested)


class AlreadyAssigned(OrderflowError):
    kind = "already_assigned"
    status_code = 409

    def __init__(self, order_number: str):
        super().__init__(
            f"Order {order_number} already assigned to another agent",
            order_number=order_number,
        )


class NotReadyForPickup(OrderflowError):
    kind = "not_ready_for_pickup"
    status_code = 409

    def __init__(self, order_number: str, status: str):
        super().__init__(
            f"Order {order_number} is not ready for pickup ({status})",
            order_number=order_number,
            status=status,
        )


class VersionConflict(OrderflowError):
    """The caller's expected version no longer matches the stored order."""

    kind = "version_conflict"
    status_code = 409

    def __init__(self, order_number: str, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Order {order_number} is at version {actual}, not {expected}",
            expected=expected,
            actual=actual,
        )


class ConcurrentUpdateError(OrderflowError):
    """Optimistic retries were exhausted under contention."""

    kind = "concurrent_update"
    status_code = 409


class InternalError(OrderflowError):
    """Infrastructure failure; details are never shown in production."""

    kind = "internal_error"
    status_code = 500
