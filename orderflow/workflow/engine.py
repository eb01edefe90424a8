"""Workflow engine: the order lifecycle use cases.

Every mutating use case follows the same shape: load the order, validate the
move against its current state, commit the change with a conditional write,
then run the side effects of the committed status (stock restoration,
earnings accrual) and fan out notifications. Nothing is restored or credited
unless the status change it belongs to has been stored.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Literal

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from orderflow.errors import (
    AuthorizationError,
    InternalError,
    NotFoundError,
    OrderflowError,
    ProductNotFound,
    UserNotFoundError,
    ValidationError,
)
from orderflow.models.notification import NotificationType
from orderflow.models.order import (
    City,
    DeliveryAddress,
    GeoLocation,
    Issue,
    IssueStatus,
    IssueType,
    Order,
    OrderNotes,
    OrderStatus,
    PaymentMethod,
    TrackingEvent,
    utcnow,
)
from orderflow.models.product import Product
from orderflow.models.user import Earnings, Principal, User, UserRole
from orderflow.state.manager import StateManager
from orderflow.state.notifications import NotificationStore
from orderflow.state.repositories import (
    OrderRepository,
    ProductRepository,
    UserRepository,
)
from orderflow.utils.tracing import WorkflowTracer
from orderflow.workflow.assignment import AssignmentCoordinator
from orderflow.workflow.base import WorkflowComponent
from orderflow.workflow.earnings import EarningsLedger
from orderflow.workflow.inventory import InventoryLedger, LineRequest
from orderflow.workflow.notifications import NotificationGateway
from orderflow.workflow.state_machine import (
    COMPLETABLE,
    RESTOCKING_STATES,
    OrderStateMachine,
)

# Delivery agents report progress in their own vocabulary
DELIVERY_STATUS_MAP: dict[str, OrderStatus] = {
    "picked_up": OrderStatus.IN_TRANSIT,
    "in_transit": OrderStatus.IN_TRANSIT,
    "delivered": OrderStatus.DELIVERED,
}

DELIVERY_STATUS_MESSAGES = {
    "picked_up": "Order picked up by delivery agent",
    "in_transit": "Order is on the way",
    "delivered": "Order delivered",
}

# Statuses a seller may set; later ones belong to the delivery flow
SELLER_TARGETS = frozenset(
    {
        OrderStatus.ACCEPTED,
        OrderStatus.REJECTED,
        OrderStatus.PREPARING,
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.CANCELLED,
    }
)


class OrderResult(BaseModel):
    """Updated order plus a human-readable outcome."""

    order: Order
    message: str


class OrderPage(BaseModel):
    """One page of an order listing."""

    orders: list[Order]
    total: int
    page: int
    limit: int
    pages: int


class AgentSummary(BaseModel):
    id: str
    name: str
    phone: str | None = None
    vehicle_type: str | None = None


class TrackingView(BaseModel):
    """What a customer sees when tracking an order."""

    order_number: str
    current_status: OrderStatus
    tracking_updates: list[TrackingEvent]
    estimated_delivery_time: datetime | None = None
    actual_delivery_time: datetime | None = None
    delivery_agent: AgentSummary | None = None


class WorkflowEngine(WorkflowComponent):
    """
    Coordinates the order lifecycle across customers, sellers, agents and admins.

    Responsibilities:
    - Validate every status change against the order state machine
    - Reserve stock on creation and restore it on cancellation
    - Give each order to exactly one delivery agent
    - Credit agent earnings on delivery
    - Notify the parties involved, best effort
    """

    def __init__(
        self,
        orders: OrderRepository,
        products: ProductRepository,
        users: UserRepository,
        notifications: NotificationGateway,
    ):
        super().__init__("workflow_engine")
        self.orders = orders
        self.products = products
        self.users = users
        self.notifications = notifications

        self.state_machine = OrderStateMachine()
        self.inventory = InventoryLedger(products)
        self.earnings = EarningsLedger(users)
        self.assignment = AssignmentCoordinator(orders, users, self.state_machine)

    @asynccontextmanager
    async def _operation(
        self, operation: str, order_ref: str | None = None, **context: Any
    ) -> AsyncIterator[WorkflowTracer]:
        """Trace a use case and turn unexpected failures into InternalError."""
        tracer = WorkflowTracer(operation, order_ref)
        try:
            yield tracer
        except OrderflowError as e:
            self.logger.logger.info(
                "operation_rejected",
                operation=operation,
                order_id=order_ref,
                error=e.kind,
                message=e.message,
                **context,
            )
            raise
        except PydanticValidationError as e:
            raise ValidationError(_first_error(e)) from e
        except Exception as e:
            self.logger.log_error(
                error=str(e),
                order_id=order_ref,
                operation=operation,
                error_type=type(e).__name__,
                **context,
            )
            raise InternalError(f"Unexpected error during {operation}") from e

        self.logger.logger.debug("operation_complete", trace=tracer.get_trace_summary())

    # -- helpers ---------------------------------------------------------

    def _require_role(self, principal: Principal, *roles: UserRole) -> None:
        if principal.role not in roles:
            allowed = ", ".join(role.value for role in roles)
            raise AuthorizationError(f"This action requires role: {allowed}")

    def _require_admin(self, principal: Principal) -> None:
        if not principal.is_admin:
            raise AuthorizationError("Only administrators can perform this action")

    def _require_text(self, value: str | None, field: str) -> str:
        if value is None or not value.strip():
            raise ValidationError(f"{field} is required")
        return value.strip()

    def _paging(self, page: int, limit: int | None) -> tuple[int, int]:
        if limit is None:
            limit = self.settings.default_page_size
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")
        return page, min(limit, self.settings.max_page_size)

    def _page(self, orders: list[Order], total: int, page: int, limit: int) -> OrderPage:
        return OrderPage(
            orders=orders,
            total=total,
            page=page,
            limit=limit,
            pages=(total + limit - 1) // limit,
        )

    def _ensure_can_view(self, order: Order, principal: Principal) -> None:
        if principal.is_admin or order.involves(principal.user_id):
            return
        raise AuthorizationError("Not authorized to view this order")

    async def _commit(
        self,
        order_ref: str,
        principal: Principal,
        change: Callable[[Order], Any],
        tracer: WorkflowTracer,
        expected_version: int | None = None,
    ) -> Order:
        """Store ``change`` and run the side effects of any status it entered."""
        previous: dict[str, OrderStatus] = {}

        def mutation(order: Order) -> None:
            previous["status"] = order.order_status
            change(order)

        with tracer.trace_step("commit", "order_repository"):
            order = await self.orders.mutate_order(order_ref, mutation, expected_version)

        from_status = previous["status"]
        if order.order_status != from_status:
            self.logger.log_transition(
                order_id=str(order.id),
                order_number=order.order_number,
                from_status=from_status.value,
                to_status=order.order_status.value,
                actor=str(principal),
                version=order.version,
            )
            await self._after_transition(order, tracer)
        return order

    async def _after_transition(self, order: Order, tracer: WorkflowTracer) -> None:
        status = order.order_status

        if status in RESTOCKING_STATES:
            with tracer.trace_step("restore_stock", "inventory_ledger"):
                await self.inventory.restore(order.items)
            self.logger.log_side_effect(
                "restore_stock",
                order_id=str(order.id),
                order_number=order.order_number,
                lines=len(order.items),
            )

        elif status == OrderStatus.DELIVERED and order.delivery_agent_id:
            with tracer.trace_step("accrue_earnings", "earnings_ledger"):
                amount = await self.earnings.accrue(order.delivery_agent_id, order.delivery_fee)
            self.logger.log_side_effect(
                "accrue_earnings",
                order_id=str(order.id),
                applied=amount is not None,
                agent_id=order.delivery_agent_id,
                amount=str(amount) if amount is not None else None,
            )

    async def _notify_customer(self, order: Order, title: str, message: str) -> None:
        await self.notifications.notify(
            order.customer_id,
            NotificationType.ORDER_UPDATE,
            title,
            message,
            order.order_number,
        )

    # -- customer use cases ---------------------------------------------

    async def create_order(
        self,
        principal: Principal,
        items: list[LineRequest],
        delivery_address: DeliveryAddress,
        payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY,
        notes: str | None = None,
        is_urgent: bool = False,
    ) -> OrderResult:
        """
        Place an order and reserve its stock.

        Args:
            principal: The ordering customer
            items: Requested products; repeated products are merged
            delivery_address: Destination, which also prices the delivery
            payment_method: How the customer pays
            notes: Optional note for the seller
            is_urgent: Priority flag

        Returns:
            The pending order
        """
        async with self._operation("create_order", customer_id=principal.user_id) as tracer:
            self._require_role(principal, UserRole.CUSTOMER)
            if not items:
                raise ValidationError("Order must contain at least one item")

            merged: dict[str, int] = {}
            for item in items:
                merged[item.product_id] = merged.get(item.product_id, 0) + item.quantity
            requests = [
                LineRequest(product_id=product_id, quantity=quantity)
                for product_id, quantity in merged.items()
            ]

            with tracer.trace_step("reserve", "inventory_ledger", lines=len(requests)):
                reservation = await self.inventory.reserve(requests, delivery_address.city)

            order = Order(
                customer_id=principal.user_id,
                items=reservation.items,
                delivery_fee=reservation.delivery_fee,
                payment_method=payment_method,
                delivery_address=delivery_address,
                notes=OrderNotes(customer=notes),
                is_urgent=is_urgent,
            )
            order.recalculate()
            order.add_tracking(OrderStatus.PENDING.value, "Order placed")

            try:
                with tracer.trace_step("persist", "order_repository"):
                    order = await self.orders.create(order)
            except Exception:
                await self.inventory.restore(reservation.items)
                raise

            self.logger.logger.info(
                "order_created",
                order_id=str(order.id),
                order_number=order.order_number,
                customer_id=order.customer_id,
                final_amount=str(order.final_amount),
                lines=len(order.items),
            )

            await self.notifications.notify(
                order.customer_id,
                NotificationType.ORDER_CREATED,
                "Order Placed",
                f"Your order {order.order_number} has been placed successfully",
                order.order_number,
            )
            await self.notifications.notify_many(
                order.seller_ids,
                NotificationType.NEW_ORDER,
                "New Order Received",
                f"You have received a new order {order.order_number}",
                order.order_number,
            )

        return OrderResult(order=order, message="Order created successfully")

    async def cancel_order(
        self,
        principal: Principal,
        order_ref: str,
        reason: str,
        expected_version: int | None = None,
    ) -> OrderResult:
        """Customer cancellation; stock goes back once the cancel is stored."""
        async with self._operation("cancel_order", order_ref) as tracer:
            reason = self._require_text(reason, "Cancellation reason")

            def cancel(order: Order) -> None:
                if order.customer_id != principal.user_id:
                    raise AuthorizationError("Not authorized to cancel this order")
                self.state_machine.cancel(order, principal, reason)

            order = await self._commit(order_ref, principal, cancel, tracer, expected_version)

            await self.notifications.notify_many(
                order.seller_ids,
                NotificationType.ORDER_CANCELLED,
                "Order Cancelled",
                f"Order {order.order_number} has been cancelled by the customer",
                order.order_number,
            )

        return OrderResult(order=order, message="Order cancelled successfully")

    # -- seller and admin use cases ---------------------------------------

    async def update_status(
        self,
        principal: Principal,
        order_ref: str,
        status: OrderStatus,
        message: str | None = None,
        expected_version: int | None = None,
    ) -> OrderResult:
        """Seller or admin status change along the transition table."""
        async with self._operation("update_status", order_ref, target=status.value) as tracer:
            self._require_role(principal, UserRole.SELLER, UserRole.ADMIN)
            if not principal.is_admin and status not in SELLER_TARGETS:
                raise AuthorizationError(f"Sellers cannot set status {status.value}")

            def update(order: Order) -> None:
                if not principal.is_admin and not order.has_seller(principal.user_id):
                    raise AuthorizationError("Not authorized to update this order")
                self.state_machine.transition(order, status, principal, message)
                if message and principal.role == UserRole.SELLER:
                    order.notes.seller = message

            order = await self._commit(order_ref, principal, update, tracer, expected_version)

            await self._notify_customer(
                order,
                "Order Status Updated",
                f"Your order {order.order_number} is now {status.value}",
            )

        return OrderResult(order=order, message=f"Order status updated to {status.value}")

    async def force_status(
        self,
        principal: Principal,
        order_ref: str,
        status: OrderStatus,
        reason: str,
        expected_version: int | None = None,
    ) -> OrderResult:
        """Admin override of the transition table, with an audit trail."""
        async with self._operation("force_status", order_ref, target=status.value) as tracer:
            self._require_admin(principal)
            if not self.settings.allow_admin_override:
                raise AuthorizationError("Admin override is disabled")
            reason = self._require_text(reason, "Override reason")

            def force(order: Order) -> None:
                self.state_machine.force(order, status, principal, reason)
                order.notes.admin = reason

            order = await self._commit(order_ref, principal, force, tracer, expected_version)

            await self._notify_customer(
                order,
                "Order Status Updated",
                f"Your order {order.order_number} is now {status.value}",
            )

        return OrderResult(order=order, message=f"Order status overridden to {status.value}")

    async def adjust_stock(
        self,
        principal: Principal,
        product_id: str,
        quantity: int,
        operation: Literal["set", "add", "subtract"] = "set",
    ) -> Product:
        """Stock correction by an admin or the seller who owns the product."""
        async with self._operation("adjust_stock", product_id=product_id):
            self._require_role(principal, UserRole.SELLER, UserRole.ADMIN)
            product = await self.products.get(product_id)
            if product is None:
                raise ProductNotFound(product_id)
            if not principal.is_admin and product.seller_id != principal.user_id:
                raise AuthorizationError("Not authorized to update this product")

            product = await self.inventory.adjust_stock(product_id, quantity, operation)

        return product

    async def resolve_issue(
        self,
        principal: Principal,
        order_ref: str,
        issue_id: str,
        resolution: str,
    ) -> OrderResult:
        async with self._operation("resolve_issue", order_ref, issue_id=issue_id) as tracer:
            self._require_admin(principal)
            resolution = self._require_text(resolution, "Resolution")
            reporter: dict[str, str] = {}

            def resolve(order: Order) -> None:
                issue = order.find_issue(issue_id)
                if issue is None:
                    raise NotFoundError(f"Issue {issue_id} not found", issue_id=issue_id)
                if issue.status == IssueStatus.CLOSED:
                    raise ValidationError(f"Issue {issue_id} is already resolved")
                issue.status = IssueStatus.CLOSED
                issue.resolution = resolution
                issue.resolved_at = utcnow()
                reporter["user_id"] = issue.reported_by
                order.add_tracking("issue_resolved", f"Issue resolved: {resolution}")

            order = await self._commit(order_ref, principal, resolve, tracer)

            await self.notifications.notify(
                reporter["user_id"],
                NotificationType.ORDER_UPDATE,
                "Issue Resolved",
                f"The issue reported for order {order.order_number} has been resolved",
                order.order_number,
            )

        return OrderResult(order=order, message="Issue resolved successfully")

    # -- delivery agent use cases -----------------------------------------

    async def accept_delivery(
        self,
        principal: Principal,
        order_ref: str,
        expected_version: int | None = None,
    ) -> OrderResult:
        """Claim a ready order; exactly one agent wins a race."""
        async with self._operation("accept_delivery", order_ref, agent_id=principal.user_id):
            self._require_role(principal, UserRole.DELIVERY_AGENT)

            order = await self.assignment.assign(order_ref, principal, expected_version)

            self.logger.log_transition(
                order_id=str(order.id),
                order_number=order.order_number,
                from_status=OrderStatus.READY_FOR_PICKUP.value,
                to_status=order.order_status.value,
                actor=str(principal),
                version=order.version,
            )
            await self._notify_customer(
                order,
                "Order Dispatched",
                f"Your order {order.order_number} has been picked up for delivery",
            )

        return OrderResult(order=order, message="Order accepted for delivery")

    async def update_delivery_status(
        self,
        principal: Principal,
        order_ref: str,
        status: str,
        notes: str | None = None,
        location: GeoLocation | None = None,
        expected_version: int | None = None,
    ) -> OrderResult:
        """
        Progress report from the assigned agent.

        Args:
            principal: The reporting agent
            order_ref: Order id or order number
            status: 'picked_up', 'in_transit' or 'delivered'
            notes: Optional delivery notes
            location: Where the agent is

        Returns:
            The updated order
        """
        async with self._operation("update_delivery_status", order_ref, status=status) as tracer:
            target = DELIVERY_STATUS_MAP.get(status)
            if target is None:
                raise ValidationError(f"Invalid delivery status: {status}")

            def report(order: Order) -> None:
                self.assignment.ensure_assigned(order, principal)
                self.state_machine.transition(
                    order,
                    target,
                    principal,
                    DELIVERY_STATUS_MESSAGES[status],
                    location,
                )
                if notes:
                    order.notes.delivery = notes

            order = await self._commit(order_ref, principal, report, tracer, expected_version)

            await self._notify_customer(
                order,
                "Delivery Update",
                f"Your order {order.order_number}: {DELIVERY_STATUS_MESSAGES[status].lower()}",
            )

        return OrderResult(order=order, message="Delivery status updated successfully")

    async def update_delivery_location(
        self,
        principal: Principal,
        order_ref: str,
        latitude: float,
        longitude: float,
    ) -> OrderResult:
        """Record the agent's position without touching the order status."""
        async with self._operation("update_delivery_location", order_ref) as tracer:
            location = GeoLocation(latitude=latitude, longitude=longitude)

            def move(order: Order) -> None:
                self.assignment.ensure_assigned(order, principal)
                if order.order_status not in COMPLETABLE:
                    raise ValidationError(
                        "Location can only be updated while the order is out for delivery"
                    )
                order.add_tracking("location_update", "Delivery location updated", location)

            order = await self._commit(order_ref, principal, move, tracer)

        return OrderResult(order=order, message="Location updated successfully")

    async def complete_delivery(
        self,
        principal: Principal,
        order_ref: str,
        delivery_notes: str | None = None,
        customer_signature: str | None = None,
        expected_version: int | None = None,
    ) -> OrderResult:
        """Hand-over by the assigned agent; credits the agent's earnings."""
        async with self._operation("complete_delivery", order_ref) as tracer:

            def complete(order: Order) -> None:
                self.assignment.ensure_assigned(order, principal)
                self.state_machine.complete(order, principal, delivery_notes, customer_signature)

            order = await self._commit(order_ref, principal, complete, tracer, expected_version)

            await self._notify_customer(
                order,
                "Order Delivered",
                f"Your order {order.order_number} has been delivered successfully",
            )

        return OrderResult(order=order, message="Delivery completed successfully")

    async def report_issue(
        self,
        principal: Principal,
        order_ref: str,
        type: IssueType,
        description: str,
    ) -> OrderResult:
        """File a delivery problem and alert every administrator."""
        async with self._operation("report_issue", order_ref, issue_type=type.value) as tracer:
            issue = Issue(type=type, description=description, reported_by=principal.user_id)

            def report(order: Order) -> None:
                if not principal.is_admin:
                    self.assignment.ensure_assigned(order, principal)
                order.issues.append(issue)
                order.add_tracking("issue_reported", f"Issue reported: {type.value} - {description}")

            order = await self._commit(order_ref, principal, report, tracer)

            admin_ids = await self.users.list_by_role(UserRole.ADMIN)
            await self.notifications.notify_many(
                admin_ids,
                NotificationType.DELIVERY_ISSUE,
                "Delivery Issue Reported",
                f"Issue reported for order {order.order_number}: {type.value}",
                order.order_number,
            )

        return OrderResult(order=order, message="Issue reported successfully")

    async def set_agent_availability(self, principal: Principal, is_available: bool) -> User:
        async with self._operation("set_agent_availability", agent_id=principal.user_id):
            self._require_role(principal, UserRole.DELIVERY_AGENT)

            def toggle(agent: User) -> None:
                agent.is_available = is_available

            agent = await self.users.mutate(principal.user_id, toggle)
            if agent is None:
                raise UserNotFoundError(principal.user_id)

        return agent

    async def agent_earnings(self, principal: Principal) -> Earnings:
        self._require_role(principal, UserRole.DELIVERY_AGENT)
        return await self.earnings.summary(principal.user_id)

    # -- queries ------------------------------------------------------------

    async def get_order(self, principal: Principal, order_ref: str) -> Order:
        order = await self.orders.require(order_ref)
        self._ensure_can_view(order, principal)
        return order

    async def get_tracking(self, principal: Principal, order_ref: str) -> TrackingView:
        order = await self.get_order(principal, order_ref)

        agent = None
        if order.delivery_agent_id:
            agent_user = await self.users.get(order.delivery_agent_id)
            if agent_user is not None:
                agent = AgentSummary(
                    id=agent_user.id,
                    name=agent_user.name,
                    phone=agent_user.phone,
                    vehicle_type=agent_user.vehicle_type.value if agent_user.vehicle_type else None,
                )

        return TrackingView(
            order_number=order.order_number,
            current_status=order.order_status,
            tracking_updates=order.tracking_updates,
            estimated_delivery_time=order.estimated_delivery_time,
            actual_delivery_time=order.actual_delivery_time,
            delivery_agent=agent,
        )

    async def list_customer_orders(
        self,
        principal: Principal,
        page: int = 1,
        limit: int | None = None,
        status: OrderStatus | None = None,
    ) -> OrderPage:
        page, limit = self._paging(page, limit)
        orders, total = await self.orders.list_for_customer(
            principal.user_id, page=page, limit=limit, status=status
        )
        return self._page(orders, total, page, limit)

    async def list_seller_orders(
        self,
        principal: Principal,
        page: int = 1,
        limit: int | None = None,
        status: OrderStatus | None = None,
    ) -> OrderPage:
        self._require_role(principal, UserRole.SELLER)
        page, limit = self._paging(page, limit)
        orders, total = await self.orders.list_for_seller(
            principal.user_id, page=page, limit=limit, status=status
        )
        return self._page(orders, total, page, limit)

    async def list_agent_orders(
        self,
        principal: Principal,
        page: int = 1,
        limit: int | None = None,
        status: OrderStatus | None = None,
    ) -> OrderPage:
        """Delivery history of the calling agent."""
        self._require_role(principal, UserRole.DELIVERY_AGENT)
        page, limit = self._paging(page, limit)
        orders, total = await self.orders.list_for_agent(
            principal.user_id, page=page, limit=limit, status=status
        )
        return self._page(orders, total, page, limit)

    async def list_all_orders(
        self,
        principal: Principal,
        page: int = 1,
        limit: int | None = None,
        status: OrderStatus | None = None,
    ) -> OrderPage:
        self._require_admin(principal)
        page, limit = self._paging(page, limit)
        orders, total = await self.orders.list_all(page=page, limit=limit, status=status)
        return self._page(orders, total, page, limit)

    async def available_deliveries(
        self,
        principal: Principal,
        city: City | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> OrderPage:
        self._require_role(principal, UserRole.DELIVERY_AGENT)
        page, limit = self._paging(page, limit)
        orders, total = await self.assignment.available(principal, city, page, limit)
        return self._page(orders, total, page, limit)


def _first_error(error: PydanticValidationError) -> str:
    details = error.errors()
    if not details:
        return "Invalid input"
    first = details[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    return f"{field}: {first['msg']}" if field else first["msg"]


def build_engine(state: StateManager) -> WorkflowEngine:
    """Wire an engine and its collaborators over one state store."""
    return WorkflowEngine(
        orders=OrderRepository(state),
        products=ProductRepository(state),
        users=UserRepository(state),
        notifications=NotificationGateway(NotificationStore(state), state),
    )
