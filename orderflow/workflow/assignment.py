"""Assignment coordinator: exclusive delivery-agent ownership of orders."""

from datetime import timedelta

from orderflow.errors import (
    AlreadyAssigned,
    AuthorizationError,
    NotReadyForPickup,
)
from orderflow.models.order import City, Order, OrderStatus, utcnow
from orderflow.models.user import Principal, UserRole
from orderflow.state.repositories import OrderRepository, UserRepository
from orderflow.workflow.base import WorkflowComponent
from orderflow.workflow.state_machine import OrderStateMachine


class AssignmentCoordinator(WorkflowComponent):
    """
    Hands orders that are ready for pickup to exactly one delivery agent.

    The claim is a conditional write on the order: the check that no agent
    is set and the write that sets one are a single step, so of two agents
    racing for the same order one wins and the other gets AlreadyAssigned.
    """

    def __init__(
        self,
        orders: OrderRepository,
        users: UserRepository,
        state_machine: OrderStateMachine,
    ):
        super().__init__("assignment_coordinator")
        self.orders = orders
        self.users = users
        self.state_machine = state_machine

    async def assign(
        self,
        order_ref: str,
        agent: Principal,
        expected_version: int | None = None,
    ) -> Order:
        """
        Assign the order to ``agent`` and dispatch it.

        Args:
            order_ref: Order id or order number
            agent: The delivery agent accepting the order
            expected_version: Optional guard against replayed requests

        Returns:
            The dispatched order
        """
        agent_user = await self.users.require(agent.user_id)
        if agent_user.role != UserRole.DELIVERY_AGENT:
            raise AuthorizationError("Only delivery agents can accept deliveries")

        eta = utcnow() + timedelta(minutes=self.settings.estimated_delivery_minutes)

        def claim(order: Order) -> None:
            if order.delivery_agent_id:
                raise AlreadyAssigned(order.order_number)
            if order.order_status != OrderStatus.READY_FOR_PICKUP:
                raise NotReadyForPickup(order.order_number, order.order_status.value)

            order.delivery_agent_id = agent.user_id
            order.estimated_delivery_time = eta
            self.state_machine.transition(
                order,
                OrderStatus.DISPATCHED,
                agent,
                "Order assigned to delivery agent",
            )

        order = await self.orders.mutate_order(order_ref, claim, expected_version)
        await self.orders.index_agent(order)

        self.logger.log_side_effect(
            "assign_agent",
            order_id=str(order.id),
            agent_id=agent.user_id,
            order_number=order.order_number,
        )
        return order

    def ensure_assigned(self, order: Order, principal: Principal) -> None:
        """Only the agent holding the order may report on it."""
        if not order.delivery_agent_id or order.delivery_agent_id != principal.user_id:
            raise AuthorizationError("Not authorized to update this delivery")

    async def available(
        self,
        agent: Principal,
        city: City | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Order], int]:
        """
        List unassigned orders that are ready for pickup.

        Without an explicit city the agent's home city is used, when known.
        """
        if city is None:
            agent_user = await self.users.get(agent.user_id)
            if agent_user is not None:
                city = agent_user.city

        def open_for_pickup(order: Order) -> bool:
            if order.delivery_agent_id:
                return False
            return city is None or order.delivery_address.city == city

        return await self.orders.list_all(
            page=page,
            limit=limit,
            status=OrderStatus.READY_FOR_PICKUP,
            predicate=open_for_pickup,
        )
