"""Role dashboards: one summary per kind of user."""

from abc import ABC, abstractmethod
from collections import Counter
from decimal import Decimal
from typing import Any

from orderflow.errors import AuthorizationError
from orderflow.models.order import IssueStatus, Order, OrderStatus
from orderflow.models.user import Principal, UserRole
from orderflow.state.notifications import NotificationStore
from orderflow.workflow.engine import WorkflowEngine
from orderflow.workflow.state_machine import COMPLETABLE, TERMINAL_STATES

RECENT_ORDERS = 5


def order_summary(order: Order) -> dict[str, Any]:
    return {
        "id": str(order.id),
        "order_number": order.order_number,
        "order_status": order.order_status.value,
        "final_amount": order.final_amount,
        "created_at": order.created_at,
    }


class Dashboard(ABC):
    """Base class for role dashboards."""

    role: UserRole

    def __init__(self, engine: WorkflowEngine, inbox: NotificationStore):
        self.engine = engine
        self.inbox = inbox

    async def build(self, principal: Principal) -> dict[str, Any]:
        if principal.role != self.role:
            raise AuthorizationError(f"Dashboard is only available to {self.role.value} users")
        _, _, unread = await self.inbox.list(principal.user_id, limit=1)
        data = await self.summarize(principal)
        data["unread_notifications"] = unread
        return data

    @abstractmethod
    async def summarize(self, principal: Principal) -> dict[str, Any]:
        """Role specific figures."""
        pass


class CustomerDashboard(Dashboard):
    role = UserRole.CUSTOMER

    async def summarize(self, principal: Principal) -> dict[str, Any]:
        orders = await self.engine.orders.load_index(f"orders:customer:{principal.user_id}")
        delivered = [o for o in orders if o.order_status == OrderStatus.DELIVERED]

        return {
            "total_orders": len(orders),
            "active_orders": sum(1 for o in orders if o.order_status not in TERMINAL_STATES),
            "delivered_orders": len(delivered),
            "total_spent": sum((o.final_amount for o in delivered), Decimal("0")),
            "recent_orders": [order_summary(o) for o in orders[:RECENT_ORDERS]],
        }


class SellerDashboard(Dashboard):
    role = UserRole.SELLER

    async def summarize(self, principal: Principal) -> dict[str, Any]:
        seller_id = principal.user_id
        orders = await self.engine.orders.load_index(f"orders:seller:{seller_id}")
        products = [
            p for p in await self.engine.products.list_all() if p.seller_id == seller_id
        ]

        revenue = Decimal("0")
        for order in orders:
            if order.order_status != OrderStatus.DELIVERED:
                continue
            revenue += sum(
                (item.line_total for item in order.items if item.seller_id == seller_id),
                Decimal("0"),
            )

        return {
            "total_orders": len(orders),
            "pending_orders": sum(1 for o in orders if o.order_status == OrderStatus.PENDING),
            "revenue": revenue,
            "total_products": len(products),
            "active_products": sum(1 for p in products if p.is_active),
            "low_stock_products": [
                {"id": p.id, "name": p.name, "stock": p.stock}
                for p in products
                if p.is_low_stock
            ],
            "recent_orders": [order_summary(o) for o in orders[:RECENT_ORDERS]],
        }


class DeliveryAgentDashboard(Dashboard):
    role = UserRole.DELIVERY_AGENT

    async def summarize(self, principal: Principal) -> dict[str, Any]:
        agent = await self.engine.users.require(principal.user_id)
        orders = await self.engine.orders.load_index(f"orders:agent:{principal.user_id}")
        available = await self.engine.available_deliveries(principal)

        return {
            "is_available": agent.is_available,
            "earnings": agent.earnings.model_dump(),
            "active_deliveries": [
                order_summary(o) for o in orders if o.order_status in COMPLETABLE
            ],
            "completed_deliveries": sum(
                1 for o in orders if o.order_status == OrderStatus.DELIVERED
            ),
            "available_orders": available.total,
        }


class AdminDashboard(Dashboard):
    role = UserRole.ADMIN

    async def summarize(self, principal: Principal) -> dict[str, Any]:
        orders = await self.engine.orders.load_index("orders:all")
        by_status = Counter(o.order_status.value for o in orders)

        users_by_role = {}
        for role in UserRole:
            users_by_role[role.value] = len(await self.engine.users.list_by_role(role))

        return {
            "total_orders": len(orders),
            "orders_by_status": {status.value: by_status.get(status.value, 0) for status in OrderStatus},
            "total_revenue": sum(
                (o.final_amount for o in orders if o.order_status == OrderStatus.DELIVERED),
                Decimal("0"),
            ),
            "open_issues": sum(
                1 for o in orders for issue in o.issues if issue.status == IssueStatus.OPEN
            ),
            "users_by_role": users_by_role,
            "recent_orders": [order_summary(o) for o in orders[:RECENT_ORDERS]],
        }


DASHBOARDS: dict[UserRole, type[Dashboard]] = {
    dashboard.role: dashboard
    for dashboard in (CustomerDashboard, SellerDashboard, DeliveryAgentDashboard, AdminDashboard)
}


async def build_dashboard(
    engine: WorkflowEngine, inbox: NotificationStore, principal: Principal
) -> dict[str, Any]:
    """Build the dashboard matching the principal's role."""
    dashboard = DASHBOARDS[principal.role](engine, inbox)
    data = await dashboard.build(principal)
    data["role"] = principal.role.value
    return data
