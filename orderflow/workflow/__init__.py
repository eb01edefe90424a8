"""Order workflow components."""

from orderflow.workflow.assignment import AssignmentCoordinator
from orderflow.workflow.cart import CartService
from orderflow.workflow.dashboards import build_dashboard
from orderflow.workflow.earnings import EarningsLedger
from orderflow.workflow.engine import OrderResult, WorkflowEngine, build_engine
from orderflow.workflow.inventory import InventoryLedger, LineRequest, Reservation
from orderflow.workflow.notifications import NotificationGateway
from orderflow.workflow.state_machine import OrderStateMachine, can_transition

__all__ = [
    "WorkflowEngine",
    "OrderResult",
    "build_engine",
    "OrderStateMachine",
    "can_transition",
    "InventoryLedger",
    "LineRequest",
    "Reservation",
    "AssignmentCoordinator",
    "EarningsLedger",
    "NotificationGateway",
    "CartService",
    "build_dashboard",
]
