"""API routes for the order workflow service."""

from typing import Any, Literal

from fastapi import APIRouter, Depends, Header, Query, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from orderflow.errors import AuthenticationError, NotFoundError
from orderflow.models.order import (
    City,
    DeliveryAddress,
    GeoLocation,
    IssueType,
    OrderStatus,
    PaymentMethod,
)
from orderflow.models.user import Principal, UserRole
from orderflow.state.manager import StateManager, get_state_manager
from orderflow.state.notifications import NotificationStore
from orderflow.state.repositories import CartRepository
from orderflow.utils.logging import get_logger
from orderflow.workflow.cart import CartService
from orderflow.workflow.dashboards import build_dashboard
from orderflow.workflow.engine import OrderResult, WorkflowEngine, build_engine
from orderflow.workflow.inventory import LineRequest

logger = get_logger(__name__)

router = APIRouter()


# Request Models


class CreateOrderRequest(BaseModel):
    """Request to place an order."""

    items: list[LineRequest] = Field(min_length=1)
    delivery_address: DeliveryAddress
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    notes: str | None = Field(default=None, max_length=500)
    is_urgent: bool = False


class UpdateStatusRequest(BaseModel):
    status: OrderStatus
    message: str | None = Field(default=None, max_length=500)
    expected_version: int | None = None


class CancelOrderRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)
    expected_version: int | None = None


class OverrideStatusRequest(BaseModel):
    """Admin override of the order workflow."""

    status: OrderStatus
    reason: str = Field(min_length=1, max_length=500)
    expected_version: int | None = None


class ResolveIssueRequest(BaseModel):
    resolution: str = Field(min_length=1, max_length=1000)


class StockUpdateRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=0)
    operation: Literal["set", "add", "subtract"] = "set"


class LocationUpdateRequest(BaseModel):
    latitude: float
    longitude: float


class DeliveryStatusRequest(BaseModel):
    """Progress report: picked_up, in_transit or delivered."""

    status: str
    notes: str | None = Field(default=None, max_length=500)
    location: GeoLocation | None = None
    expected_version: int | None = None


class CompleteDeliveryRequest(BaseModel):
    delivery_notes: str | None = Field(default=None, max_length=500)
    customer_signature: str | None = None
    expected_version: int | None = None


class ReportIssueRequest(BaseModel):
    type: IssueType
    description: str


class AvailabilityRequest(BaseModel):
    is_available: bool


class CartItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)


class CartQuantityRequest(BaseModel):
    quantity: int = Field(ge=1)


class CheckoutRequest(BaseModel):
    delivery_address: DeliveryAddress
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    notes: str | None = Field(default=None, max_length=500)
    is_urgent: bool = False


# Dependencies


async def get_state() -> StateManager:
    """Get the shared state manager."""
    return await get_state_manager()


async def get_engine(state: StateManager = Depends(get_state)) -> WorkflowEngine:
    return build_engine(state)


async def get_inbox(state: StateManager = Depends(get_state)) -> NotificationStore:
    return NotificationStore(state)


async def get_cart_service(
    state: StateManager = Depends(get_state),
    engine: WorkflowEngine = Depends(get_engine),
) -> CartService:
    return CartService(CartRepository(state), engine)


async def get_principal(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Principal:
    """
    Read the caller from the headers set by the authenticating gateway.

    The gateway has already verified the identity; this only parses it.
    """
    if not x_user_id or not x_user_role:
        raise AuthenticationError("Missing X-User-Id or X-User-Role header")
    try:
        role = UserRole(x_user_role)
    except ValueError:
        raise AuthenticationError(f"Unknown role: {x_user_role}")
    return Principal(user_id=x_user_id, role=role)


def envelope(data: Any = None, message: str = "OK") -> dict[str, Any]:
    """Wrap a payload in the standard success envelope."""
    return {"success": True, "message": message, "data": jsonable_encoder(data)}


def order_envelope(result: OrderResult) -> dict[str, Any]:
    return envelope(result.order, result.message)


# Order endpoints


@router.post("/orders", status_code=status.HTTP_201_CREATED)
async def create_order(
    request: CreateOrderRequest,
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    """
    Place a new order.

    Stock for every line is reserved before the order is stored.
    """
    result = await engine.create_order(
        principal,
        request.items,
        request.delivery_address,
        payment_method=request.payment_method,
        notes=request.notes,
        is_urgent=request.is_urgent,
    )

    logger.info(
        "order_created_via_api",
        order_number=result.order.order_number,
        customer_id=principal.user_id,
    )
    return order_envelope(result)


@router.get("/orders")
async def list_all_orders(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    order_status: OrderStatus | None = Query(default=None, alias="status"),
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    """List every order (admins only)."""
    return envelope(await engine.list_all_orders(principal, page, limit, order_status))


@router.get("/orders/mine")
async def list_my_orders(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    order_status: OrderStatus | None = Query(default=None, alias="status"),
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    """List the caller's own orders, newest first."""
    return envelope(await engine.list_customer_orders(principal, page, limit, order_status))


@router.get("/orders/seller")
async def list_seller_orders(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    order_status: OrderStatus | None = Query(default=None, alias="status"),
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    """List orders containing the calling seller's products."""
    return envelope(await engine.list_seller_orders(principal, page, limit, order_status))


@router.get("/orders/delivery")
async def list_delivery_orders(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    order_status: OrderStatus | None = Query(default=None, alias="status"),
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Delivery history of the calling agent."""
    return envelope(await engine.list_agent_orders(principal, page, limit, order_status))


@router.get("/orders/{order_id}")
async def get_order(
    order_id: str,
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Get order details by id or order number."""
    return envelope(await engine.get_order(principal, order_id))


@router.get("/orders/{order_id}/tracking")
async def track_order(
    order_id: str,
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Get the tracking history of an order."""
    return envelope(await engine.get_tracking(principal, order_id))


@router.put("/orders/{order_id}/status")
async def update_order_status(
    order_id: str,
    request: UpdateStatusRequest,
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Move an order along the workflow (sellers and admins)."""
    result = await engine.update_status(
        principal,
        order_id,
        request.status,
        message=request.message,
        expected_version=request.expected_version,
    )
    return order_envelope(result)


@router.put("/orders/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    request: CancelOrderRequest,
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Cancel an order before it is ready for pickup."""
    result = await engine.cancel_order(
        principal, order_id, request.reason, expected_version=request.expected_version
    )
    return order_envelope(result)


# Admin endpoints


@router.post("/admin/orders/{order_id}/override")
async def override_order_status(
    order_id: str,
    request: OverrideStatusRequest,
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Force an order into a status outside the normal workflow."""
    result = await engine.force_status(
        principal,
        order_id,
        request.status,
        request.reason,
        expected_version=request.expected_version,
    )

    logger.warning(
        "order_status_overridden",
        order_number=result.order.order_number,
        admin_id=principal.user_id,
        status=request.status.value,
    )
    return order_envelope(result)


@router.post("/admin/orders/{order_id}/issues/{issue_id}/resolve")
async def resolve_issue(
    order_id: str,
    issue_id: str,
    request: ResolveIssueRequest,
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    result = await engine.resolve_issue(principal, order_id, issue_id, request.resolution)
    return order_envelope(result)


@router.post("/admin/inventory/update")
async def update_inventory(
    request: StockUpdateRequest,
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Manually update inventory levels."""
    product = await engine.adjust_stock(
        principal, request.product_id, request.quantity, request.operation
    )
    return envelope(product, "Stock updated successfully")


# Delivery endpoints


@router.get("/delivery/available")
async def available_deliveries(
    city: City | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Orders ready for pickup that no agent has accepted yet."""
    return envelope(await engine.available_deliveries(principal, city, page, limit))


@router.post("/delivery/{order_id}/accept")
async def accept_delivery(
    order_id: str,
    expected_version: int | None = Query(default=None),
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Claim an order for delivery."""
    result = await engine.accept_delivery(principal, order_id, expected_version)
    return order_envelope(result)


@router.put("/delivery/{order_id}/location")
async def update_delivery_location(
    order_id: str,
    request: LocationUpdateRequest,
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    result = await engine.update_delivery_location(
        principal, order_id, request.latitude, request.longitude
    )
    return order_envelope(result)


@router.put("/delivery/{order_id}/status")
async def update_delivery_status(
    order_id: str,
    request: DeliveryStatusRequest,
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    result = await engine.update_delivery_status(
        principal,
        order_id,
        request.status,
        notes=request.notes,
        location=request.location,
        expected_version=request.expected_version,
    )
    return order_envelope(result)


@router.post("/delivery/{order_id}/complete")
async def complete_delivery(
    order_id: str,
    request: CompleteDeliveryRequest,
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Hand the order over to the customer."""
    result = await engine.complete_delivery(
        principal,
        order_id,
        delivery_notes=request.delivery_notes,
        customer_signature=request.customer_signature,
        expected_version=request.expected_version,
    )
    return order_envelope(result)


@router.post("/delivery/{order_id}/issue")
async def report_delivery_issue(
    order_id: str,
    request: ReportIssueRequest,
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Report a problem with a delivery; every admin is notified."""
    result = await engine.report_issue(principal, order_id, request.type, request.description)
    return order_envelope(result)


@router.get("/delivery/earnings")
async def delivery_earnings(
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    return envelope(await engine.agent_earnings(principal))


@router.put("/delivery/availability")
async def set_availability(
    request: AvailabilityRequest,
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    agent = await engine.set_agent_availability(principal, request.is_available)
    return envelope(
        {"is_available": agent.is_available},
        "You are now available" if agent.is_available else "You are now unavailable",
    )


# Notification endpoints


@router.get("/notifications")
async def list_notifications(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    unread_only: bool = Query(default=False),
    principal: Principal = Depends(get_principal),
    inbox: NotificationStore = Depends(get_inbox),
) -> dict[str, Any]:
    notifications, has_more, unread_count = await inbox.list(
        principal.user_id, page=page, limit=limit, unread_only=unread_only
    )
    return envelope(
        {
            "notifications": notifications,
            "unread_count": unread_count,
            "page": page,
            "has_more": has_more,
        }
    )


@router.put("/notifications/read-all")
async def mark_all_notifications_read(
    principal: Principal = Depends(get_principal),
    inbox: NotificationStore = Depends(get_inbox),
) -> dict[str, Any]:
    marked = await inbox.mark_all_read(principal.user_id)
    return envelope({"marked": marked}, "All notifications marked as read")


@router.put("/notifications/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    principal: Principal = Depends(get_principal),
    inbox: NotificationStore = Depends(get_inbox),
) -> dict[str, Any]:
    if not await inbox.mark_read(principal.user_id, notification_id):
        raise NotFoundError(f"Notification {notification_id} not found")
    return envelope(message="Notification marked as read")


@router.delete("/notifications/{notification_id}")
async def delete_notification(
    notification_id: str,
    principal: Principal = Depends(get_principal),
    inbox: NotificationStore = Depends(get_inbox),
) -> dict[str, Any]:
    if not await inbox.delete(principal.user_id, notification_id):
        raise NotFoundError(f"Notification {notification_id} not found")
    return envelope(message="Notification deleted")


# Cart endpoints


@router.get("/cart")
async def get_cart(
    principal: Principal = Depends(get_principal),
    carts: CartService = Depends(get_cart_service),
) -> dict[str, Any]:
    return envelope(await carts.view(principal))


@router.post("/cart/items", status_code=status.HTTP_201_CREATED)
async def add_cart_item(
    request: CartItemRequest,
    principal: Principal = Depends(get_principal),
    carts: CartService = Depends(get_cart_service),
) -> dict[str, Any]:
    await carts.add(principal, request.product_id, request.quantity)
    return envelope(await carts.view(principal), "Item added to cart")


@router.put("/cart/items/{product_id}")
async def update_cart_item(
    product_id: str,
    request: CartQuantityRequest,
    principal: Principal = Depends(get_principal),
    carts: CartService = Depends(get_cart_service),
) -> dict[str, Any]:
    await carts.update(principal, product_id, request.quantity)
    return envelope(await carts.view(principal), "Cart updated")


@router.delete("/cart/items/{product_id}")
async def remove_cart_item(
    product_id: str,
    principal: Principal = Depends(get_principal),
    carts: CartService = Depends(get_cart_service),
) -> dict[str, Any]:
    await carts.remove(principal, product_id)
    return envelope(await carts.view(principal), "Item removed from cart")


@router.delete("/cart")
async def clear_cart(
    principal: Principal = Depends(get_principal),
    carts: CartService = Depends(get_cart_service),
) -> dict[str, Any]:
    await carts.clear(principal)
    return envelope(message="Cart cleared")


@router.post("/cart/checkout", status_code=status.HTTP_201_CREATED)
async def checkout_cart(
    request: CheckoutRequest,
    principal: Principal = Depends(get_principal),
    carts: CartService = Depends(get_cart_service),
) -> dict[str, Any]:
    """Place an order for everything in the cart."""
    result = await carts.checkout(
        principal,
        request.delivery_address,
        payment_method=request.payment_method,
        notes=request.notes,
        is_urgent=request.is_urgent,
    )
    return order_envelope(result)


# Dashboard


@router.get("/dashboard")
async def get_dashboard(
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(get_engine),
    inbox: NotificationStore = Depends(get_inbox),
) -> dict[str, Any]:
    """Role specific summary for the caller."""
    return envelope(await build_dashboard(engine, inbox, principal))
