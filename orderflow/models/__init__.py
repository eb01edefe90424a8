"""Data models for the order workflow."""

from orderflow.models.cart import Cart, CartItem
from orderflow.models.notification import Notification, NotificationType
from orderflow.models.order import (
    City,
    DeliveryAddress,
    GeoLocation,
    Issue,
    IssueStatus,
    IssueType,
    LineItem,
    Order,
    OrderNotes,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    TrackingEvent,
)
from orderflow.models.product import Product
from orderflow.models.user import Earnings, Principal, User, UserRole, VehicleType

__all__ = [
    # Cart
    "Cart",
    "CartItem",
    # Notification
    "Notification",
    "NotificationType",
    # Order
    "City",
    "DeliveryAddress",
    "GeoLocation",
    "Issue",
    "IssueStatus",
    "IssueType",
    "LineItem",
    "Order",
    "OrderNotes",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "TrackingEvent",
    # Product
    "Product",
    # User
    "Earnings",
    "Principal",
    "User",
    "UserRole",
    "VehicleType",
]
