"""Order aggregate data models."""

import random
import time
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_order_number() -> str:
    """Build an ``EL<6-digit-time><3-digit-random>`` order number."""
    timestamp = str(int(time.time() * 1000))
    suffix = f"{random.randint(0, 999):03d}"
    return f"EL{timestamp[-6:]}{suffix}"


class OrderStatus(str, Enum):
    """Order status progression."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    PREPARING = "preparing"
    READY_FOR_PICKUP = "ready_for_pickup"
    DISPATCHED = "dispatched"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    ONLINE_PAYMENT = "online_payment"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class City(str, Enum):
    """Cities the marketplace delivers to."""

    HARAR = "Harar"
    DIRE_DAWA = "Dire Dawa"
    HARARGE = "Hararge"


class IssueType(str, Enum):
    CUSTOMER_UNAVAILABLE = "customer_unavailable"
    ADDRESS_ISSUE = "address_issue"
    PRODUCT_DAMAGED = "product_damaged"
    OTHER = "other"


class IssueStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class GeoLocation(BaseModel):
    """Geographic location."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class DeliveryAddress(BaseModel):
    """Where the order is delivered."""

    street: str = Field(min_length=1)
    city: City
    region: str | None = None
    postal_code: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    instructions: str | None = None


class LineItem(BaseModel):
    """One product/quantity/price/seller tuple, priced at order time."""

    product_id: str
    product_name: str
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=0)
    seller_id: str

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * Decimal(self.quantity)


class TrackingEvent(BaseModel):
    """Immutable audit entry appended on every order mutation."""

    model_config = ConfigDict(frozen=True)

    status: str
    message: str
    timestamp: datetime = Field(default_factory=utcnow)
    location: GeoLocation | None = None


class OrderNotes(BaseModel):
    """Free-form notes keyed by actor role."""

    customer: str | None = None
    seller: str | None = None
    admin: str | None = None
    delivery: str | None = None


class Issue(BaseModel):
    """A problem reported against an order while it is being delivered."""

    id: UUID = Field(default_factory=uuid4)
    type: IssueType
    description: str = Field(min_length=10, max_length=1000)
    reported_by: str
    reported_at: datetime = Field(default_factory=utcnow)
    status: IssueStatus = IssueStatus.OPEN
    resolution: str | None = None
    resolved_at: datetime | None = None


class Order(BaseModel):
    """Complete order details."""

    id: UUID = Field(default_factory=uuid4)
    order_number: str = Field(default_factory=generate_order_number)
    customer_id: str
    items: list[LineItem] = Field(min_length=1)

    # Pricing
    total_amount: Decimal = Field(default=Decimal("0"), ge=0)
    delivery_fee: Decimal = Field(default=Decimal("0"), ge=0)
    final_amount: Decimal = Field(default=Decimal("0"), ge=0)

    # Payment
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    payment_status: PaymentStatus = PaymentStatus.PENDING

    order_status: OrderStatus = OrderStatus.PENDING
    delivery_address: DeliveryAddress

    # Delivery
    delivery_agent_id: str | None = None
    estimated_delivery_time: datetime | None = None
    actual_delivery_time: datetime | None = None
    customer_signature: str | None = None

    tracking_updates: list[TrackingEvent] = Field(default_factory=list)
    notes: OrderNotes = Field(default_factory=OrderNotes)
    issues: list[Issue] = Field(default_factory=list)

    cancellation_reason: str | None = None
    refund_amount: Decimal | None = Field(default=None, ge=0)
    is_urgent: bool = False

    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def recalculate(self) -> None:
        """Recompute totals; called on every persist."""
        self.total_amount = sum((item.line_total for item in self.items), Decimal("0"))
        self.final_amount = self.total_amount + self.delivery_fee

    def add_tracking(
        self,
        status: str,
        message: str,
        location: GeoLocation | None = None,
    ) -> TrackingEvent:
        """Append a tracking event."""
        event = TrackingEvent(status=status, message=message, location=location)
        self.tracking_updates.append(event)
        self.updated_at = event.timestamp
        return event

    @property
    def seller_ids(self) -> list[str]:
        """Distinct sellers on the order, in line order."""
        return list(dict.fromkeys(item.seller_id for item in self.items))

    def has_seller(self, user_id: str) -> bool:
        return any(item.seller_id == user_id for item in self.items)

    def involves(self, user_id: str) -> bool:
        """Check if a user is the customer, a seller or the assigned agent."""
        return (
            self.customer_id == user_id
            or self.has_seller(user_id)
            or self.delivery_agent_id == user_id
        )

    def find_issue(self, issue_id: UUID | str) -> Issue | None:
        for issue in self.issues:
            if str(issue.id) == str(issue_id):
                return issue
        return None
