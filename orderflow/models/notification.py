"""In-app notification models."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from orderflow.models.order import utcnow


class NotificationType(str, Enum):
    ORDER_CREATED = "order_created"
    NEW_ORDER = "new_order"
    ORDER_UPDATE = "order_update"
    ORDER_CANCELLED = "order_cancelled"
    DELIVERY_ISSUE = "delivery_issue"


class Notification(BaseModel):
    """A message for one user."""

    id: UUID = Field(default_factory=uuid4)
    user_id: str
    type: NotificationType
    title: str
    message: str
    order_number: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    is_read: bool = False
    read_at: datetime | None = None
