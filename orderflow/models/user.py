"""Marketplace users, principals and delivery-agent earnings."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, EmailStr, Field

from orderflow.models.order import City


class UserRole(str, Enum):
    CUSTOMER = "customer"
    SELLER = "seller"
    ADMIN = "admin"
    DELIVERY_AGENT = "delivery_agent"


class VehicleType(str, Enum):
    MOTORCYCLE = "motorcycle"
    BICYCLE = "bicycle"
    CAR = "car"
    VAN = "van"


class Earnings(BaseModel):
    """Running compensation for a delivery agent."""

    total: Decimal = Field(default=Decimal("0"), ge=0)
    deliveries: int = Field(default=0, ge=0)


class User(BaseModel):
    """User profile as stored by the identity directory."""

    id: str
    name: str
    email: EmailStr | None = None
    phone: str | None = None
    role: UserRole = UserRole.CUSTOMER
    city: City | None = None
    is_active: bool = True

    # Delivery agents only
    is_available: bool = False
    vehicle_type: VehicleType | None = None
    earnings: Earnings = Field(default_factory=Earnings)

    version: int = 0


class Principal(BaseModel):
    """An already-authenticated caller."""

    user_id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __str__(self) -> str:
        return f"{self.role.value}:{self.user_id}"
