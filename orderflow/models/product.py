"""Catalog product with the stock counters owned by the inventory ledger."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from orderflow.models.order import utcnow


class Product(BaseModel):
    """Product as seen by the inventory ledger."""

    id: str
    name: str
    price: Decimal = Field(ge=0)
    seller_id: str
    category: str | None = None
    is_active: bool = True
    stock: int = Field(default=0, ge=0)
    sales_count: int = Field(default=0, ge=0)
    min_order_quantity: int = Field(default=1, ge=1)
    max_order_quantity: int = Field(default=100, ge=1)
    low_stock_threshold: int = 10
    version: int = 0
    last_updated: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def check_quantity_bounds(self) -> "Product":
        if self.max_order_quantity < self.min_order_quantity:
            raise ValueError("max_order_quantity must not be below min_order_quantity")
        return self

    @property
    def is_low_stock(self) -> bool:
        """Check if product is low on stock."""
        return self.stock <= self.low_stock_threshold

    def accepts_quantity(self, quantity: int) -> bool:
        return self.min_order_quantity <= quantity <= self.max_order_quantity
