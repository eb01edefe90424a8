"""Shopping cart models."""

from datetime import datetime

from pydantic import BaseModel, Field

from orderflow.models.order import utcnow


class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)
    added_at: datetime = Field(default_factory=utcnow)


class Cart(BaseModel):
    """A customer's cart, held in the keyed store."""

    user_id: str
    items: list[CartItem] = Field(default_factory=list)
    version: int = 0

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    def find(self, product_id: str) -> CartItem | None:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None
