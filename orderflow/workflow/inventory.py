"""Inventory ledger: stock and sales counters for catalog products."""

from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field

from orderflow.errors import (
    InsufficientStock,
    ProductInactive,
    ProductNotFound,
    QuantityOutOfRange,
    ValidationError,
)
from orderflow.models.order import City, LineItem
from orderflow.models.product import Product
from orderflow.state.repositories import ProductRepository
from orderflow.workflow.base import WorkflowComponent


class LineRequest(BaseModel):
    """A product and quantity the customer asked for."""

    product_id: str
    quantity: int = Field(ge=1)


class Reservation(BaseModel):
    """Priced line items whose stock has been taken."""

    items: list[LineItem]
    total_amount: Decimal
    delivery_fee: Decimal


class InventoryLedger(WorkflowComponent):
    """
    Inventory ledger that owns product stock and sales counters.

    Responsibilities:
    - Reserve stock for new orders, all or nothing
    - Restore stock for cancelled orders
    - Price delivery by destination city
    - Administrative stock corrections
    """

    def __init__(self, products: ProductRepository):
        super().__init__("inventory_ledger")
        self.products = products

    def delivery_fee(self, city: City | str) -> Decimal:
        """Flat fee for the destination city."""
        city_name = city.value if isinstance(city, City) else city
        return self.settings.delivery_fees.get(city_name, self.settings.default_delivery_fee)

    async def check_availability(self, product_id: str, quantity: int = 1) -> dict[str, Any]:
        """
        Check if a product can be ordered in the requested quantity.

        Args:
            product_id: Product identifier
            quantity: Requested quantity

        Returns:
            Availability status and current stock
        """
        product = await self.products.get(product_id)
        if product is None:
            raise ProductNotFound(product_id)

        return {
            "product_id": product_id,
            "available": (
                product.is_active
                and product.accepts_quantity(quantity)
                and product.stock >= quantity
            ),
            "current_stock": product.stock,
            "requested_quantity": quantity,
            "is_low_stock": product.is_low_stock,
        }

    async def reserve(self, requests: list[LineRequest], city: City | str) -> Reservation:
        """
        Take stock for every requested line, all or nothing.

        Each product is decremented with its own conditional write, re-checked
        against fresh stock whenever another order wins the race, so a line
        only fails for a business reason. If any line fails, the lines already
        taken in this call are handed back before the error propagates.

        Args:
            requests: Lines to reserve, one per product
            city: Delivery destination, used to price the delivery

        Returns:
            Reservation with priced line items and the delivery fee
        """
        reserved: list[LineItem] = []

        try:
            for request in requests:
                product = await self.products.update_counters(
                    request.product_id, _take_stock(request.quantity)
                )
                if product is None:
                    raise ProductNotFound(request.product_id)

                reserved.append(
                    LineItem(
                        product_id=product.id,
                        product_name=product.name,
                        quantity=request.quantity,
                        unit_price=product.price,
                        seller_id=product.seller_id,
                    )
                )
        except Exception as e:
            if reserved:
                self.logger.logger.info(
                    "reservation_rolled_back",
                    reserved_lines=len(reserved),
                    error=str(e),
                )
                await self.restore(reserved)
            raise

        total_amount = sum((item.line_total for item in reserved), Decimal("0"))
        reservation = Reservation(
            items=reserved,
            total_amount=total_amount,
            delivery_fee=self.delivery_fee(city),
        )

        self.logger.logger.info(
            "stock_reserved",
            lines=len(reserved),
            total_amount=str(total_amount),
        )
        return reservation

    async def restore(self, items: list[LineItem]) -> None:
        """
        Hand stock back for every line item.

        Never fails: a product that no longer exists is skipped so that a
        deleted catalog entry can not block a cancellation.
        """
        for item in items:
            product = await self.products.update_counters(
                item.product_id, _give_back(item.quantity)
            )
            if product is None:
                self.logger.logger.warning(
                    "restore_skipped_missing_product",
                    product_id=item.product_id,
                    quantity=item.quantity,
                )
                continue

            self.logger.logger.debug(
                "stock_restored",
                product_id=item.product_id,
                quantity=item.quantity,
                new_stock=product.stock,
            )

    async def adjust_stock(
        self,
        product_id: str,
        quantity: int,
        operation: Literal["set", "add", "subtract"] = "set",
    ) -> Product:
        """
        Correct the stock level of a product.

        Args:
            product_id: Product to update
            quantity: Quantity to set or adjust
            operation: 'set', 'add', or 'subtract'

        Returns:
            The updated product
        """
        if quantity < 0:
            raise ValidationError("Quantity must not be negative")

        def apply(product: Product) -> None:
            if operation == "set":
                product.stock = quantity
            elif operation == "add":
                product.stock += quantity
            elif operation == "subtract":
                product.stock = max(0, product.stock - quantity)
            else:
                raise ValidationError(f"Invalid stock operation: {operation}")

        product = await self.products.update_counters(product_id, apply)
        if product is None:
            raise ProductNotFound(product_id)

        self.logger.logger.info(
            "stock_adjusted",
            product_id=product_id,
            operation=operation,
            quantity=quantity,
            new_stock=product.stock,
        )
        return product


def _take_stock(quantity: int):
    def take(product: Product) -> None:
        if not product.is_active:
            raise ProductInactive(product.id, product.name)
        if not product.accepts_quantity(quantity):
            raise QuantityOutOfRange(
                product.id,
                product.name,
                product.min_order_quantity,
                product.max_order_quantity,
                quantity,
            )
        if product.stock < quantity:
            raise InsufficientStock(product.id, product.name, product.stock, quantity)
        product.stock -= quantity
        product.sales_count += quantity

    return take


def _give_back(quantity: int):
    def give_back(product: Product) -> None:
        product.stock += quantity
        product.sales_count = max(0, product.sales_count - quantity)

    return give_back
