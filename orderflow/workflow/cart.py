"""Shopping cart: a customer's pending line requests before checkout."""

from decimal import Decimal

from pydantic import BaseModel

from orderflow.errors import (
    AuthorizationError,
    InsufficientStock,
    NotFoundError,
    ProductInactive,
    ProductNotFound,
    QuantityOutOfRange,
    ValidationError,
)
from orderflow.models.cart import Cart, CartItem
from orderflow.models.order import DeliveryAddress, PaymentMethod
from orderflow.models.product import Product
from orderflow.models.user import Principal, UserRole
from orderflow.state.repositories import CartRepository
from orderflow.workflow.base import WorkflowComponent
from orderflow.workflow.engine import OrderResult, WorkflowEngine
from orderflow.workflow.inventory import LineRequest


class CartLine(BaseModel):
    product_id: str
    product_name: str | None = None
    unit_price: Decimal | None = None
    quantity: int
    line_total: Decimal = Decimal("0")
    available: bool = False


class CartView(BaseModel):
    """Cart lines priced against the current catalog."""

    user_id: str
    items: list[CartLine]
    total_items: int
    subtotal: Decimal


class CartService(WorkflowComponent):
    """Cart operations for customers; checkout goes through the engine."""

    def __init__(self, carts: CartRepository, engine: WorkflowEngine):
        super().__init__("cart_service")
        self.carts = carts
        self.engine = engine

    def _require_customer(self, principal: Principal) -> None:
        if principal.role != UserRole.CUSTOMER:
            raise AuthorizationError("Only customers have a cart")

    async def _orderable(self, product_id: str, quantity: int) -> Product:
        product = await self.engine.products.get(product_id)
        if product is None:
            raise ProductNotFound(product_id)
        if not product.is_active:
            raise ProductInactive(product.id, product.name)
        if quantity > product.max_order_quantity:
            raise QuantityOutOfRange(
                product.id,
                product.name,
                product.min_order_quantity,
                product.max_order_quantity,
                quantity,
            )
        if product.stock < quantity:
            raise InsufficientStock(product.id, product.name, product.stock, quantity)
        return product

    async def view(self, principal: Principal) -> CartView:
        self._require_customer(principal)
        cart = await self.carts.get_or_empty(principal.user_id)

        lines = []
        for item in cart.items:
            product = await self.engine.products.get(item.product_id)
            if product is None:
                lines.append(CartLine(product_id=item.product_id, quantity=item.quantity))
                continue
            lines.append(
                CartLine(
                    product_id=product.id,
                    product_name=product.name,
                    unit_price=product.price,
                    quantity=item.quantity,
                    line_total=product.price * item.quantity,
                    available=product.is_active and product.stock >= item.quantity,
                )
            )

        return CartView(
            user_id=cart.user_id,
            items=lines,
            total_items=cart.total_items,
            subtotal=sum((line.line_total for line in lines), Decimal("0")),
        )

    async def add(self, principal: Principal, product_id: str, quantity: int = 1) -> Cart:
        """Add a product, merging with any quantity already in the cart."""
        self._require_customer(principal)
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        cart = await self.carts.get_or_empty(principal.user_id)
        existing = cart.find(product_id)
        await self._orderable(product_id, quantity + (existing.quantity if existing else 0))

        def add_item(cart: Cart) -> None:
            item = cart.find(product_id)
            if item:
                item.quantity += quantity
            else:
                cart.items.append(CartItem(product_id=product_id, quantity=quantity))

        cart = await self.carts.mutate_or_create(principal.user_id, add_item)
        self.logger.logger.debug(
            "cart_item_added",
            user_id=principal.user_id,
            product_id=product_id,
            quantity=quantity,
        )
        return cart

    async def update(self, principal: Principal, product_id: str, quantity: int) -> Cart:
        self._require_customer(principal)
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        await self._orderable(product_id, quantity)

        def set_quantity(cart: Cart) -> None:
            item = cart.find(product_id)
            if item is None:
                raise NotFoundError("Item not found in cart", product_id=product_id)
            item.quantity = quantity

        return await self.carts.mutate_or_create(principal.user_id, set_quantity)

    async def remove(self, principal: Principal, product_id: str) -> Cart:
        self._require_customer(principal)

        def remove_item(cart: Cart) -> None:
            item = cart.find(product_id)
            if item is None:
                raise NotFoundError("Item not found in cart", product_id=product_id)
            cart.items.remove(item)

        return await self.carts.mutate_or_create(principal.user_id, remove_item)

    async def clear(self, principal: Principal) -> Cart:
        self._require_customer(principal)

        def empty(cart: Cart) -> None:
            cart.items.clear()

        return await self.carts.mutate_or_create(principal.user_id, empty)

    async def checkout(
        self,
        principal: Principal,
        delivery_address: DeliveryAddress,
        payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY,
        notes: str | None = None,
        is_urgent: bool = False,
    ) -> OrderResult:
        """Turn the cart into an order, then empty it."""
        self._require_customer(principal)
        cart = await self.carts.get_or_empty(principal.user_id)
        if not cart.items:
            raise ValidationError("Cart is empty")

        result = await self.engine.create_order(
            principal,
            [LineRequest(product_id=item.product_id, quantity=item.quantity) for item in cart.items],
            delivery_address,
            payment_method=payment_method,
            notes=notes,
            is_urgent=is_urgent,
        )
        await self.clear(principal)
        return result
