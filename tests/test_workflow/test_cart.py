"""Tests for the cart service."""

from decimal import Decimal

import pytest

from orderflow.errors import (
    AuthorizationError,
    InsufficientStock,
    NotFoundError,
    ProductInactive,
    QuantityOutOfRange,
    ValidationError,
)
from orderflow.models.order import DeliveryAddress, OrderStatus
from orderflow.models.product import Product
from orderflow.models.user import Principal, User
from orderflow.state.memory import MemoryStateManager
from orderflow.state.repositories import CartRepository
from orderflow.workflow.cart import CartService
from orderflow.workflow.engine import WorkflowEngine


@pytest.fixture
def carts(state_manager: MemoryStateManager, engine: WorkflowEngine) -> CartService:
    return CartService(CartRepository(state_manager), engine)


@pytest.mark.asyncio
async def test_add_merges_quantities(
    carts: CartService, catalog: dict[str, Product], customer: Principal
) -> None:
    await carts.add(customer, "coffee", 2)
    cart = await carts.add(customer, "coffee", 1)

    assert len(cart.items) == 1
    assert cart.total_items == 3

    view = await carts.view(customer)
    assert view.subtotal == Decimal("300")
    assert view.items[0].product_name == "Harar Coffee"
    assert view.items[0].available is True


@pytest.mark.asyncio
async def test_add_checks_catalog(
    carts: CartService, catalog: dict[str, Product], customer: Principal
) -> None:
    with pytest.raises(ProductInactive):
        await carts.add(customer, "retired")
    with pytest.raises(InsufficientStock):
        await carts.add(customer, "spice", 6)
    with pytest.raises(QuantityOutOfRange):
        await carts.add(customer, "gift-box", 6)
    with pytest.raises(ValidationError):
        await carts.add(customer, "coffee", 0)

    assert (await carts.view(customer)).items == []


@pytest.mark.asyncio
async def test_cart_is_customer_only(
    carts: CartService, catalog: dict[str, Product], seller: Principal
) -> None:
    with pytest.raises(AuthorizationError):
        await carts.add(seller, "coffee")
    with pytest.raises(AuthorizationError):
        await carts.view(seller)


@pytest.mark.asyncio
async def test_update_and_remove(
    carts: CartService, catalog: dict[str, Product], customer: Principal
) -> None:
    await carts.add(customer, "coffee", 1)

    cart = await carts.update(customer, "coffee", 4)
    assert cart.find("coffee").quantity == 4

    with pytest.raises(NotFoundError):
        await carts.update(customer, "spice", 1)

    cart = await carts.remove(customer, "coffee")
    assert cart.items == []

    with pytest.raises(NotFoundError):
        await carts.remove(customer, "coffee")


@pytest.mark.asyncio
async def test_checkout_creates_order_and_clears_cart(
    carts: CartService,
    catalog: dict[str, Product],
    people: dict[str, User],
    customer: Principal,
    harar_address: DeliveryAddress,
) -> None:
    await carts.add(customer, "coffee", 2)
    await carts.add(customer, "gift-box", 2)

    result = await carts.checkout(customer, harar_address, notes="Ring twice")

    assert result.order.order_status == OrderStatus.PENDING
    assert result.order.total_amount == Decimal("1500")
    assert result.order.notes.customer == "Ring twice"
    assert (await carts.view(customer)).items == []


@pytest.mark.asyncio
async def test_checkout_empty_cart(
    carts: CartService, customer: Principal, harar_address: DeliveryAddress
) -> None:
    with pytest.raises(ValidationError):
        await carts.checkout(customer, harar_address)


@pytest.mark.asyncio
async def test_failed_checkout_keeps_cart(
    carts: CartService,
    engine: WorkflowEngine,
    catalog: dict[str, Product],
    customer: Principal,
    other_seller: Principal,
    harar_address: DeliveryAddress,
) -> None:
    await carts.add(customer, "spice", 4)
    await engine.adjust_stock(other_seller, "spice", 1)

    with pytest.raises(InsufficientStock):
        await carts.checkout(customer, harar_address)

    view = await carts.view(customer)
    assert view.total_items == 4
    assert view.items[0].available is False
