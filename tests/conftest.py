"""Pytest configuration and fixtures."""

from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from orderflow.api.routes import get_state
from orderflow.main import app
from orderflow.models.order import City, DeliveryAddress, Order, OrderStatus
from orderflow.models.product import Product
from orderflow.models.user import Principal, User, UserRole, VehicleType
from orderflow.state.memory import MemoryStateManager
from orderflow.state.notifications import NotificationStore
from orderflow.state.repositories import OrderRepository, ProductRepository, UserRepository
from orderflow.workflow.engine import WorkflowEngine, build_engine
from orderflow.workflow.inventory import LineRequest


@pytest_asyncio.fixture
async def state_manager() -> AsyncGenerator[MemoryStateManager, None]:
    """Create a fresh in-memory state manager."""
    manager = MemoryStateManager()
    await manager.connect()
    yield manager
    await manager.disconnect()


@pytest.fixture
def products(state_manager: MemoryStateManager) -> ProductRepository:
    return ProductRepository(state_manager)


@pytest.fixture
def users(state_manager: MemoryStateManager) -> UserRepository:
    return UserRepository(state_manager)


@pytest.fixture
def orders(state_manager: MemoryStateManager) -> OrderRepository:
    return OrderRepository(state_manager)


@pytest.fixture
def inbox(state_manager: MemoryStateManager) -> NotificationStore:
    return NotificationStore(state_manager)


@pytest.fixture
def engine(state_manager: MemoryStateManager) -> WorkflowEngine:
    return build_engine(state_manager)


@pytest_asyncio.fixture
async def test_client(
    state_manager: MemoryStateManager,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client bound to the test state manager."""
    app.dependency_overrides[get_state] = lambda: state_manager
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# Sample data fixtures


@pytest_asyncio.fixture
async def catalog(products: ProductRepository) -> dict[str, Product]:
    """Seed a small catalog across two sellers."""
    items = [
        Product(
            id="coffee",
            name="Harar Coffee",
            price=Decimal("100"),
            seller_id="seller-1",
            stock=10,
        ),
        Product(
            id="spice",
            name="Berbere",
            price=Decimal("50"),
            seller_id="seller-2",
            stock=5,
        ),
        Product(
            id="gift-box",
            name="Gift Box",
            price=Decimal("650"),
            seller_id="seller-2",
            stock=20,
            min_order_quantity=2,
            max_order_quantity=5,
        ),
        Product(
            id="retired",
            name="Retired Blend",
            price=Decimal("80"),
            seller_id="seller-1",
            stock=30,
            is_active=False,
        ),
    ]
    for product in items:
        await products.put(product)
    return {product.id: product for product in items}


@pytest_asyncio.fixture
async def people(users: UserRepository) -> dict[str, User]:
    """Seed one user per role plus a second customer and agent."""
    directory = [
        User(id="customer-1", name="Abebe", role=UserRole.CUSTOMER, city=City.HARAR),
        User(id="customer-2", name="Hanna", role=UserRole.CUSTOMER, city=City.HARAR),
        User(id="seller-1", name="Coffee House", role=UserRole.SELLER),
        User(id="seller-2", name="Spice Shop", role=UserRole.SELLER),
        User(id="admin-1", name="Admin", email="admin@example.com", role=UserRole.ADMIN),
        User(
            id="agent-1",
            name="Yonas",
            phone="+251911000101",
            role=UserRole.DELIVERY_AGENT,
            city=City.HARAR,
            vehicle_type=VehicleType.MOTORCYCLE,
        ),
        User(
            id="agent-2",
            name="Selam",
            role=UserRole.DELIVERY_AGENT,
            city=City.HARAR,
        ),
    ]
    for user in directory:
        await users.put(user)
    return {user.id: user for user in directory}


@pytest.fixture
def customer() -> Principal:
    return Principal(user_id="customer-1", role=UserRole.CUSTOMER)


@pytest.fixture
def other_customer() -> Principal:
    return Principal(user_id="customer-2", role=UserRole.CUSTOMER)


@pytest.fixture
def seller() -> Principal:
    return Principal(user_id="seller-1", role=UserRole.SELLER)


@pytest.fixture
def other_seller() -> Principal:
    return Principal(user_id="seller-2", role=UserRole.SELLER)


@pytest.fixture
def admin() -> Principal:
    return Principal(user_id="admin-1", role=UserRole.ADMIN)


@pytest.fixture
def agent() -> Principal:
    return Principal(user_id="agent-1", role=UserRole.DELIVERY_AGENT)


@pytest.fixture
def other_agent() -> Principal:
    return Principal(user_id="agent-2", role=UserRole.DELIVERY_AGENT)


@pytest.fixture
def harar_address() -> DeliveryAddress:
    return DeliveryAddress(street="Jugol Gate 5", city=City.HARAR)


@pytest_asyncio.fixture
async def pending_order(
    engine: WorkflowEngine,
    catalog: dict[str, Product],
    people: dict[str, User],
    customer: Principal,
    harar_address: DeliveryAddress,
) -> Order:
    """Two coffees and one spice jar, delivered in Harar."""
    result = await engine.create_order(
        customer,
        [
            LineRequest(product_id="coffee", quantity=2),
            LineRequest(product_id="spice", quantity=1),
        ],
        harar_address,
    )
    return result.order


@pytest_asyncio.fixture
async def ready_order(
    engine: WorkflowEngine,
    pending_order: Order,
    admin: Principal,
) -> Order:
    """The pending order moved along to ready_for_pickup."""
    order_id = str(pending_order.id)
    for status in (OrderStatus.ACCEPTED, OrderStatus.PREPARING, OrderStatus.READY_FOR_PICKUP):
        result = await engine.update_status(admin, order_id, status)
    return result.order
