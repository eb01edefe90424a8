"""Versioned document repositories over the state store."""

from typing import Any, Callable, Generic, TypeVar

from pydantic import BaseModel

from orderflow.config import get_settings
from orderflow.errors import (
    ConcurrentUpdateError,
    InternalError,
    OrderNotFoundError,
    UserNotFoundError,
    VersionConflict,
)
from orderflow.models.cart import Cart
from orderflow.models.order import Order, OrderStatus, generate_order_number, utcnow
from orderflow.models.product import Product
from orderflow.models.user import User, UserRole
from orderflow.state.manager import StateManager
from orderflow.utils.logging import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class VersionedRepository(Generic[ModelT]):
    """Stores pydantic documents that carry a ``version`` field.

    ``mutate`` is the only way to change a stored document: it loads the
    current copy, applies the mutation, and writes it back with a conditional
    write. When another writer got there first, it reloads and applies the
    mutation again, so business checks inside the mutation always run
    against fresh state.
    """

    prefix: str
    model: type[ModelT]

    def __init__(self, state: StateManager):
        self.state = state
        self.settings = get_settings()

    def _key(self, entity_id: str) -> str:
        return f"{self.prefix}:{entity_id}"

    async def get(self, entity_id: str) -> ModelT | None:
        data = await self.state.get(self._key(entity_id))
        if not data:
            return None
        return self.model.model_validate(data)

    async def _write(self, entity: ModelT, expected_version: int) -> bool:
        self._before_write(entity)
        entity.version = expected_version + 1
        written = await self.state.compare_and_set(
            self._key(self._id_of(entity)),
            expected_version,
            entity.model_dump(mode="json"),
        )
        if not written:
            entity.version = expected_version
        return written

    def _before_write(self, entity: ModelT) -> None:
        pass

    def _id_of(self, entity: ModelT) -> str:
        return str(entity.id)

    async def put(self, entity: ModelT) -> ModelT:
        """Create or overwrite a document, retrying against the stored version."""
        for _ in range(self.settings.max_retries):
            current = await self.get(self._id_of(entity))
            expected = current.version if current else 0
            if await self._write(entity, expected):
                return entity
        raise ConcurrentUpdateError(f"Could not store {self.prefix} {self._id_of(entity)}")

    async def mutate(
        self,
        entity_id: str,
        mutation: Callable[[ModelT], Any],
        expected_version: int | None = None,
        until_written: bool = False,
    ) -> ModelT | None:
        """Apply ``mutation`` atomically; returns None if the document is missing.

        The reload loop gives up after ``max_retries`` lost races unless
        ``until_written`` is set, in which case it ends only when the write
        commits or the mutation raises. Counter updates use it: every pass
        re-runs the mutation's checks on the fresh document, and every round
        of a race has a winner.
        """
        attempt = 0
        while until_written or attempt < self.settings.max_retries:
            attempt += 1
            entity = await self.get(entity_id)
            if entity is None:
                return None
            if expected_version is not None and entity.version != expected_version:
                raise VersionConflict(entity_id, expected_version, entity.version)

            previous_version = entity.version
            mutation(entity)
            if await self._write(entity, previous_version):
                return entity

            logger.debug(
                "version_conflict",
                collection=self.prefix,
                entity_id=entity_id,
                attempt=attempt,
            )

        raise ConcurrentUpdateError(
            f"Too many concurrent updates to {self.prefix} {entity_id}",
            entity_id=entity_id,
        )


class ProductRepository(VersionedRepository[Product]):
    """Catalog lookup plus the stock counters the inventory ledger owns."""

    prefix = "product"
    model = Product

    def _before_write(self, entity: Product) -> None:
        entity.last_updated = utcnow()

    async def put(self, entity: Product) -> Product:
        product = await super().put(entity)
        await self.state.zadd("products:all", {product.id: 0})
        return product

    async def update_counters(
        self, product_id: str, mutation: Callable[[Product], Any]
    ) -> Product | None:
        """Change stock or sales counters; contention never fails the update."""
        return await self.mutate(product_id, mutation, until_written=True)

    async def list_all(self) -> list[Product]:
        ids = await self.state.zrange("products:all")
        products = [await self.get(product_id) for product_id in ids]
        return [product for product in products if product is not None]


class UserRepository(VersionedRepository[User]):
    """Identity directory: users, roles and agent earnings."""

    prefix = "user"
    model = User

    async def require(self, user_id: str) -> User:
        user = await self.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def put(self, entity: User) -> User:
        user = await super().put(entity)
        for role in UserRole:
            if role != user.role:
                await self.state.zrem(f"users:role:{role.value}", user.id)
        await self.state.zadd(f"users:role:{user.role.value}", {user.id: 0})
        return user

    async def list_by_role(self, role: UserRole | str) -> list[str]:
        """Return the ids of every user holding ``role``."""
        role_value = role.value if isinstance(role, UserRole) else role
        return await self.state.zrange(f"users:role:{role_value}")

    async def update_earnings(
        self, user_id: str, mutation: Callable[[User], Any]
    ) -> User | None:
        """Change an agent's earnings counters; contention never fails the update."""
        return await self.mutate(user_id, mutation, until_written=True)


class CartRepository(VersionedRepository[Cart]):
    """Per-customer carts, one document per user."""

    prefix = "cart"
    model = Cart

    def _id_of(self, entity: Cart) -> str:
        return entity.user_id

    async def get_or_empty(self, user_id: str) -> Cart:
        return await self.get(user_id) or Cart(user_id=user_id)

    async def mutate_or_create(
        self, user_id: str, mutation: Callable[[Cart], Any]
    ) -> Cart:
        """Like ``mutate`` but starts from an empty cart when none exists."""
        for _ in range(self.settings.max_retries):
            cart = await self.get_or_empty(user_id)
            previous_version = cart.version
            mutation(cart)
            if await self._write(cart, previous_version):
                return cart
        raise ConcurrentUpdateError(f"Too many concurrent updates to cart {user_id}")


class OrderRepository(VersionedRepository[Order]):
    """Order documents plus their secondary indexes."""

    prefix = "order"
    model = Order

    def _number_key(self, order_number: str) -> str:
        return f"order_number:{order_number}"

    def _before_write(self, entity: Order) -> None:
        entity.recalculate()
        entity.updated_at = utcnow()

    async def get_by_number(self, order_number: str) -> Order | None:
        order_id = await self.state.get(self._number_key(order_number))
        if not order_id:
            return None
        return await self.get(str(order_id))

    async def find(self, order_ref: str) -> Order | None:
        """Look an order up by internal id or by order number."""
        order = await self.get(order_ref)
        if order is None:
            order = await self.get_by_number(order_ref)
        return order

    async def require(self, order_ref: str) -> Order:
        order = await self.find(order_ref)
        if order is None:
            raise OrderNotFoundError(order_ref)
        return order

    async def create(self, order: Order) -> Order:
        """Persist a new order under a unique order number."""
        for _ in range(self.settings.order_number_attempts):
            if await self.state.set_if_absent(self._number_key(order.order_number), str(order.id)):
                break
            logger.warning("order_number_collision", order_number=order.order_number)
            order.order_number = generate_order_number()
        else:
            raise InternalError("Could not allocate a unique order number")

        if not await self._write(order, 0):
            raise InternalError(f"Order {order.id} already exists")

        score = order.created_at.timestamp()
        order_id = str(order.id)
        await self.state.zadd("orders:all", {order_id: score})
        await self.state.zadd(f"orders:customer:{order.customer_id}", {order_id: score})
        for seller_id in order.seller_ids:
            await self.state.zadd(f"orders:seller:{seller_id}", {order_id: score})
        return order

    async def mutate_order(
        self,
        order_ref: str,
        mutation: Callable[[Order], Any],
        expected_version: int | None = None,
    ) -> Order:
        """Apply a mutation under optimistic concurrency.

        The tracking list must only grow: a mutation that rewrites or drops
        earlier events is rejected before anything is written.
        """
        order = await self.require(order_ref)

        def guarded(entity: Order) -> None:
            history = list(entity.tracking_updates)
            mutation(entity)
            if entity.tracking_updates[: len(history)] != history:
                raise InternalError(f"Tracking history of order {entity.order_number} was rewritten")

        updated = await self.mutate(str(order.id), guarded, expected_version=expected_version)
        if updated is None:
            raise OrderNotFoundError(order_ref)
        return updated

    async def index_agent(self, order: Order) -> None:
        if order.delivery_agent_id:
            await self.state.zadd(
                f"orders:agent:{order.delivery_agent_id}",
                {str(order.id): order.created_at.timestamp()},
            )

    async def load_index(self, index: str) -> list[Order]:
        """Every order in an index, newest first."""
        ids = await self.state.zrange(index, desc=True)
        orders = []
        for order_id in ids:
            order = await self.get(order_id)
            if order is not None:
                orders.append(order)
        return orders

    async def list_index(
        self,
        index: str,
        page: int = 1,
        limit: int = 10,
        status: OrderStatus | None = None,
        predicate: Callable[[Order], bool] | None = None,
    ) -> tuple[list[Order], int]:
        """Page through an index newest first, optionally filtered."""
        orders = [
            order
            for order in await self.load_index(index)
            if (status is None or order.order_status == status)
            and (predicate is None or predicate(order))
        ]

        start = (page - 1) * limit
        return orders[start:start + limit], len(orders)

    async def list_for_customer(self, customer_id: str, **kwargs: Any) -> tuple[list[Order], int]:
        return await self.list_index(f"orders:customer:{customer_id}", **kwargs)

    async def list_for_seller(self, seller_id: str, **kwargs: Any) -> tuple[list[Order], int]:
        return await self.list_index(f"orders:seller:{seller_id}", **kwargs)

    async def list_for_agent(self, agent_id: str, **kwargs: Any) -> tuple[list[Order], int]:
        return await self.list_index(f"orders:agent:{agent_id}", **kwargs)

    async def list_all(self, **kwargs: Any) -> tuple[list[Order], int]:
        return await self.list_index("orders:all", **kwargs)
