"""Seed initial users and catalog products for the marketplace."""

import asyncio
from decimal import Decimal

from orderflow.models.order import City
from orderflow.models.product import Product
from orderflow.models.user import User, UserRole, VehicleType
from orderflow.state.manager import RedisStateManager
from orderflow.state.repositories import ProductRepository, UserRepository


async def seed_users(users: UserRepository) -> None:
    """Seed customers, sellers, delivery agents and an admin."""
    print("Seeding users...")

    people = [
        User(id="admin-1", name="Marketplace Admin", email="admin@example.com", role=UserRole.ADMIN),
        User(
            id="seller-1",
            name="Harar Coffee House",
            email="coffee@example.com",
            role=UserRole.SELLER,
            city=City.HARAR,
        ),
        User(
            id="seller-2",
            name="Dire Dawa Spices",
            email="spices@example.com",
            role=UserRole.SELLER,
            city=City.DIRE_DAWA,
        ),
        User(
            id="customer-1",
            name="Abebe Kebede",
            email="abebe@example.com",
            phone="+251911000001",
            role=UserRole.CUSTOMER,
            city=City.HARAR,
        ),
        User(
            id="customer-2",
            name="Hanna Girma",
            email="hanna@example.com",
            phone="+251911000002",
            role=UserRole.CUSTOMER,
            city=City.DIRE_DAWA,
        ),
        User(
            id="agent-1",
            name="Yonas Tesfaye",
            phone="+251911000101",
            role=UserRole.DELIVERY_AGENT,
            city=City.HARAR,
            is_available=True,
            vehicle_type=VehicleType.MOTORCYCLE,
        ),
        User(
            id="agent-2",
            name="Selam Bekele",
            phone="+251911000102",
            role=UserRole.DELIVERY_AGENT,
            city=City.DIRE_DAWA,
            is_available=True,
            vehicle_type=VehicleType.BICYCLE,
        ),
    ]

    for user in people:
        await users.put(user)
        print(f"  ✓ Added {user.name} ({user.role.value})")

    print("✓ Users seeded successfully\n")


async def seed_products(products: ProductRepository) -> None:
    """Seed catalog products with stock."""
    print("Seeding products...")

    catalog = [
        Product(
            id="coffee-harar-1kg",
            name="Harar Coffee Beans 1kg",
            price=Decimal("450"),
            seller_id="seller-1",
            category="coffee",
            stock=40,
            max_order_quantity=10,
        ),
        Product(
            id="coffee-harar-250g",
            name="Harar Coffee Beans 250g",
            price=Decimal("130"),
            seller_id="seller-1",
            category="coffee",
            stock=120,
        ),
        Product(
            id="jebena",
            name="Clay Jebena",
            price=Decimal("300"),
            seller_id="seller-1",
            category="homeware",
            stock=15,
            low_stock_threshold=5,
        ),
        Product(
            id="berbere-500g",
            name="Berbere 500g",
            price=Decimal("180"),
            seller_id="seller-2",
            category="spices",
            stock=60,
        ),
        Product(
            id="mitmita-250g",
            name="Mitmita 250g",
            price=Decimal("95"),
            seller_id="seller-2",
            category="spices",
            stock=8,
        ),
        Product(
            id="spice-box",
            name="Spice Gift Box",
            price=Decimal("650"),
            seller_id="seller-2",
            category="spices",
            stock=20,
            min_order_quantity=1,
            max_order_quantity=5,
        ),
    ]

    for product in catalog:
        await products.put(product)
        print(f"  ✓ Added {product.name} (stock: {product.stock})")

    print("✓ Products seeded successfully\n")


async def main() -> None:
    """Run all seed functions."""
    print("\n" + "=" * 50)
    print("  Seeding Marketplace Data")
    print("=" * 50 + "\n")

    state_manager = RedisStateManager()
    await state_manager.connect()

    try:
        await seed_users(UserRepository(state_manager))
        await seed_products(ProductRepository(state_manager))
    finally:
        await state_manager.disconnect()

    print("=" * 50)
    print("  ✓ All data seeded successfully!")
    print("=" * 50 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
