"""Reset all state in Redis (useful for testing)."""

import asyncio

from orderflow.state.manager import RedisStateManager


async def reset_all_state() -> None:
    """Clear all orders, products, users, carts and notifications."""
    print("\n⚠️  WARNING: This will delete ALL data from Redis!")
    response = input("Are you sure? (yes/no): ")

    if response.lower() != "yes":
        print("Cancelled.")
        return

    print("\nResetting state...")

    state_manager = RedisStateManager()
    await state_manager.connect()
    try:
        await state_manager.flush()
    finally:
        await state_manager.disconnect()

    print("✓ All state cleared from Redis\n")


if __name__ == "__main__":
    asyncio.run(reset_all_state())
