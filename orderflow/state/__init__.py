"""State management modules."""

from orderflow.state.manager import RedisStateManager, StateManager, get_state_manager
from orderflow.state.memory import MemoryStateManager
from orderflow.state.notifications import NotificationStore
from orderflow.state.repositories import (
    CartRepository,
    OrderRepository,
    ProductRepository,
    UserRepository,
)

__all__ = [
    "StateManager",
    "RedisStateManager",
    "MemoryStateManager",
    "get_state_manager",
    "NotificationStore",
    "OrderRepository",
    "ProductRepository",
    "UserRepository",
    "CartRepository",
]
