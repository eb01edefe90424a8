"""Per-user notification inbox kept in the state store."""

from uuid import UUID

from orderflow.config import get_settings
from orderflow.models.notification import Notification
from orderflow.models.order import utcnow
from orderflow.state.manager import StateManager


class NotificationStore:
    """Inbox per user: a hash of notifications plus a time-ordered index."""

    def __init__(self, state: StateManager, limit: int | None = None):
        self.state = state
        self.limit = limit or get_settings().notification_history_limit

    def _items_key(self, user_id: str) -> str:
        return f"notifications:{user_id}"

    def _index_key(self, user_id: str) -> str:
        return f"notifications:{user_id}:index"

    async def add(self, notification: Notification) -> Notification:
        """Store a notification and drop the oldest beyond the limit."""
        user_id = notification.user_id
        notification_id = str(notification.id)
        await self.state.hset(
            self._items_key(user_id), notification_id, notification.model_dump(mode="json")
        )
        await self.state.zadd(
            self._index_key(user_id), {notification_id: notification.created_at.timestamp()}
        )

        overflow = await self.state.zrange(self._index_key(user_id), self.limit, -1, desc=True)
        if overflow:
            await self.state.zrem(self._index_key(user_id), *overflow)
            await self.state.hdel(self._items_key(user_id), *overflow)
        return notification

    async def list(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        unread_only: bool = False,
    ) -> tuple[list[Notification], bool, int]:
        """Return (page of notifications, has_more, unread_count), newest first."""
        ids = await self.state.zrange(self._index_key(user_id), desc=True)
        stored = await self.state.hgetall(self._items_key(user_id))
        notifications = [
            Notification.model_validate(stored[notification_id])
            for notification_id in ids
            if notification_id in stored
        ]
        unread_count = sum(1 for n in notifications if not n.is_read)
        if unread_only:
            notifications = [n for n in notifications if not n.is_read]

        start = (page - 1) * limit
        end = start + limit
        return notifications[start:end], end < len(notifications), unread_count

    async def mark_read(self, user_id: str, notification_id: UUID | str) -> bool:
        data = await self.state.hget(self._items_key(user_id), str(notification_id))
        if not data:
            return False
        notification = Notification.model_validate(data)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            await self.state.hset(
                self._items_key(user_id), str(notification_id), notification.model_dump(mode="json")
            )
        return True

    async def mark_all_read(self, user_id: str) -> int:
        stored = await self.state.hgetall(self._items_key(user_id))
        marked = 0
        for notification_id, data in stored.items():
            notification = Notification.model_validate(data)
            if notification.is_read:
                continue
            notification.is_read = True
            notification.read_at = utcnow()
            await self.state.hset(
                self._items_key(user_id), notification_id, notification.model_dump(mode="json")
            )
            marked += 1
        return marked

    async def delete(self, user_id: str, notification_id: UUID | str) -> bool:
        notification_id = str(notification_id)
        if await self.state.hget(self._items_key(user_id), notification_id) is None:
            return False
        await self.state.hdel(self._items_key(user_id), notification_id)
        await self.state.zrem(self._index_key(user_id), notification_id)
        return True
