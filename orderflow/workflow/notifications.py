"""Notification gateway: best-effort fan-out of workflow events."""

import json
from typing import Iterable

from orderflow.models.notification import Notification, NotificationType
from orderflow.state.manager import StateManager
from orderflow.state.notifications import NotificationStore
from orderflow.workflow.base import WorkflowComponent


class NotificationGateway(WorkflowComponent):
    """Stores notifications in each user's inbox and publishes them.

    Delivery is fire-and-forget: a failure is logged and never reaches the
    workflow that triggered it.
    """

    def __init__(self, store: NotificationStore, state: StateManager):
        super().__init__("notification_gateway")
        self.store = store
        self.state = state

    def _channel(self, user_id: str) -> str:
        return f"notifications:{user_id}"

    async def notify(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        order_number: str | None = None,
    ) -> Notification | None:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            order_number=order_number,
        )
        try:
            await self.store.add(notification)
            await self.state.publish(
                self._channel(user_id),
                json.dumps(notification.model_dump(mode="json")),
            )
        except Exception as e:
            self.logger.logger.warning(
                "notification_failed",
                user_id=user_id,
                type=type.value,
                order_number=order_number,
                error=str(e),
            )
            return None

        self.logger.logger.debug(
            "notification_sent",
            user_id=user_id,
            type=type.value,
            order_number=order_number,
        )
        return notification

    async def notify_many(
        self,
        user_ids: Iterable[str],
        type: NotificationType,
        title: str,
        message: str,
        order_number: str | None = None,
    ) -> int:
        """Notify each user once; returns how many notifications went out."""
        sent = 0
        for user_id in dict.fromkeys(user_ids):
            if await self.notify(user_id, type, title, message, order_number):
                sent += 1
        return sent
