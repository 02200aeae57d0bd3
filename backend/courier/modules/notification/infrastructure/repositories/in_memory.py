"""In-memory repository implementations.

Entities are stored as serialized snapshots so callers never share mutable
state with the store. Used for tests and local wiring.
"""

import asyncio
import copy
from typing import Any

from courier.core.logging import get_logger
from courier.modules.notification.domain.aggregates import NotificationTemplate
from courier.modules.notification.domain.entities import Notification, Subscription
from courier.modules.notification.domain.enums import NotificationType
from courier.modules.notification.domain.interfaces.repositories import (
    INotificationRepository,
    INotificationTemplateRepository,
    ISubscriptionRepository,
)

logger = get_logger(__name__)


class _SnapshotStore:
    """Lock-guarded map of keys to serialized snapshots."""

    def __init__(self):
        self._rows: dict[Any, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: Any) -> dict[str, Any] | None:
        async with self._lock:
            row = self._rows.get(key)
            return copy.deepcopy(row) if row is not None else None

    async def put(self, key: Any, row: dict[str, Any]) -> None:
        async with self._lock:
            self._rows[key] = copy.deepcopy(row)

    def __len__(self) -> int:
        return len(self._rows)


class InMemoryNotificationRepository(INotificationRepository):
    """Notification repository held in process memory."""

    def __init__(self):
        self._store = _SnapshotStore()

    async def find_by_id(self, notification_id: str) -> Notification | None:
        row = await self._store.get(notification_id)
        return Notification.from_persistence(row) if row else None

    async def save(self, notification: Notification) -> Notification:
        await self._store.put(notification.id, notification.to_dict())
        notification.clear_events()
        logger.debug(
            "Notification saved",
            notification_id=notification.id,
            status=notification.status.value,
        )
        return notification

    def count(self) -> int:
        return len(self._store)


class InMemoryNotificationTemplateRepository(INotificationTemplateRepository):
    """Template repository held in process memory."""

    def __init__(self):
        self._store = _SnapshotStore()

    async def find_by_id(self, template_id: str) -> NotificationTemplate | None:
        row = await self._store.get(template_id)
        return NotificationTemplate.from_persistence(row) if row else None

    async def save(self, template: NotificationTemplate) -> NotificationTemplate:
        await self._store.put(template.id, template.to_dict())
        template.clear_events()
        logger.debug(
            "Template saved",
            template_id=template.id,
            version=template.current_version,
        )
        return template


class InMemorySubscriptionRepository(ISubscriptionRepository):
    """Subscription repository keyed by user and notification type."""

    def __init__(self):
        self._store = _SnapshotStore()

    async def find_by_user_and_type(
        self, user_id: str, notification_type: NotificationType
    ) -> Subscription | None:
        row = await self._store.get((str(user_id), notification_type.value))
        return Subscription.from_persistence(row) if row else None

    async def save(self, subscription: Subscription) -> Subscription:
        key = (subscription.user_id, subscription.notification_type.value)
        await self._store.put(key, subscription.to_dict())
        logger.debug("Subscription saved", subscription_id=subscription.id)
        return subscription
