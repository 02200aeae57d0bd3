"""In-app notification channel adapter."""

import asyncio
from typing import Any

from courier.core.domain.base import utc_now
from courier.modules.notification.domain.enums import ChannelType
from courier.modules.notification.domain.interfaces.services import OutboundMessage
from courier.modules.notification.infrastructure.adapters.base import BaseChannelAdapter

# Constants
MAX_INBOX_SIZE = 100


class InAppChannelAdapter(BaseChannelAdapter):
    """In-app channel adapter backed by per-user in-memory inboxes.

    The newest message is first. Each inbox keeps at most ``max_inbox_size``
    entries.
    """

    channel_type = ChannelType.IN_APP

    def __init__(self, max_inbox_size: int = MAX_INBOX_SIZE):
        super().__init__(provider="internal")
        self.max_inbox_size = max_inbox_size
        self._inboxes: dict[str, list[dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    async def _deliver(self, message: OutboundMessage) -> str | None:
        entry = {
            "id": message.notification_id,
            "title": message.subject or "Notification",
            "body": message.body,
            "timestamp": utc_now().isoformat(),
            "metadata": dict(message.metadata),
            "read": False,
        }
        async with self._lock:
            inbox = self._inboxes.setdefault(message.user_id, [])
            inbox.insert(0, entry)
            del inbox[self.max_inbox_size :]
        return f"in_app_{message.notification_id}"

    async def mark_as_read(self, notification_id: str, user_id: str) -> bool:
        """Mark an inbox entry as read.

        Returns:
            True if the entry was found
        """
        async with self._lock:
            for entry in self._inboxes.get(user_id, []):
                if entry["id"] == notification_id:
                    entry["read"] = True
                    return True
        return False

    async def get_unread_count(self, user_id: str) -> int:
        async with self._lock:
            return sum(1 for entry in self._inboxes.get(user_id, []) if not entry["read"])

    async def get_recent_notifications(
        self, user_id: str, limit: int = 20, offset: int = 0
    ) -> list[dict[str, Any]]:
        async with self._lock:
            return [dict(entry) for entry in self._inboxes.get(user_id, [])[offset : offset + limit]]
