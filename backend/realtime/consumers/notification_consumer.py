"""WebSocket consumer that delivers pushed notifications to any signed-in user."""

import logging
from typing import Any, Dict

from channels.db import database_sync_to_async

from realtime.models import Notification
from .base import BaseConsumer

logger = logging.getLogger(__name__)


class NotificationConsumer(BaseConsumer):
    """
    Pushes stored notifications to their recipient and lets the client
    mark them read.

    Client messages:
        {"type": "ping"}
        {"type": "mark_read", "notification_id": 12}
    """

    async def on_connect(self):
        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "role": self.role,
            "unread_count": await self._unread_count(),
        })

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        if msg_type == "mark_read":
            notification_id = data.get("notification_id")
            if not notification_id:
                await self.send_error("notification_id is required")
                return
            updated = await self._mark_read(notification_id)
            await self.send_json({
                "type": "notification_read",
                "notification_id": notification_id,
                "updated": bool(updated),
            })
        else:
            await super().handle_message(msg_type, data)

    # ---------------------- Server-side events ----------------------

    async def notification(self, event):
        """Sent by realtime.notifications helpers."""
        await self.send_json({
            "type": "notification",
            "id": event.get("notification_id"),
            "eventType": event.get("event_type"),
            "title": event.get("title"),
            "message": event.get("message"),
            "bookingId": event.get("booking_id"),
            "booking": event.get("booking"),
            "offerId": event.get("offer_id"),
            "expiresAt": event.get("expires_at"),
        })

    # ---------------------- DB helpers ----------------------

    @database_sync_to_async
    def _unread_count(self) -> int:
        return Notification.objects.filter(recipient_id=self.user_id, is_read=False).count()

    @database_sync_to_async
    def _mark_read(self, notification_id) -> int:
        return Notification.objects.filter(id=notification_id, recipient_id=self.user_id).update(is_read=True)
