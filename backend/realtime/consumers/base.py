"""Authenticated WebSocket consumer that tracks the groups it joins."""

import logging
from typing import Any, Dict, List, Set

from channels.generic.websocket import AsyncJsonWebsocketConsumer

from realtime.notifications import ADMIN_GROUP, user_group

logger = logging.getLogger(__name__)

# Close code sent when the handshake carries no valid access token
CLOSE_UNAUTHENTICATED = 4001


class BaseConsumer(AsyncJsonWebsocketConsumer):
    """
    Connection handling shared by the RepairHub sockets.

    Every connection joins its owner's personal group; platform admins also
    join the admin group. Subclasses may extend:
        - get_groups(): groups to join after the personal one
        - on_connect(): greet the client
        - handle_message(msg_type, data): anything besides "ping"
    """

    async def connect(self):
        self.user = self.scope["user"]

        if self.user.is_anonymous:
            await self.close(code=CLOSE_UNAUTHENTICATED)
            return

        self.user_id = self.user.id
        self.role = getattr(self.user, "role", None)
        self.joined_groups: Set[str] = set()

        for group in [user_group(self.user_id)] + self.get_groups():
            await self._join_group(group)

        await self.accept()
        logger.debug("Socket open for user %s (%s), groups=%s", self.user_id, self.role, sorted(self.joined_groups))
        await self.on_connect()

    def get_groups(self) -> List[str]:
        if self.role == "admin" or getattr(self.user, "is_staff", False):
            return [ADMIN_GROUP]
        return []

    async def on_connect(self):
        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "role": self.role,
        })

    async def disconnect(self, close_code):
        for group in list(getattr(self, "joined_groups", ())):
            try:
                await self._leave_group(group)
            except Exception:
                logger.exception("Could not leave %s for user %s", group, getattr(self, "user_id", "unknown"))

    async def receive_json(self, data: Dict[str, Any]):
        msg_type = data.get("type") if isinstance(data, dict) else None
        if not msg_type:
            await self.send_error("Message type is required")
            return

        if msg_type == "ping":
            await self.send_json({"type": "pong"})
            return

        try:
            await self.handle_message(msg_type, data)
        except Exception:
            logger.exception("Error handling %s from user %s", msg_type, self.user_id)
            await self.send_error(f"Error processing {msg_type}")

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        await self.send_error(f"Unknown message type: {msg_type}")

    async def _join_group(self, group_name: str):
        await self.channel_layer.group_add(group_name, self.channel_name)
        self.joined_groups.add(group_name)

    async def _leave_group(self, group_name: str):
        await self.channel_layer.group_discard(group_name, self.channel_name)
        self.joined_groups.discard(group_name)

    async def send_error(self, message: str):
        await self.send_json({
            "type": "error",
            "message": message,
        })
