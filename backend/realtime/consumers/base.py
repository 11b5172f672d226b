"""Base WebSocket consumer with shared functionality for all consumers."""

import logging
from collections import deque
from typing import Dict, Any, Set

from channels.generic.websocket import AsyncJsonWebsocketConsumer

from services.order_management.exceptions import DispatchError
from ..bus import Topic

logger = logging.getLogger(__name__)

RECENT_EVENT_IDS = 200


class BaseConsumer(AsyncJsonWebsocketConsumer):
    """
    Base consumer with shared connection management and helper methods.

    Subclasses should override:
        - on_connect(): join groups / send the initial state
        - handle_message(msg_type, data): handle incoming messages
    """
    # Reject anonymous sockets before accepting
    require_authentication = False

    async def connect(self):
        self.user = self.scope.get("user")

        if self.require_authentication and not self.is_authorized(self.user):
            await self.close()
            return

        self.user_id = getattr(self.user, "id", None)

        # Track joined groups for cleanup
        self.joined_groups: Set[str] = set()
        # Recently relayed event ids; one event may arrive via several groups
        self.recent_events = deque(maxlen=RECENT_EVENT_IDS)

        await self.accept()
        await self.on_connect()

    def is_authorized(self, user) -> bool:
        return user is not None and not user.is_anonymous

    async def on_connect(self):
        """Override in subclass for custom connect logic."""
        await self.send_json({
            "type": "connection_established",
        })

    async def disconnect(self, close_code):
        """Leave all joined groups on disconnect."""
        try:
            await self.on_disconnect(close_code)
        except Exception:
            logger.exception("Error during disconnect for channel %s", self.channel_name)
        for group in list(getattr(self, "joined_groups", ())):
            await self._leave_group(group)

    async def on_disconnect(self, close_code):
        """Override in subclass for custom disconnect logic."""
        pass

    async def receive_json(self, data: Dict[str, Any]):
        """Route incoming messages to appropriate handlers."""
        msg_type = data.get("type") if isinstance(data, dict) else None
        if not msg_type:
            await self.send_error("Message type is required")
            return

        try:
            await self.handle_message(msg_type, data)
        except DispatchError as e:
            await self.send_error(e.message, code=e.error_code)
        except Exception:
            logger.exception("Error handling message type %s", msg_type)
            await self.send_error(f"Error processing {msg_type}")

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        """Override in subclass to handle specific message types."""
        await self.send_error(f"Unknown message type: {msg_type}")

    # ---------------------- Group Management Helpers ----------------------

    async def _join_group(self, group_name: str):
        """Join a channel group and track it."""
        await self.channel_layer.group_add(group_name, self.channel_name)
        self.joined_groups.add(group_name)

    async def _leave_group(self, group_name: str):
        """Leave a channel group and untrack it."""
        await self.channel_layer.group_discard(group_name, self.channel_name)
        self.joined_groups.discard(group_name)

    async def join_topic(self, topic: Topic):
        await self._join_group(topic.group_name)

    async def leave_topic(self, topic: Topic):
        await self._leave_group(topic.group_name)

    # ---------------------- Response Helpers ----------------------

    async def send_error(self, message: str, code: str = None):
        """Send an error message to the client."""
        payload = {
            "type": "error",
            "message": message,
        }
        if code:
            payload["error"] = code
        await self.send_json(payload)

    async def send_success(self, event_type: str, **kwargs):
        """Send a success response to the client."""
        await self.send_json({
            "type": event_type,
            **kwargs,
        })

    # ---------------------- Bus Event Handler ----------------------

    async def dispatch_event(self, event):
        """Relay a NotificationBus event (type "dispatch.event") to the client."""
        payload = event.get("payload", {})
        event_id = payload.get("event_id")
        if event_id:
            if event_id in self.recent_events:
                return
            self.recent_events.append(event_id)

        await self.send_json({
            "type": event["event"],
            **payload,
        })
