"""
Topic-addressed event fan-out over the Channels layer.

Topics are (kind, key) pairs resolved to channel-layer group names:

    admins              every connected admin dashboard
    broadcast           every connected client
    driver_<id>         one driver's live connection
    booking_<booking>   everyone following one booking

Publishing is fire-and-forget. A delivery failure is logged and reported as
False, never raised into the command that triggered it. Sending to a group
with no members (e.g. an offline driver) is a silent no-op in Channels.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

logger = logging.getLogger(__name__)

ADMINS = "admins"
BROADCAST = "broadcast"
DRIVER = "driver"
BOOKING = "booking"

# Consumers handle this through their dispatch_event() method
EVENT_MESSAGE_TYPE = "dispatch.event"


@dataclass(frozen=True)
class Topic:
    kind: str
    key: Optional[str] = None

    @classmethod
    def admins(cls) -> "Topic":
        return cls(ADMINS)

    @classmethod
    def broadcast(cls) -> "Topic":
        return cls(BROADCAST)

    @classmethod
    def driver(cls, driver_id) -> "Topic":
        return cls(DRIVER, str(driver_id))

    @classmethod
    def booking(cls, booking_id) -> "Topic":
        return cls(BOOKING, str(booking_id))

    @property
    def group_name(self) -> str:
        if self.key is None:
            return self.kind
        # Channels group names only allow ASCII alphanumerics, hyphens,
        # underscores and periods
        safe_key = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in self.key)
        return f"{self.kind}_{safe_key}"


class NotificationBus:
    """Publishes dispatch events to topics."""

    def __init__(self, channel_layer=None):
        self._channel_layer = channel_layer

    @property
    def channel_layer(self):
        return self._channel_layer or get_channel_layer()

    @staticmethod
    def build_message(event: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "type": EVENT_MESSAGE_TYPE,
            "event": event,
            "payload": payload,
        }

    def publish(self, topic: Topic, event: str, payload: Dict[str, Any]) -> bool:
        """
        Send one event to one topic.

        Returns:
            True if the channel layer accepted the message, False otherwise
        """
        try:
            channel_layer = self.channel_layer
            if channel_layer is None:
                logger.warning("No channel layer configured, dropping %s for %s", event, topic.group_name)
                return False
            async_to_sync(channel_layer.group_send)(topic.group_name, self.build_message(event, payload))
        except Exception:
            logger.exception("Failed to publish %s to %s", event, topic.group_name)
            return False
        logger.debug("WS -> %s: %s", topic.group_name, event)
        return True

    async def apublish(self, topic: Topic, event: str, payload: Dict[str, Any]) -> bool:
        """Async variant of publish() for use inside consumers."""
        try:
            channel_layer = self.channel_layer
            if channel_layer is None:
                logger.warning("No channel layer configured, dropping %s for %s", event, topic.group_name)
                return False
            await channel_layer.group_send(topic.group_name, self.build_message(event, payload))
        except Exception:
            logger.exception("Failed to publish %s to %s", event, topic.group_name)
            return False
        return True

    def publish_many(self, topics: Iterable[Topic], event: str, payload: Dict[str, Any]) -> int:
        """Send one event to several topics. Returns how many sends succeeded."""
        delivered = 0
        for topic in topics:
            if self.publish(topic, event, payload):
                delivered += 1
        return delivered

    def publish_on_commit(self, topics: Iterable[Topic], event: str, payload: Dict[str, Any]) -> None:
        """
        Publish once the surrounding transaction commits.

        Outside a transaction this publishes immediately. If the transaction
        rolls back, nothing is sent.
        """
        topics = list(topics)
        transaction.on_commit(lambda: self.publish_many(topics, event, payload))


_bus: Optional[NotificationBus] = None


def get_notification_bus() -> NotificationBus:
    global _bus
    if _bus is None:
        _bus = NotificationBus()
    return _bus
