"""Booking WebSocket consumer for customers following their orders."""

import logging
from typing import Dict, Any, Set

from channels.db import database_sync_to_async

from orders.models import Order
from .base import BaseConsumer
from ..bus import Topic

logger = logging.getLogger(__name__)


class BookingConsumer(BaseConsumer):
    """
    WebSocket consumer for booking rooms.

    Clients join booking_<booking_id> to receive that order's assignment,
    status and cancellation events.
    """

    async def on_connect(self):
        self.bookings: Set[str] = set()
        await self.join_topic(Topic.broadcast())

        await self.send_json({
            "type": "connection_established",
            "message": "Send booking_join to follow a booking",
        })

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        if msg_type == "booking_join":
            await self._handle_join(data)
        elif msg_type == "booking_leave":
            await self._handle_leave(data)
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    async def _handle_join(self, data: Dict[str, Any]):
        booking_id = data.get("booking_id")
        if not booking_id or not isinstance(booking_id, str):
            await self.send_error("booking_join requires booking_id")
            return

        if not await self._booking_exists(booking_id):
            await self.send_error("Booking not found", code="not_found")
            return

        await self.join_topic(Topic.booking(booking_id))
        self.bookings.add(booking_id)
        await self.send_success("booking_joined", booking_id=booking_id)

    async def _handle_leave(self, data: Dict[str, Any]):
        booking_id = data.get("booking_id")
        if booking_id not in self.bookings:
            await self.send_error("Not following this booking")
            return

        await self.leave_topic(Topic.booking(booking_id))
        self.bookings.discard(booking_id)
        await self.send_success("booking_left", booking_id=booking_id)

    @database_sync_to_async
    def _booking_exists(self, booking_id: str) -> bool:
        return Order.objects.filter(booking_id=booking_id).exists()
