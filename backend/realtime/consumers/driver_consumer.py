"""Driver WebSocket consumer for presence, location updates and order events."""

import logging
from typing import Dict, Any, Optional

from channels.db import database_sync_to_async

from services.order_management import accept_order, reject_order
from services.driver_availability import (
    driver_connected,
    driver_disconnected,
    set_availability,
    update_location,
)
from .base import BaseConsumer
from ..bus import Topic

logger = logging.getLogger(__name__)


class DriverConsumer(BaseConsumer):
    """
    WebSocket consumer for drivers.

    Handles:
        - driver_join: binds this socket to a driver (live-connect)
        - driver_location_update: location pings
        - driver_availability_update: manual availability toggle
        - driver_accept_order / driver_reject_order: respond to an assignment
        - disconnect: live-disconnect of the bound driver
    """

    async def on_connect(self):
        self.driver_id: Optional[int] = None
        await self.join_topic(Topic.broadcast())

        await self.send_json({
            "type": "connection_established",
            "message": "Send driver_join to go online",
        })

    async def on_disconnect(self, close_code):
        """Release the live connection so the driver stops receiving orders."""
        if self.driver_id is None:
            return
        await database_sync_to_async(driver_disconnected)(self.channel_name)
        logger.info("Driver %s socket closed (%s)", self.driver_id, close_code)

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        """Handle driver-specific messages."""

        if msg_type == "driver_join":
            await self._handle_join(data)
        elif msg_type == "driver_location_update":
            await self._handle_location_update(data)
        elif msg_type == "driver_availability_update":
            await self._handle_availability_update(data)
        elif msg_type == "driver_accept_order":
            await self._handle_accept_order(data)
        elif msg_type == "driver_reject_order":
            await self._handle_reject_order(data)
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    # ---------------------- Message Handlers ----------------------

    async def _handle_join(self, data: Dict[str, Any]):
        try:
            driver_id = int(data.get("driver_id"))
        except (TypeError, ValueError):
            await self.send_error("driver_join requires a numeric driver_id")
            return

        if self.driver_id is not None and self.driver_id != driver_id:
            await self.send_error(f"This connection already belongs to driver {self.driver_id}")
            return

        driver = await database_sync_to_async(driver_connected)(driver_id, self.channel_name)
        self.driver_id = driver.pk
        await self.join_topic(Topic.driver(driver.pk))

        await self.send_success(
            "driver_joined",
            driver_id=driver.pk,
            is_available=driver.is_available,
        )

    async def _handle_location_update(self, data: Dict[str, Any]):
        if not await self._require_joined("driver_location_update"):
            return

        lat = data.get("latitude")
        lon = data.get("longitude")
        try:
            lat = float(lat)
            lon = float(lon)
        except (TypeError, ValueError):
            await self.send_error("driver_location_update requires latitude and longitude")
            return
        if not (-90 <= lat <= 90 and -180 <= lon <= 180):
            await self.send_error("Coordinates out of range")
            return

        await database_sync_to_async(update_location)(self.driver_id, round(lat, 6), round(lon, 6))
        logger.debug("Driver %s location update: lat=%s, lon=%s", self.driver_id, lat, lon)

    async def _handle_availability_update(self, data: Dict[str, Any]):
        if not await self._require_joined("driver_availability_update"):
            return

        is_available = data.get("is_available")
        if not isinstance(is_available, bool):
            await self.send_error("driver_availability_update requires a boolean is_available")
            return

        driver = await database_sync_to_async(set_availability)(self.driver_id, is_available)
        await self.send_success("availability_updated", is_available=driver.is_available)

    async def _handle_accept_order(self, data: Dict[str, Any]):
        if not await self._require_joined("driver_accept_order"):
            return
        order_id = await self._order_id(data, "driver_accept_order")
        if order_id is None:
            return

        result = await database_sync_to_async(accept_order)(order_id, self.driver_id)
        await self.send_success("order_accepted", order_id=order_id, status=result.order.status)

    async def _handle_reject_order(self, data: Dict[str, Any]):
        if not await self._require_joined("driver_reject_order"):
            return
        order_id = await self._order_id(data, "driver_reject_order")
        if order_id is None:
            return

        result = await database_sync_to_async(reject_order)(order_id, self.driver_id, data.get("reason"))
        await self.send_success("order_rejected", order_id=order_id, status=result.order.status)

    async def _order_id(self, data: Dict[str, Any], msg_type: str) -> Optional[int]:
        try:
            return int(data.get("order_id"))
        except (TypeError, ValueError):
            await self.send_error(f"{msg_type} requires a numeric order_id")
            return None

    async def _require_joined(self, msg_type: str) -> bool:
        if self.driver_id is None:
            await self.send_error(f"Send driver_join before {msg_type}")
            return False
        return True
