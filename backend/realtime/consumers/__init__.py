"""Realtime consumers for WebSocket communication."""

from .base import BaseConsumer
from .admin_consumer import AdminConsumer
from .booking_consumer import BookingConsumer
from .driver_consumer import DriverConsumer

__all__ = [
    "BaseConsumer",
    "AdminConsumer",
    "BookingConsumer",
    "DriverConsumer",
]
