"""
Driver availability service - presence and availability coordination.

This module handles:
    - Live connect/disconnect of driver sockets
    - Manual availability toggles
    - Admin blocking
    - Location updates
"""

from .presence import (
    driver_connected,
    driver_disconnected,
    set_availability,
    set_blocked,
    update_location,
)

__all__ = [
    "driver_connected",
    "driver_disconnected",
    "set_availability",
    "set_blocked",
    "update_location",
]
