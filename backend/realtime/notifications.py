"""
Notification helpers for sending dispatch events to connected clients.

This module provides functions to:
- Publish order events to admins, broadcast, the booking room and the driver
- Publish driver presence/availability/location events
- Schedule the dashboard statistics refresh

All publishing is deferred until the current transaction commits.
"""

from __future__ import annotations

import json
import uuid
import logging
from typing import Any, Dict, List

from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from django.utils import timezone

from .bus import Topic, get_notification_bus

logger = logging.getLogger(__name__)


def _plain(data) -> Any:
    """Reduce serializer output to JSON/msgpack-safe primitives."""
    return json.loads(json.dumps(data, cls=DjangoJSONEncoder))


def build_payload(data, **extra) -> Dict[str, Any]:
    """
    Event payload. event_id is shared by every topic the event goes to, so
    a socket subscribed to several of them can drop the repeats.
    """
    return {
        "data": _plain(data),
        **_plain(extra),
        "event_id": uuid.uuid4().hex,
        "timestamp": timezone.now().isoformat(),
    }


def order_snapshot(order) -> Dict[str, Any]:
    from orders.serializers import OrderSerializer
    return OrderSerializer(order).data


def driver_snapshot(driver) -> Dict[str, Any]:
    from drivers.serializers import DriverBasicSerializer
    return DriverBasicSerializer(driver).data


# ---------------------- Order Events ----------------------

def order_topics(order, include_driver: bool = True) -> List[Topic]:
    topics = [Topic.admins(), Topic.broadcast(), Topic.booking(order.booking_id)]
    if include_driver and order.driver_id:
        topics.append(Topic.driver(order.driver_id))
    return topics


def notify_order_event(event: str, order, include_driver: bool = True, **extra) -> None:
    """
    Publish an order event once the current transaction commits.

    Args:
        event: Event name, e.g. "order.assigned"
        order: Order instance, already reflecting the committed state
        include_driver: Also deliver to the order's driver channel
        **extra: Additional payload keys (previous_status, reason, ...)
    """
    payload = build_payload(order_snapshot(order), **extra)
    get_notification_bus().publish_on_commit(order_topics(order, include_driver), event, payload)


def notify_order_deleted(order_id: int, booking_id: str) -> None:
    payload = build_payload({"id": order_id, "booking_id": booking_id})
    topics = [Topic.admins(), Topic.broadcast(), Topic.booking(booking_id)]
    get_notification_bus().publish_on_commit(topics, "order.deleted", payload)


# ---------------------- Driver Events ----------------------

def notify_driver_event(event: str, driver, include_self: bool = False, **extra) -> None:
    """
    Publish a driver event to admins and broadcast (and optionally the
    driver's own channel) once the current transaction commits.
    """
    topics = [Topic.admins(), Topic.broadcast()]
    if include_self:
        topics.append(Topic.driver(driver.pk))
    payload = build_payload(driver_snapshot(driver), **extra)
    get_notification_bus().publish_on_commit(topics, event, payload)


def notify_availability_changed(driver, reason: str) -> None:
    notify_driver_event(
        "driver.availability_changed",
        driver,
        include_self=True,
        is_available=driver.is_available,
        reason=reason,
    )


# ---------------------- Dashboard ----------------------

def schedule_dashboard_stats() -> None:
    """Queue a dashboard statistics refresh after the current transaction commits."""
    transaction.on_commit(_enqueue_dashboard_stats)


def _enqueue_dashboard_stats() -> None:
    from orders.tasks import broadcast_dashboard_stats_task
    try:
        broadcast_dashboard_stats_task.delay()
    except Exception:
        logger.exception("Failed to queue dashboard stats refresh")
