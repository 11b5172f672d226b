"""
Health endpoint for the dispatch backend.

Each check answers one question the dispatch flow depends on: can commands
reach the order store, can events travel through the channel layer, and is
the dashboard refresh task registered with Celery.
"""

import asyncio
import logging

import redis
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from drivers.models import Driver
from orders.models import Order, PENDING

logger = logging.getLogger(__name__)

PING_TIMEOUT_SECONDS = 3


def check_order_store():
    try:
        return True, {
            "pending_orders": Order.objects.filter(status=PENDING).count(),
            "connected_drivers": Driver.objects.filter(channel_name__isnull=False).count(),
        }
    except DatabaseError as e:
        return False, str(e)


async def _channel_round_trip(layer):
    channel = await layer.new_channel()
    await layer.send(channel, {"type": "health.ping"})
    message = await asyncio.wait_for(layer.receive(channel), PING_TIMEOUT_SECONDS)
    return message.get("type") == "health.ping"


def check_event_delivery():
    layer = get_channel_layer()
    if layer is None:
        return False, "no channel layer configured"
    try:
        delivered = async_to_sync(_channel_round_trip)(layer)
    except Exception as e:
        return False, f"{type(layer).__name__}: {e}"
    return delivered, type(layer).__name__


def check_redis():
    if not settings.REDIS_URL:
        return True, "not configured"
    try:
        redis.Redis.from_url(settings.REDIS_URL, socket_timeout=PING_TIMEOUT_SECONDS).ping()
    except redis.RedisError as e:
        return False, str(e)
    return True, "reachable"


def check_stats_task():
    from dispatch_backend.celery import app
    from orders.tasks import broadcast_dashboard_stats_task

    name = broadcast_dashboard_stats_task.name
    if name not in app.tasks:
        return False, f"{name} not registered"
    return True, "enabled" if settings.DISPATCH_STATS_ENABLED else "disabled"


HEALTH_CHECKS = {
    "order_store": check_order_store,
    "event_delivery": check_event_delivery,
    "redis": check_redis,
    "stats_task": check_stats_task,
}


@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request):
    """Run every dispatch health check; 503 if any of them fails."""
    checks = {}
    for name, check in HEALTH_CHECKS.items():
        ok, detail = check()
        if not ok:
            logger.warning("Health check %s failed: %s", name, detail)
        checks[name] = {"ok": ok, "detail": detail}

    healthy = all(result["ok"] for result in checks.values())
    return Response(
        {
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": timezone.now().isoformat(),
            "checks": checks,
        },
        status=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
    )
