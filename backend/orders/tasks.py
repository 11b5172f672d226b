"""Celery tasks for order-related background processing."""

import logging

from celery import shared_task
from django.conf import settings

logger = logging.getLogger(__name__)


@shared_task
def broadcast_dashboard_stats_task():
    """
    Recompute the admin dashboard counters and push them to every
    connected admin as dashboard.stats_update.

    Queued after each order command commits.
    """
    if not settings.DISPATCH_STATS_ENABLED:
        return None

    from realtime.bus import Topic, get_notification_bus
    from realtime.notifications import build_payload
    from services.order_management import compute_dashboard_stats

    stats = compute_dashboard_stats()
    delivered = get_notification_bus().publish(
        Topic.admins(),
        "dashboard.stats_update",
        build_payload(stats),
    )
    if not delivered:
        logger.warning("Dashboard stats computed but not delivered")
    return stats
