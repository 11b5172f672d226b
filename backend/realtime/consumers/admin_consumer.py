"""Admin dashboard WebSocket consumer."""

import logging

from channels.db import database_sync_to_async

from services.order_management import compute_dashboard_stats
from .base import BaseConsumer
from ..bus import Topic
from ..notifications import build_payload

logger = logging.getLogger(__name__)

ADMIN_ROLES = ("admin", "super_admin")


class AdminConsumer(BaseConsumer):
    """
    WebSocket consumer for the admin dashboard.

    Joins the admins topic only; every event published to broadcast is also
    published to admins.
    """
    require_authentication = True

    def is_authorized(self, user) -> bool:
        return super().is_authorized(user) and getattr(user, "role", None) in ADMIN_ROLES

    async def on_connect(self):
        await self.join_topic(Topic.admins())
        logger.info("Admin %s connected to dashboard", self.user_id)

        stats = await database_sync_to_async(compute_dashboard_stats)()
        await self.send_json({
            "type": "dashboard.stats_update",
            **build_payload(stats),
        })
