"""
Realtime app for WebSocket communication.

This app provides:
- WebSocket consumers for the admin dashboard, drivers and booking followers
- The NotificationBus: topic-addressed fan-out over the Channels layer
- Notification helpers for order and driver events
- JWT authentication middleware for WebSocket connections

Key Components:
    - bus.py: Topic addressing and the NotificationBus
    - notifications.py: Order/driver event helpers, dashboard refresh
    - consumers/: WebSocket consumers (admin, driver, booking)

Usage:
    from realtime.bus import Topic, get_notification_bus
    from realtime.notifications import notify_order_event, notify_driver_event
"""
