"""WebSocket URL routing for the realtime app."""

from django.urls import re_path

from .consumers.admin_consumer import AdminConsumer
from .consumers.booking_consumer import BookingConsumer
from .consumers.driver_consumer import DriverConsumer

websocket_urlpatterns = [
    # Admin dashboard, JWT in the querystring
    # URL: ws://localhost:8000/ws/admin/?token=<access>
    re_path(
        r"ws/admin/$",
        AdminConsumer.as_asgi(),
        name="admin-ws"
    ),

    # Driver app endpoint
    # URL: ws://localhost:8000/ws/driver/
    re_path(
        r"ws/driver/$",
        DriverConsumer.as_asgi(),
        name="driver-ws"
    ),

    # Booking followers (customers tracking an order)
    # URL: ws://localhost:8000/ws/booking/
    re_path(
        r"ws/booking/$",
        BookingConsumer.as_asgi(),
        name="booking-ws"
    ),
]
