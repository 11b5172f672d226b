"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP/WebSocket layer.

Modules:
    - order_management: Core order lifecycle operations and queries
    - driver_availability: Driver presence and availability coordination
"""

# Expose commonly used functions at package level
from .order_management import (
    OrderResult,
    create_order,
    assign_driver,
    update_status,
    cancel_order,
    accept_order,
    reject_order,
    update_order,
    delete_order,
    list_orders,
    get_order,
    list_driver_orders,
    list_customer_orders,
    compute_dashboard_stats,
    DispatchError,
)
from .driver_availability import (
    driver_connected,
    driver_disconnected,
    set_availability,
    set_blocked,
    update_location,
)

__all__ = [
    # Order management
    "OrderResult",
    "create_order",
    "assign_driver",
    "update_status",
    "cancel_order",
    "accept_order",
    "reject_order",
    "update_order",
    "delete_order",
    "list_orders",
    "get_order",
    "list_driver_orders",
    "list_customer_orders",
    "compute_dashboard_stats",
    "DispatchError",
    # Driver availability
    "driver_connected",
    "driver_disconnected",
    "set_availability",
    "set_blocked",
    "update_location",
]
