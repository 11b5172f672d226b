"""
Order management service - Core order lifecycle operations.

This module handles:
    - Creating orders
    - Assigning drivers
    - Status transitions, cancellation, edits and deletion
    - Order queries and dashboard statistics
"""

from .order_lifecycle import (
    OrderResult,
    create_order,
    assign_driver,
    update_status,
    cancel_order,
    accept_order,
    reject_order,
    update_order,
    delete_order,
)

from .queries import (
    list_orders,
    get_order,
    list_driver_orders,
    list_customer_orders,
    compute_dashboard_stats,
)

from .exceptions import (
    DispatchError,
    NotFoundError,
    ConflictError,
    InvalidRequestError,
    ServiceUnavailableError,
    InternalError,
    OrderNotFoundError,
    DriverNotFoundError,
    CustomerNotFoundError,
    VehicleTypeNotFoundError,
    OrderStateConflictError,
    DriverNotAvailableError,
    CustomerBlockedError,
    InvalidStatusError,
)

__all__ = [
    # Lifecycle operations
    "OrderResult",
    "create_order",
    "assign_driver",
    "update_status",
    "cancel_order",
    "accept_order",
    "reject_order",
    "update_order",
    "delete_order",
    # Queries
    "list_orders",
    "get_order",
    "list_driver_orders",
    "list_customer_orders",
    "compute_dashboard_stats",
    # Exceptions
    "DispatchError",
    "NotFoundError",
    "ConflictError",
    "InvalidRequestError",
    "ServiceUnavailableError",
    "InternalError",
    "OrderNotFoundError",
    "DriverNotFoundError",
    "CustomerNotFoundError",
    "VehicleTypeNotFoundError",
    "OrderStateConflictError",
    "DriverNotAvailableError",
    "CustomerBlockedError",
    "InvalidStatusError",
]
