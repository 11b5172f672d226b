"""Read-only order queries and dashboard statistics."""

import logging
import math
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings
from django.utils import timezone

from customers import repository as customer_repository
from customers.models import Customer
from drivers import services as driver_registry
from drivers.models import Driver
from orders.models import Order, PENDING, COMPLETED, CANCELLED, VALID_STATUSES, DRIVER_BOUND_STATUSES
from .exceptions import (
    CustomerNotFoundError,
    DriverNotFoundError,
    InvalidRequestError,
    InvalidStatusError,
    OrderNotFoundError,
)
from .store import store_operation

logger = logging.getLogger(__name__)


def parse_pagination(page=None, limit=None) -> Tuple[int, int]:
    """
    Validate page/limit query values.

    Returns:
        (page, limit) as ints; page >= 1, 1 <= limit <= DISPATCH_MAX_PAGE_SIZE
    """
    max_limit = settings.DISPATCH_MAX_PAGE_SIZE
    try:
        page = 1 if page in (None, "") else int(page)
        limit = settings.DISPATCH_DEFAULT_PAGE_SIZE if limit in (None, "") else int(limit)
    except (TypeError, ValueError):
        raise InvalidRequestError("page and limit must be integers")
    if page < 1:
        raise InvalidRequestError("page must be at least 1")
    if not 1 <= limit <= max_limit:
        raise InvalidRequestError(f"limit must be between 1 and {max_limit}")
    return page, limit


def paginate(queryset, page=None, limit=None) -> Tuple[List[Any], Dict[str, int]]:
    page, limit = parse_pagination(page, limit)
    total = queryset.count()
    offset = (page - 1) * limit
    items = list(queryset[offset:offset + limit])
    pagination = {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if total else 0,
    }
    return items, pagination


def _orders():
    return Order.objects.select_related("customer", "driver", "assigned_by")


def _check_status(status: Optional[str]) -> None:
    if status and status not in VALID_STATUSES:
        raise InvalidStatusError("Invalid status")


@store_operation
def list_orders(status=None, driver_id=None, customer_id=None, page=None, limit=None):
    """Newest-first order list with optional status/driver/customer filters."""
    _check_status(status)
    orders = _orders()
    if status:
        orders = orders.filter(status=status)
    try:
        if driver_id not in (None, ""):
            orders = orders.filter(driver_id=int(driver_id))
        if customer_id not in (None, ""):
            orders = orders.filter(customer_id=int(customer_id))
    except (TypeError, ValueError):
        raise InvalidRequestError("driver_id and customer_id must be integers")
    return paginate(orders, page, limit)


@store_operation
def get_order(order_id) -> Order:
    try:
        return _orders().get(pk=order_id)
    except (Order.DoesNotExist, TypeError, ValueError):
        raise OrderNotFoundError("Order not found")


@store_operation
def list_driver_orders(driver_id, status=None, page=None, limit=None):
    _check_status(status)
    driver = driver_registry.find_by_id(driver_id)
    if driver is None:
        raise DriverNotFoundError("Driver not found")
    orders = _orders().filter(driver=driver)
    if status:
        orders = orders.filter(status=status)
    return paginate(orders, page, limit)


@store_operation
def list_customer_orders(customer_id, page=None, limit=None):
    customer = customer_repository.find_by_id(customer_id)
    if customer is None:
        raise CustomerNotFoundError("Customer not found")
    return paginate(_orders().filter(customer=customer), page, limit)


@store_operation
def compute_dashboard_stats() -> Dict[str, int]:
    """Counts shown on the admin dashboard."""
    since = timezone.now() - timedelta(hours=24)
    active_drivers = Driver.objects.filter(is_active=True, is_blocked=False)
    return {
        "total_orders": Order.objects.count(),
        "pending_orders": Order.objects.filter(status=PENDING).count(),
        "active_orders": Order.objects.filter(status__in=DRIVER_BOUND_STATUSES).count(),
        "completed_orders": Order.objects.filter(status=COMPLETED).count(),
        "cancelled_orders": Order.objects.filter(status=CANCELLED).count(),
        "active_drivers": active_drivers.count(),
        "online_drivers": active_drivers.filter(is_available=True).count(),
        "connected_drivers": active_drivers.filter(channel_name__isnull=False).count(),
        "total_customers": Customer.objects.count(),
        "orders_last_24h": Order.objects.filter(created_at__gte=since).count(),
    }
