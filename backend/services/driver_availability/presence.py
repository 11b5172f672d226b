"""
Driver availability coordinator.

Reconciles the availability flag across its writers: the live connection
(connect/disconnect), manual toggles, admin blocking and location pings.
The order lifecycle writes availability through the registry directly.

Presence writes are versioned compare-and-set updates. On a version
mismatch the driver row is re-read and the write retried, up to
DISPATCH_PRESENCE_CAS_RETRIES times.
"""

import logging
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from drivers import services as driver_registry
from drivers.models import Driver
from services.order_management.exceptions import (
    ConflictError,
    DriverNotAvailableError,
    DriverNotFoundError,
)
from services.order_management.store import store_operation

logger = logging.getLogger(__name__)


def _retries() -> int:
    return max(1, settings.DISPATCH_PRESENCE_CAS_RETRIES)


def _load_driver(driver_id) -> Driver:
    driver = driver_registry.find_by_id(driver_id)
    if driver is None:
        raise DriverNotFoundError("Driver not found")
    return driver


@store_operation
@transaction.atomic
def driver_connected(driver_id, channel_name: str) -> Driver:
    """
    Record a driver's live connection.

    The driver becomes available unless blocked, inactive, or still holding
    a non-terminal order (e.g. reconnecting mid-delivery).

    Args:
        driver_id: Driver announcing itself on the socket
        channel_name: Channels name of that socket

    Returns:
        The refreshed driver
    """
    for attempt in range(1, _retries() + 1):
        driver = _load_driver(driver_id)
        make_available = (
            driver.is_active
            and not driver.is_blocked
            and not driver_registry.has_active_order(driver.pk)
        )
        if driver_registry.update_availability(
            driver.pk,
            make_available,
            expected_version=driver.availability_version,
            channel_name=channel_name,
            connected_at=timezone.now(),
        ):
            break
        logger.debug("Connect CAS miss for driver %s (attempt %d)", driver.pk, attempt)
    else:
        raise ConflictError("Driver availability changed concurrently, please retry")

    driver = _load_driver(driver_id)
    logger.info("Driver %s connected (available=%s)", driver.pk, driver.is_available)

    from realtime.notifications import notify_driver_event, notify_availability_changed
    notify_driver_event("driver.online", driver)
    notify_availability_changed(driver, reason="connected")
    return driver


@store_operation
@transaction.atomic
def driver_disconnected(channel_name: str) -> Optional[Driver]:
    """
    Clear the live connection held by channel_name and mark the driver
    unavailable.

    A stale handle (the driver already reconnected on another socket) finds
    no driver and changes nothing. An order the driver still holds is left
    as it is.

    Returns:
        The refreshed driver, or None if no driver owned the handle
    """
    for attempt in range(1, _retries() + 1):
        driver = driver_registry.find_by_channel(channel_name)
        if driver is None:
            logger.debug("Disconnect for unknown or stale channel %s", channel_name)
            return None
        if driver_registry.update_availability(
            driver.pk,
            False,
            expected_version=driver.availability_version,
            channel_name=None,
            connected_at=None,
        ):
            break
        logger.debug("Disconnect CAS miss for driver %s (attempt %d)", driver.pk, attempt)
    else:
        raise ConflictError("Driver availability changed concurrently, please retry")

    if driver_registry.has_active_order(driver.pk):
        logger.warning("Driver %s disconnected while holding an active order", driver.pk)

    driver = _load_driver(driver.pk)
    logger.info("Driver %s disconnected", driver.pk)

    from realtime.notifications import notify_driver_event, notify_availability_changed
    notify_driver_event("driver.offline", driver)
    notify_availability_changed(driver, reason="disconnected")
    return driver


@store_operation
@transaction.atomic
def set_availability(driver_id, is_available: bool) -> Driver:
    """
    Manual availability toggle from the driver app or the admin dashboard.

    Idempotent: setting the current value again succeeds without an event.
    Turning availability on is refused for blocked or inactive drivers and
    for drivers holding a non-terminal order.
    """
    for attempt in range(1, _retries() + 1):
        driver = _load_driver(driver_id)
        if driver.is_available == is_available:
            return driver
        if is_available:
            if not driver.is_active:
                raise DriverNotAvailableError("Driver is not active")
            if driver.is_blocked:
                raise DriverNotAvailableError("Driver is blocked")
            if driver_registry.has_active_order(driver.pk):
                raise DriverNotAvailableError("Driver has an active order")
        if driver_registry.update_availability(
            driver.pk,
            is_available,
            expected_version=driver.availability_version,
            require_unblocked=is_available,
        ):
            break
    else:
        raise ConflictError("Driver availability changed concurrently, please retry")

    driver = _load_driver(driver_id)
    logger.info("Driver %s availability set to %s", driver.pk, is_available)

    from realtime.notifications import notify_availability_changed
    notify_availability_changed(driver, reason="manual")
    return driver


@store_operation
@transaction.atomic
def set_blocked(driver_id, blocked: bool) -> Driver:
    """Admin block toggle. Blocking forces the driver unavailable."""
    before = _load_driver(driver_id)
    driver = driver_registry.set_blocked(before.pk, blocked)
    if driver is None:
        raise DriverNotFoundError("Driver not found")

    logger.info("Driver %s %s", driver.pk, "blocked" if blocked else "unblocked")

    from realtime.notifications import notify_driver_event, notify_availability_changed
    notify_driver_event("driver.block_status_changed", driver, include_self=True, is_blocked=blocked)
    if before.is_available != driver.is_available:
        notify_availability_changed(driver, reason="blocked")
    return driver


@store_operation
def update_location(driver_id, latitude, longitude) -> Driver:
    """Persist a location ping and fan it out to admins and broadcast."""
    driver = driver_registry.update_location(driver_id, latitude, longitude)
    if driver is None:
        raise DriverNotFoundError("Driver not found")

    from realtime.notifications import notify_driver_event
    notify_driver_event(
        "driver.location_update",
        driver,
        include_self=True,
        latitude=driver.current_latitude,
        longitude=driver.current_longitude,
    )
    return driver
