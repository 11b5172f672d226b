"""
Driver registry: lookups and conditional writes on driver rows.

Availability is never written with a plain save(). Every write goes through
update_availability(), a single conditional UPDATE that also bumps
availability_version, so callers can detect that they lost a race by
looking at the returned row count.
"""

import logging
from typing import Optional, List, Tuple

from django.db.models import F, Q
from django.utils import timezone

from common.utils.geo import calculate_distance, bounding_box
from drivers.models import Driver

logger = logging.getLogger(__name__)

# Statuses in which an order holds its driver.
ACTIVE_ORDER_STATUSES = ("assigned", "accepted", "picked_up", "in_progress")

ELIGIBLE_FOR_ASSIGNMENT = Q(
    is_available=True,
    verification_status="verified",
    is_active=True,
    is_blocked=False,
)


def find_by_id(driver_id) -> Optional[Driver]:
    try:
        return Driver.objects.filter(pk=driver_id).first()
    except (TypeError, ValueError):
        return None


def find_by_channel(channel_name: str) -> Optional[Driver]:
    if not channel_name:
        return None
    return Driver.objects.filter(channel_name=channel_name).first()


def has_active_order(driver_id) -> bool:
    from orders.models import Order
    return Order.objects.filter(driver_id=driver_id, status__in=ACTIVE_ORDER_STATUSES).exists()


def update_availability(
    driver_id,
    is_available: bool,
    *,
    expected_version: Optional[int] = None,
    require_eligible: bool = False,
    require_unblocked: bool = False,
    **fields,
) -> bool:
    """
    Conditionally set a driver's availability flag.

    Args:
        driver_id: Driver primary key
        is_available: New flag value
        expected_version: Only write if availability_version still equals this
        require_eligible: Only write if the driver currently satisfies the
            assignment preconditions (available, verified, active, unblocked)
        require_unblocked: Only write if the driver is active and not blocked
        **fields: Extra columns written in the same UPDATE (e.g. channel_name)

    Returns:
        True if the row was updated, False if a condition did not hold
    """
    query = Q(pk=driver_id)
    if expected_version is not None:
        query &= Q(availability_version=expected_version)
    if require_eligible:
        query &= ELIGIBLE_FOR_ASSIGNMENT
    if require_unblocked:
        query &= Q(is_active=True, is_blocked=False)

    updated = Driver.objects.filter(query).update(
        is_available=is_available,
        availability_version=F("availability_version") + 1,
        updated_at=timezone.now(),
        **fields,
    )
    if not updated:
        logger.debug(
            "Availability write skipped for driver %s (is_available=%s, expected_version=%s)",
            driver_id, is_available, expected_version,
        )
    return bool(updated)


def update_location(driver_id, lat, lon) -> Optional[Driver]:
    """Persist the driver's live location. Returns the refreshed driver or None."""
    updated = Driver.objects.filter(pk=driver_id).update(
        current_latitude=lat,
        current_longitude=lon,
        last_location_update=timezone.now(),
    )
    if not updated:
        return None
    return Driver.objects.get(pk=driver_id)


def set_blocked(driver_id, blocked: bool) -> Optional[Driver]:
    """Set the blocked flag; blocking also forces the driver unavailable."""
    fields = {"is_blocked": blocked, "updated_at": timezone.now()}
    if blocked:
        fields["is_available"] = False
        fields["availability_version"] = F("availability_version") + 1
    updated = Driver.objects.filter(pk=driver_id).update(**fields)
    if not updated:
        return None
    return Driver.objects.get(pk=driver_id)


def list_drivers(status: Optional[str] = None, vehicle_type: Optional[str] = None,
                 verification_status: Optional[str] = None):
    """Active drivers, optionally filtered the way the admin dashboard asks."""
    drivers = Driver.objects.filter(is_active=True)
    if status == "available":
        drivers = drivers.filter(is_available=True)
    elif status == "busy":
        drivers = drivers.filter(is_available=False)
    if vehicle_type:
        drivers = drivers.filter(vehicle_type=vehicle_type)
    if verification_status:
        drivers = drivers.filter(verification_status=verification_status)
    return drivers


def find_assignable_drivers(
    vehicle_type: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    radius_meters: float = 5000,
) -> List[Tuple[Driver, Optional[float]]]:
    """
    Drivers that can take a new order right now.

    With a pickup point, only drivers inside radius_meters are returned,
    sorted closest first. Without one, every eligible driver is returned
    (distance None) in registry order.
    """
    drivers = Driver.objects.filter(ELIGIBLE_FOR_ASSIGNMENT)
    if vehicle_type:
        drivers = drivers.filter(vehicle_type=vehicle_type)

    if latitude is None or longitude is None:
        return [(driver, None) for driver in drivers]

    # Cheap rectangular prefilter in the database, exact distance in Python
    min_lat, max_lat, min_lon, max_lon = bounding_box(latitude, longitude, radius_meters)
    drivers = drivers.filter(
        current_latitude__isnull=False,
        current_longitude__isnull=False,
        current_latitude__gte=min_lat,
        current_latitude__lte=max_lat,
        current_longitude__gte=min_lon,
        current_longitude__lte=max_lon,
    )

    candidates: List[Tuple[Driver, float]] = []
    for driver in drivers:
        distance = calculate_distance(
            latitude, longitude,
            driver.current_latitude, driver.current_longitude,
        )
        if distance <= radius_meters:
            candidates.append((driver, distance))

    # Sort closest → farthest
    candidates.sort(key=lambda item: item[1])
    return candidates
