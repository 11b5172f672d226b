"""
Core order lifecycle operations.

Every command validates against the persisted state, writes through
conditional UPDATEs inside one transaction, and publishes its events only
after that transaction commits. A command either returns an OrderResult or
raises exactly one DispatchError.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from customers import repository as customer_repository
from drivers import services as driver_registry
from orders.models import (
    Order,
    PENDING,
    ASSIGNED,
    ACCEPTED,
    COMPLETED,
    CANCELLED,
    VALID_STATUSES,
    TERMINAL_STATUSES,
    DRIVER_BOUND_STATUSES,
)
from vehicles import repository as vehicle_repository
from .exceptions import (
    OrderNotFoundError,
    DriverNotFoundError,
    CustomerNotFoundError,
    VehicleTypeNotFoundError,
    OrderStateConflictError,
    DriverNotAvailableError,
    CustomerBlockedError,
    InvalidRequestError,
    InvalidStatusError,
)
from .store import store_operation, generate_booking_id

logger = logging.getLogger(__name__)

BOOKING_ID_ATTEMPTS = 5
DEFAULT_CANCELLATION_REASON = "Cancelled by admin"

# Request fare key -> Order column
FARE_FIELDS = {
    "base_fare": "base_fare",
    "distance_charge": "distance_charge",
    "time_charge": "time_charge",
    "total": "fare_total",
    "commission": "commission",
}


@dataclass
class OrderResult:
    """Result object for order operations."""
    success: bool
    order: Optional[Order] = None
    message: str = ""
    extra: Optional[Dict[str, Any]] = None


# ===================== Commands =====================

@store_operation
@transaction.atomic
def create_order(
    customer_id: int,
    vehicle_type: str,
    locations: Dict[str, Any],
    fare: Dict[str, Any],
    notes: str = "",
    distance=None,
) -> OrderResult:
    """
    Create a pending order with no driver.

    Args:
        customer_id: Ordering customer
        vehicle_type: Vehicle class key, must have an active vehicle record
        locations: {"pickup": {...}, "dropoff": {...}}, each with an address
            and [longitude, latitude] coordinates
        fare: Fare breakdown; "total" is required
        notes: Free-form notes
        distance: Trip distance in km (defaults to 0)

    Returns:
        OrderResult with the created order

    Raises:
        InvalidRequestError: Malformed locations or missing fare total
        CustomerNotFoundError / VehicleTypeNotFoundError: Unknown references
        CustomerBlockedError: The customer is blocked
    """
    fields = _location_fields(locations)
    fields.update(_fare_fields(fare, require_total=True))
    if distance is not None:
        fields["distance"] = _decimal(distance, "distance")

    customer = customer_repository.find_by_id(customer_id)
    if customer is None:
        raise CustomerNotFoundError("Customer not found")
    if customer.is_blocked:
        raise CustomerBlockedError("Customer is blocked")

    if vehicle_repository.find_active_by_type(vehicle_type) is None:
        raise VehicleTypeNotFoundError("Vehicle type not found")

    order = _insert_order(
        customer=customer,
        vehicle_type=vehicle_type,
        notes=notes or "",
        status=PENDING,
        **fields,
    )
    order = _load_order(order.pk)

    logger.info("Order %s created for customer %s", order.booking_id, customer.pk)

    from realtime.notifications import notify_order_event, schedule_dashboard_stats
    notify_order_event("order.created", order, include_driver=False)
    schedule_dashboard_stats()

    return OrderResult(
        success=True,
        order=order,
        message="Order created successfully",
    )


@store_operation
@transaction.atomic
def assign_driver(order_id: int, driver_id: int, assigned_by_id: Optional[int] = None) -> OrderResult:
    """
    Assign an available driver to a pending order.

    The order claim (pending, no driver) and the driver claim (available,
    verified, active, unblocked) are both conditional UPDATEs. If either
    finds its precondition gone the whole transaction rolls back.

    Args:
        order_id: Order to assign
        driver_id: Driver to assign
        assigned_by_id: Acting admin user id, if known

    Returns:
        OrderResult with the assigned order
    """
    order = _load_order(order_id)
    if order.status != PENDING:
        raise OrderStateConflictError(f"Cannot assign driver. Order status is {order.status}")

    driver = driver_registry.find_by_id(driver_id)
    if driver is None:
        raise DriverNotFoundError("Driver not found")
    _ensure_assignable(driver)

    now = timezone.now()
    claimed = Order.objects.filter(pk=order.pk, status=PENDING, driver__isnull=True).update(
        driver=driver,
        status=ASSIGNED,
        assigned_at=now,
        assigned_by_id=assigned_by_id,
        updated_at=now,
    )
    if not claimed:
        current = Order.objects.filter(pk=order.pk).values_list("status", flat=True).first()
        logger.warning("Lost assignment race on order %s (now %s)", order.booking_id, current)
        raise OrderStateConflictError(f"Cannot assign driver. Order status is {current}")

    if not driver_registry.update_availability(driver.pk, False, require_eligible=True):
        logger.warning("Driver %s stopped being assignable while assigning %s", driver.pk, order.booking_id)
        # Raising rolls back the order claim above
        raise DriverNotAvailableError("Driver is not available")

    order = _load_order(order.pk)
    logger.info("Order %s assigned to driver %s", order.booking_id, driver.pk)

    from realtime.notifications import (
        notify_order_event,
        notify_availability_changed,
        schedule_dashboard_stats,
    )
    notify_order_event("order.assigned", order)
    notify_availability_changed(order.driver, reason="order_assigned")
    schedule_dashboard_stats()

    return OrderResult(
        success=True,
        order=order,
        message="Driver assigned successfully",
    )


@store_operation
@transaction.atomic
def update_status(order_id: int, new_status: str) -> OrderResult:
    """
    Move a non-terminal order to another status.

    Args:
        order_id: Order to update
        new_status: One of the seven order statuses

    Returns:
        OrderResult with the updated order and previous/new status in extra
    """
    if new_status not in VALID_STATUSES:
        raise InvalidStatusError("Invalid status")

    order = _load_order(order_id)
    if order.is_terminal:
        raise OrderStateConflictError(f"Cannot change status of a {order.status} order")
    if new_status in DRIVER_BOUND_STATUSES and order.driver_id is None:
        raise OrderStateConflictError(f"Cannot move order to {new_status} without an assigned driver")
    if new_status == PENDING and order.driver_id is not None:
        raise OrderStateConflictError("Cannot move an order with an assigned driver back to pending")

    previous_status = order.status
    now = timezone.now()
    fields = {"status": new_status}
    if new_status == ACCEPTED and order.started_at is None:
        fields["started_at"] = now
    elif new_status == COMPLETED:
        fields["completed_at"] = now
    elif new_status == CANCELLED:
        fields["cancelled_at"] = now
        fields["cancellation_reason"] = DEFAULT_CANCELLATION_REASON

    _transition(order, previous_status, fields)
    if new_status in TERMINAL_STATUSES and order.driver_id:
        _release_driver(order.driver_id)

    order = _load_order(order.pk)
    logger.info("Order %s status %s -> %s", order.booking_id, previous_status, new_status)

    from realtime.notifications import notify_order_event, schedule_dashboard_stats
    notify_order_event(
        "order.status_changed",
        order,
        previous_status=previous_status,
        new_status=new_status,
    )
    if new_status == COMPLETED:
        notify_order_event("order.completed", order)
    schedule_dashboard_stats()

    return OrderResult(
        success=True,
        order=order,
        message=f"Order status updated to {new_status}",
        extra={"previous_status": previous_status, "new_status": new_status},
    )


@store_operation
@transaction.atomic
def cancel_order(order_id: int, reason: Optional[str] = None) -> OrderResult:
    """
    Cancel a non-terminal order, releasing its driver if one was assigned.

    Args:
        order_id: Order to cancel
        reason: Cancellation reason, a default is used when blank

    Returns:
        OrderResult with the cancelled order
    """
    order = _load_order(order_id)
    if order.is_terminal:
        raise OrderStateConflictError("Cannot cancel a completed or already cancelled order")

    reason = (reason or "").strip() or DEFAULT_CANCELLATION_REASON
    previous_status = order.status
    had_driver = order.driver_id is not None

    _transition(order, previous_status, {
        "status": CANCELLED,
        "cancelled_at": timezone.now(),
        "cancellation_reason": reason,
    })
    if had_driver:
        _release_driver(order.driver_id)

    order = _load_order(order.pk)
    logger.info("Order %s cancelled (was %s)", order.booking_id, previous_status)

    from realtime.notifications import notify_order_event, schedule_dashboard_stats
    notify_order_event(
        "order.cancelled",
        order,
        previous_status=previous_status,
        reason=reason,
    )
    schedule_dashboard_stats()

    return OrderResult(
        success=True,
        order=order,
        message="Order cancelled successfully",
        extra={"was_assigned": had_driver},
    )


@store_operation
@transaction.atomic
def accept_order(order_id: int, driver_id: int) -> OrderResult:
    """
    Driver confirms an order assigned to them. Moves the order from
    assigned to accepted through update_status().
    """
    order = _load_order(order_id)
    if order.driver_id != driver_id:
        raise OrderStateConflictError("Order is not assigned to this driver")
    if order.status != ASSIGNED:
        raise OrderStateConflictError(f"Cannot accept order. Order status is {order.status}")

    return update_status(order.pk, ACCEPTED)


@store_operation
@transaction.atomic
def reject_order(order_id: int, driver_id: int, reason: Optional[str] = None) -> OrderResult:
    """
    Driver hands back an order they have not picked up yet.

    The order returns to pending with no driver, so an admin can assign it
    again, and the driver is released.

    Args:
        order_id: Order to hand back
        driver_id: Driver rejecting it, must be the assigned driver
        reason: Optional reason shown to admins

    Returns:
        OrderResult with the pending order and the rejecting driver in extra
    """
    order = _load_order(order_id)
    if order.driver_id != driver_id:
        raise OrderStateConflictError("Order is not assigned to this driver")
    if order.status not in (ASSIGNED, ACCEPTED):
        raise OrderStateConflictError(f"Cannot reject order. Order status is {order.status}")

    previous_status = order.status
    reason = (reason or "").strip()

    updated = Order.objects.filter(pk=order.pk, status=previous_status, driver_id=driver_id).update(
        status=PENDING,
        driver=None,
        assigned_at=None,
        assigned_by=None,
        started_at=None,
        updated_at=timezone.now(),
    )
    if not updated:
        logger.warning("Order %s changed before driver %s could reject it", order.booking_id, driver_id)
        raise OrderStateConflictError("Order was modified concurrently, please retry")
    _release_driver(driver_id, reason="order_rejected")

    order = _load_order(order.pk)
    logger.info("Order %s rejected by driver %s (was %s)", order.booking_id, driver_id, previous_status)

    from realtime.notifications import notify_order_event, schedule_dashboard_stats
    notify_order_event(
        "order.rejected",
        order,
        previous_status=previous_status,
        driver_id=driver_id,
        reason=reason,
    )
    schedule_dashboard_stats()

    return OrderResult(
        success=True,
        order=order,
        message="Order returned to pending",
        extra={"previous_status": previous_status, "driver_id": driver_id},
    )


@store_operation
@transaction.atomic
def update_order(
    order_id: int,
    locations: Optional[Dict[str, Any]] = None,
    fare: Optional[Dict[str, Any]] = None,
    distance=None,
    vehicle_type: Optional[str] = None,
    notes: Optional[str] = None,
) -> OrderResult:
    """
    Edit the details of a non-terminal order. Only given fields change;
    fare sub-fields overlay the stored breakdown.
    """
    order = _load_order(order_id)
    if order.is_terminal:
        raise OrderStateConflictError("Cannot update a completed or cancelled order")

    fields = {}
    if locations is not None:
        fields.update(_location_fields(locations))
    if fare is not None:
        fields.update(_fare_fields(fare, require_total=False))
    if distance is not None:
        fields["distance"] = _decimal(distance, "distance")
    if vehicle_type is not None:
        if vehicle_repository.find_active_by_type(vehicle_type) is None:
            raise VehicleTypeNotFoundError("Vehicle type not found")
        fields["vehicle_type"] = vehicle_type
    if notes is not None:
        fields["notes"] = notes

    if fields:
        _transition(order, order.status, fields)
        order = _load_order(order.pk)
        logger.info("Order %s updated: %s", order.booking_id, ", ".join(sorted(fields)))

        from realtime.notifications import notify_order_event, schedule_dashboard_stats
        notify_order_event("order.updated", order, updated_fields=sorted(fields))
        schedule_dashboard_stats()

    return OrderResult(
        success=True,
        order=order,
        message="Order updated successfully",
        extra={"updated_fields": sorted(fields)},
    )


@store_operation
@transaction.atomic
def delete_order(order_id: int) -> OrderResult:
    """
    Hard-delete an order.

    The assigned driver (if any) is not released; an admin deleting an
    in-flight order is expected to fix the driver's availability by hand.
    """
    order = _load_order(order_id)
    pk, booking_id = order.pk, order.booking_id
    order.delete()

    if order.driver_id and order.status in DRIVER_BOUND_STATUSES:
        logger.warning("Order %s deleted while driver %s was on it", booking_id, order.driver_id)
    else:
        logger.info("Order %s deleted", booking_id)

    from realtime.notifications import notify_order_deleted, schedule_dashboard_stats
    notify_order_deleted(pk, booking_id)
    schedule_dashboard_stats()

    return OrderResult(
        success=True,
        message="Order deleted successfully",
        extra={"id": pk, "booking_id": booking_id},
    )


# ===================== Helper Functions =====================

def _load_order(order_id) -> Order:
    try:
        return Order.objects.select_related("customer", "driver", "assigned_by").get(pk=order_id)
    except (Order.DoesNotExist, TypeError, ValueError):
        raise OrderNotFoundError("Order not found")


def _insert_order(**fields) -> Order:
    """Insert with a fresh booking id, retrying on the rare id collision."""
    for attempt in range(1, BOOKING_ID_ATTEMPTS + 1):
        booking_id = generate_booking_id()
        try:
            # Savepoint so a collision does not poison the outer transaction
            with transaction.atomic():
                return Order.objects.create(booking_id=booking_id, **fields)
        except IntegrityError:
            if not Order.objects.filter(booking_id=booking_id).exists():
                raise
            logger.warning("Booking id collision on %s (attempt %d)", booking_id, attempt)
    raise OrderStateConflictError("Could not allocate a unique booking id, please retry")


def _transition(order: Order, expected_status: str, fields: Dict[str, Any]) -> None:
    """Write fields only if the order still has the status we validated against."""
    updated = Order.objects.filter(pk=order.pk, status=expected_status).update(
        updated_at=timezone.now(),
        **fields,
    )
    if not updated:
        logger.warning("Order %s changed concurrently (expected %s)", order.booking_id, expected_status)
        raise OrderStateConflictError("Order was modified concurrently, please retry")


def _ensure_assignable(driver) -> None:
    if not driver.is_active:
        raise DriverNotAvailableError("Driver is not active")
    if driver.is_blocked:
        raise DriverNotAvailableError("Driver is blocked")
    if not driver.is_verified:
        raise DriverNotAvailableError("Driver is not verified")
    if not driver.is_available:
        raise DriverNotAvailableError("Driver is not available")


def _release_driver(driver_id: int, reason: str = "order_finished") -> None:
    """Make the driver of a finished or rejected order available again."""
    from realtime.notifications import notify_availability_changed

    if driver_registry.update_availability(driver_id, True):
        notify_availability_changed(driver_registry.find_by_id(driver_id), reason=reason)
    else:
        logger.warning("Driver %s not found on release", driver_id)


def _location_fields(locations) -> Dict[str, Any]:
    try:
        pickup = locations["pickup"]
        dropoff = locations["dropoff"]
        pickup_lng, pickup_lat = pickup["coordinates"]
        dropoff_lng, dropoff_lat = dropoff["coordinates"]
        fields = {
            "pickup_address": pickup["address"],
            "pickup_latitude": _coordinate(pickup_lat, 90),
            "pickup_longitude": _coordinate(pickup_lng, 180),
            "dropoff_address": dropoff["address"],
            "dropoff_latitude": _coordinate(dropoff_lat, 90),
            "dropoff_longitude": _coordinate(dropoff_lng, 180),
        }
    except (KeyError, TypeError, ValueError, InvalidOperation):
        raise InvalidRequestError(
            "Locations need pickup and dropoff, each with an address and [longitude, latitude] coordinates"
        )
    if not fields["pickup_address"] or not fields["dropoff_address"]:
        raise InvalidRequestError("Pickup and dropoff addresses are required")
    return fields


def _coordinate(value, limit: int) -> Decimal:
    coordinate = Decimal(str(value)).quantize(Decimal("0.000001"))
    if not -limit <= coordinate <= limit:
        raise ValueError(f"coordinate {value} out of range")
    return coordinate


def _fare_fields(fare, require_total: bool) -> Dict[str, Any]:
    if not isinstance(fare, dict):
        raise InvalidRequestError("Fare must be an object")
    if require_total and fare.get("total") is None:
        raise InvalidRequestError("Fare total is required")
    return {
        column: _decimal(fare[key], f"fare.{key}")
        for key, column in FARE_FIELDS.items()
        if fare.get(key) is not None
    }


def _decimal(value, name: str) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidRequestError(f"{name} must be a number")
    if not number.is_finite() or number < 0:
        raise InvalidRequestError(f"{name} must be a non-negative number")
    return number
