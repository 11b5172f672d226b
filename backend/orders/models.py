from django.db import models
from django.db.models import Q
from django.conf import settings

PENDING = 'pending'
ASSIGNED = 'assigned'
ACCEPTED = 'accepted'
PICKED_UP = 'picked_up'
IN_PROGRESS = 'in_progress'
COMPLETED = 'completed'
CANCELLED = 'cancelled'

STATUS_CHOICES = [
    (PENDING, 'Pending'),
    (ASSIGNED, 'Assigned'),
    (ACCEPTED, 'Accepted'),
    (PICKED_UP, 'Picked Up'),
    (IN_PROGRESS, 'In Progress'),
    (COMPLETED, 'Completed'),
    (CANCELLED, 'Cancelled'),
]

VALID_STATUSES = tuple(value for value, _ in STATUS_CHOICES)
TERMINAL_STATUSES = (COMPLETED, CANCELLED)
# Statuses in which the order must hold a driver
DRIVER_BOUND_STATUSES = (ASSIGNED, ACCEPTED, PICKED_UP, IN_PROGRESS)


class Order(models.Model):
    """A single delivery request from creation to a terminal status."""

    booking_id = models.CharField(max_length=32, unique=True)

    customer = models.ForeignKey(
        'customers.Customer',
        on_delete=models.PROTECT,
        related_name='orders'
    )

    driver = models.ForeignKey(
        'drivers.Driver',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='orders'
    )

    vehicle_type = models.CharField(max_length=50)

    # Pickup location
    pickup_address = models.TextField()
    pickup_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_longitude = models.DecimalField(max_digits=9, decimal_places=6)

    # Dropoff location
    dropoff_address = models.TextField()
    dropoff_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    dropoff_longitude = models.DecimalField(max_digits=9, decimal_places=6)

    # Distance in kilometers
    distance = models.DecimalField(max_digits=8, decimal_places=2, default=0)

    # Fare breakdown, total is always present
    base_fare = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    distance_charge = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    time_charge = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    fare_total = models.DecimalField(max_digits=10, decimal_places=2)
    commission = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    notes = models.TextField(blank=True, default='')

    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_orders'
    )

    # Timestamps, each transition stamp is written at most once
    assigned_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    cancellation_reason = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['customer', 'status'], name='orders_customer_status_idx'),
            models.Index(fields=['driver', 'status'], name='orders_driver_status_idx'),
            models.Index(fields=['-created_at'], name='orders_created_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(status=PENDING, driver__isnull=False),
                name='orders_pending_has_no_driver',
            ),
            models.CheckConstraint(
                condition=~Q(status__in=DRIVER_BOUND_STATUSES, driver__isnull=True),
                name='orders_active_has_driver',
            ),
            models.CheckConstraint(
                condition=~Q(status=CANCELLED, cancellation_reason__isnull=True),
                name='orders_cancelled_has_reason',
            ),
        ]

    def __str__(self):
        return f"Order {self.booking_id} - {self.status}"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def locations(self) -> dict:
        return {
            "pickup": {
                "address": self.pickup_address,
                "coordinates": [float(self.pickup_longitude), float(self.pickup_latitude)],
                "type": "pickup",
            },
            "dropoff": {
                "address": self.dropoff_address,
                "coordinates": [float(self.dropoff_longitude), float(self.dropoff_latitude)],
                "type": "dropoff",
            },
        }

    @property
    def fare(self) -> dict:
        return {
            "base_fare": self.base_fare,
            "distance_charge": self.distance_charge,
            "time_charge": self.time_charge,
            "total": self.fare_total,
            "commission": self.commission,
        }
