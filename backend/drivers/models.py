from django.db import models
from django.conf import settings

User = settings.AUTH_USER_MODEL


class Driver(models.Model):
    """Driver registry entry: availability, verification, location and presence."""
    VERIFICATION_CHOICES = [
        ('pending', 'Pending'),
        ('under_review', 'Under Review'),
        ('verified', 'Verified'),
        ('rejected', 'Rejected'),
    ]

    # Identity
    name = models.CharField(max_length=120)
    phone = models.CharField(max_length=20, unique=True)
    email = models.EmailField(blank=True)

    # Vehicle details
    vehicle_type = models.CharField(max_length=50)
    vehicle_number = models.CharField(max_length=20, unique=True)

    # Availability. Every write bumps availability_version so concurrent
    # writers can compare-and-set instead of overwriting blindly.
    is_available = models.BooleanField(default=False)
    availability_version = models.PositiveBigIntegerField(default=0)

    # Admin controls
    is_active = models.BooleanField(default=True)
    is_blocked = models.BooleanField(default=False)

    # Verification
    verification_status = models.CharField(max_length=20, choices=VERIFICATION_CHOICES, default='pending')
    verified_at = models.DateTimeField(null=True, blank=True)
    verified_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='verified_drivers'
    )
    rejection_reason = models.TextField(null=True, blank=True)

    # Location
    current_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    current_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    last_location_update = models.DateTimeField(null=True, blank=True)

    # Live connection handle (channel name), present only while connected
    channel_name = models.CharField(max_length=255, null=True, blank=True, unique=True)
    connected_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'drivers'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['verification_status'], name='drivers_verif_idx'),
            models.Index(fields=['is_available', 'is_active', 'is_blocked'], name='drivers_avail_idx'),
        ]

    def __str__(self):
        return f"{self.name} - {self.vehicle_number}"

    @property
    def is_verified(self) -> bool:
        return self.verification_status == 'verified'

    @property
    def is_connected(self) -> bool:
        return bool(self.channel_name)

    @property
    def can_receive_orders(self) -> bool:
        return self.is_available and self.is_verified and self.is_active and not self.is_blocked
