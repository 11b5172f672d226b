from django.core.validators import MinValueValidator
from django.db import models


class Vehicle(models.Model):
    """A bookable vehicle class (sedan, bike, mini truck...)."""

    vehicle_type = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=100)
    base_fare = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    price_per_km = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    capacity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'vehicles'
        ordering = ['vehicle_type']

    def __str__(self):
        return f"{self.name} ({self.vehicle_type})"
