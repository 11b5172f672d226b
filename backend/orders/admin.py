"""Tells what to show in the Django admin interface for orders app"""

from django.contrib import admin
from .models import Order


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Order admin. Lifecycle fields change only through the order API."""
    list_display = ['booking_id', 'customer', 'driver', 'vehicle_type', 'status', 'fare_total', 'created_at']
    list_filter = ['status', 'vehicle_type', 'created_at']
    search_fields = ['booking_id', 'customer__name', 'customer__phone', 'driver__name', 'pickup_address']
    readonly_fields = [
        'booking_id', 'status', 'driver', 'assigned_by', 'assigned_at', 'started_at',
        'completed_at', 'cancelled_at', 'cancellation_reason', 'created_at', 'updated_at',
    ]
    date_hierarchy = 'created_at'
