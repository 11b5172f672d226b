from django.contrib import admin
from drivers.models import Driver


@admin.register(Driver)
class DriverAdmin(admin.ModelAdmin):
    """Admin panel for managing the driver registry"""

    list_display = [
        "name",
        "phone",
        "vehicle_type",
        "vehicle_number",
        "is_available",
        "verification_status",
        "is_active",
        "is_blocked",
        "last_location_update",
    ]

    list_filter = [
        "is_available",
        "verification_status",
        "is_active",
        "is_blocked",
        "vehicle_type",
    ]

    search_fields = [
        "name",
        "phone",
        "vehicle_number",
    ]

    # Availability and presence are owned by the dispatch services
    readonly_fields = [
        "is_available",
        "availability_version",
        "channel_name",
        "connected_at",
        "last_location_update",
        "created_at",
        "updated_at",
    ]

    ordering = ("name",)
