from django.contrib import admin

from .models import Vehicle


@admin.register(Vehicle)
class VehicleAdmin(admin.ModelAdmin):
    list_display = ["vehicle_type", "name", "base_fare", "price_per_km", "capacity", "is_active"]
    list_filter = ["is_active"]
    search_fields = ["vehicle_type", "name"]
