"""Vehicle-class lookups consumed by the order lifecycle."""

from typing import Optional

from .models import Vehicle


def find_active_by_type(vehicle_type: str) -> Optional[Vehicle]:
    """Return the active vehicle record for a vehicle type key, or None."""
    if not vehicle_type:
        return None
    return Vehicle.objects.filter(vehicle_type=vehicle_type, is_active=True).first()
