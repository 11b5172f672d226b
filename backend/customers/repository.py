"""Customer lookups consumed by the order lifecycle."""

from typing import Optional

from .models import Customer


def find_by_id(customer_id) -> Optional[Customer]:
    """Return the customer or None when the id is unknown or malformed."""
    try:
        return Customer.objects.filter(pk=customer_id).first()
    except (TypeError, ValueError):
        return None
