"""Helpers around the persistence boundary of the dispatch services."""

import logging
import secrets
import time
from functools import wraps

from django.db import InterfaceError, OperationalError

from .exceptions import ServiceUnavailableError

logger = logging.getLogger(__name__)


def store_operation(func):
    """
    Translate transient database failures into ServiceUnavailableError.

    Timeouts (busy database, statement/lock timeout, lost connection) all
    surface from the driver as OperationalError or InterfaceError. Apply this
    outside @transaction.atomic so the rollback has already happened when
    the caller sees the failure.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (OperationalError, InterfaceError) as exc:
            logger.warning("Store failure in %s: %s", func.__name__, exc)
            raise ServiceUnavailableError(
                "The order store is temporarily unavailable, please retry"
            ) from exc
    return wrapper


def generate_booking_id() -> str:
    """
    Short, shareable booking id: BK + base36 creation time (ms) + random hex.

    The unique constraint on Order.booking_id is the final guard; callers
    retry with a fresh id on IntegrityError.
    """
    millis = int(time.time() * 1000)
    return "BK" + _base36(millis) + secrets.token_hex(3).upper()


def _base36(number: int) -> str:
    alphabet = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(alphabet[remainder])
    return "".join(reversed(digits))
