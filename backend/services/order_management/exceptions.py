"""
Failure taxonomy for dispatch operations.

Every command either returns a result or raises exactly one DispatchError.
error_code and status_code drive the JSON failure body and HTTP status.
"""


class DispatchError(Exception):
    """Base class for typed dispatch failures."""
    error_code = "internal"
    status_code = 500
    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class NotFoundError(DispatchError):
    """Raised when a referenced entity does not exist."""
    error_code = "not_found"
    status_code = 404


class ConflictError(DispatchError):
    """Raised when the current state does not allow the operation."""
    error_code = "conflict"
    status_code = 409


class InvalidRequestError(DispatchError):
    """Raised for malformed or out-of-range input."""
    error_code = "validation"
    status_code = 400


class ServiceUnavailableError(DispatchError):
    """Raised when the store timed out or failed transiently. Safe to retry."""
    error_code = "unavailable"
    status_code = 503
    retryable = True


class InternalError(DispatchError):
    """Raised for unexpected failures."""
    pass


class OrderNotFoundError(NotFoundError):
    pass


class DriverNotFoundError(NotFoundError):
    pass


class CustomerNotFoundError(NotFoundError):
    pass


class VehicleTypeNotFoundError(NotFoundError):
    pass


class OrderStateConflictError(ConflictError):
    """Raised when the order status does not allow the operation."""
    pass


class DriverNotAvailableError(ConflictError):
    """Raised when a driver cannot take (or be given) an order right now."""
    pass


class CustomerBlockedError(ConflictError):
    pass


class InvalidStatusError(InvalidRequestError):
    pass
