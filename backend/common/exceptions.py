"""
DRF exception handler producing the dispatch failure body:

    {"success": false, "error": <kind>, "message": <text>}
"""

import logging

from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from services.order_management.exceptions import DispatchError

logger = logging.getLogger(__name__)

# DRF exceptions -> failure kind
DRF_ERROR_KINDS = {
    exceptions.ValidationError: "validation",
    exceptions.ParseError: "validation",
    exceptions.NotAuthenticated: "unauthorized",
    exceptions.AuthenticationFailed: "unauthorized",
    exceptions.PermissionDenied: "forbidden",
    exceptions.NotFound: "not_found",
    exceptions.MethodNotAllowed: "method_not_allowed",
    exceptions.Throttled: "throttled",
}


def failure_body(error: str, message: str, **extra) -> dict:
    return {"success": False, "error": error, "message": message, **extra}


def dispatch_exception_handler(exc, context):
    if isinstance(exc, DispatchError):
        if exc.status_code >= 500:
            logger.error("Dispatch failure in %s: %s", _view_name(context), exc.message)
        return Response(
            failure_body(exc.error_code, exc.message or exc.error_code),
            status=exc.status_code,
        )

    response = exception_handler(exc, context)
    if response is None:
        # Not a DRF exception either
        logger.exception("Unhandled error in %s", _view_name(context), exc_info=exc)
        return Response(
            failure_body("internal", "Internal server error"),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    kind = next(
        (kind for exc_class, kind in DRF_ERROR_KINDS.items() if isinstance(exc, exc_class)),
        "error",
    )
    if isinstance(exc, exceptions.ValidationError):
        response.data = failure_body(kind, "Invalid request", details=response.data)
    else:
        detail = response.data.get("detail", "") if isinstance(response.data, dict) else response.data
        response.data = failure_body(kind, str(detail))
    return response


def _view_name(context) -> str:
    view = context.get("view") if context else None
    return type(view).__name__ if view is not None else "unknown view"
