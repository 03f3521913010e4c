"""
Core views providing infrastructure endpoints and response helpers.

health_check is used by Docker health checks and load balancers.
error_response turns a failed ServiceResult into a DRF Response using a
single error-code to HTTP-status table, so every endpoint reports the same
failure category with the same status.
"""

import logging

from django.db import connection
from django.http import JsonResponse
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)

# Error codes that are not plain 400s. Everything unlisted maps to 400.
ERROR_STATUS_CODES = {
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PAYMENT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PAYOUT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "QUOTATION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PROFILE_MISSING": status.HTTP_404_NOT_FOUND,
    "STRIPE_NOT_CONFIGURED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "STRIPE_WEBHOOK_NOT_CONFIGURED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "INTERNAL_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "STRIPE_UNAVAILABLE": status.HTTP_502_BAD_GATEWAY,
    "STRIPE_RATE_LIMITED": status.HTTP_502_BAD_GATEWAY,
    "STRIPE_TIMEOUT": status.HTTP_502_BAD_GATEWAY,
}


def error_response(result) -> Response:
    """Build the HTTP response for a failed ServiceResult."""
    http_status = ERROR_STATUS_CODES.get(
        result.error_code, status.HTTP_400_BAD_REQUEST
    )
    return Response(result.to_response(), status=http_status)


def invalid_request_response(serializer) -> Response:
    """400 response for a request body that failed serializer validation."""
    return Response(
        {
            "error": "Invalid request",
            "error_code": "VALIDATION_ERROR",
            "errors": serializer.errors,
        },
        status=status.HTTP_400_BAD_REQUEST,
    )


def api_exception_handler(exc, context):
    """
    DRF exception handler that answers unhandled errors with INTERNAL_ERROR.

    DRF's own exceptions (auth failures, parse errors) keep their default
    response. Anything else is logged with its traceback and reported as a
    bare 500 so no internals reach the client.
    """
    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    logger.error(
        "Unhandled API error",
        extra={"view": type(view).__name__ if view else None},
        exc_info=exc,
    )
    return Response(
        {"error": "Internal server error", "error_code": "INTERNAL_ERROR"},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    Returns:
        JsonResponse with status and component health:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "disconnected"
        - cache: "connected" or "disconnected"

    HTTP Status Codes:
        200: All systems operational
        503: Database unreachable
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    # Cache failure is not critical - report it but stay healthy
    try:
        from django.core.cache import cache

        cache.set("health_check", "ok", timeout=1)
        if cache.get("health_check") == "ok":
            health_status["cache"] = "connected"
        else:
            health_status["cache"] = "disconnected"
    except Exception:
        health_status["cache"] = "disconnected"

    status_code = 200 if is_healthy else 503
    return JsonResponse(health_status, status=status_code)
