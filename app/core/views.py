"""
Core API infrastructure.

api_exception_handler is installed as REST_FRAMEWORK["EXCEPTION_HANDLER"].
It lets DRF render its own exceptions, renders BaseApplicationError with
its to_dict() body and status, and turns anything else into a generic 500
so internal details (tracebacks, connection strings) never reach clients.

health_check backs the /health/ probe.
"""

from __future__ import annotations

import logging

from django.db import DatabaseError, connection
from django.http import JsonResponse
from django_redis import get_redis_connection
from redis.exceptions import RedisError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    view_name = view.__class__.__name__ if view is not None else "unknown"

    if isinstance(exc, BaseApplicationError):
        logger.warning(
            "Application error in %s: %s",
            view_name,
            exc,
            extra={"error_code": exc.error_code},
        )
        return Response(exc.to_dict(), status=exc.http_status)

    logger.exception("Unhandled error in %s", view_name)
    return Response(
        {"error": "Internal server error", "error_code": "INTERNAL_ERROR"},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def health_check(request):
    """
    Liveness/readiness probe.

    The database is required; Redis only backs caching and the lifecycle
    lock, so a Redis outage reports "degraded" but still answers 200.

    Returns:
        JsonResponse {"status", "database", "redis"}, 200 or 503
    """
    body = {"status": "healthy", "database": "unknown", "redis": "unknown"}

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        body["database"] = "connected"
    except DatabaseError:
        logger.exception("Health check database probe failed")
        body["database"] = "disconnected"
        body["status"] = "unhealthy"

    try:
        get_redis_connection("default").ping()
        body["redis"] = "connected"
    except (RedisError, NotImplementedError):
        body["redis"] = "disconnected"
        if body["status"] == "healthy":
            body["status"] = "degraded"

    return JsonResponse(body, status=503 if body["status"] == "unhealthy" else 200)
