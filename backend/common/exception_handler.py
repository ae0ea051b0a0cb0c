"""DRF exception handling that surfaces dependency failures as 503."""

import logging

from django.db import DatabaseError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from services.job_management.exceptions import ServiceError

logger = logging.getLogger(__name__)


def service_error_response(exc: ServiceError) -> Response:
    """Render a domain failure as the plain-language payload clients show."""
    return Response(
        {
            'success': False,
            'error': exc.error_code,
            'message': str(exc),
        },
        status=exc.status_code,
    )


def dependency_aware_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, ServiceError):
        return service_error_response(exc)

    if isinstance(exc, DatabaseError):
        view = context.get("view")
        logger.exception("Database unavailable while handling %s", view.__class__.__name__ if view else "request")
        return Response(
            {
                'success': False,
                'error': 'service_unavailable',
                'message': 'Service temporarily unavailable. Please try again shortly.',
            },
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return None
