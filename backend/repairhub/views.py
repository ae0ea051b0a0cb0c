import logging
import os

import redis
from channels.layers import get_channel_layer
from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from bookings.models import JobOffer
from bookings.tasks import expire_job_offer_task

logger = logging.getLogger(__name__)


def _check_database(report):
    try:
        report["overdueOffers"] = JobOffer.objects.filter(
            status=JobOffer.STATUS_PENDING,
            expires_at__lt=timezone.now(),
        ).count()
    except DatabaseError as exc:
        return f"unhealthy: {exc}"
    return "healthy"


def _check_redis():
    try:
        client = redis.Redis.from_url(os.getenv("REDIS_URL", settings.CELERY_BROKER_URL), socket_timeout=3)
        client.ping()
    except redis.RedisError as exc:
        return f"unhealthy: {exc}"
    return "healthy"


def _check_channels():
    layer = get_channel_layer()
    if layer is None:
        return "unhealthy: no channel layer"
    return f"healthy ({layer.__class__.__name__})"


@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request):
    """
    Liveness of the dispatch backend and its dependencies.

    Redis is only required when offer expiry is scheduled through Celery;
    otherwise its failure is reported but does not mark the service down.
    `overdueOffers` counts pending offers past their window that the sweep
    has not picked up yet.
    """
    report = {
        "status": "healthy",
        "timestamp": timezone.now().isoformat(),
        "services": {},
    }

    checks = {
        "database": _check_database(report),
        "redis": _check_redis(),
        "channels": _check_channels(),
        "celery": "healthy" if expire_job_offer_task.name else "unhealthy: task not registered",
    }
    report["services"] = checks

    required = ["database", "channels"]
    if settings.JOB_OFFER_SCHEDULE_EXPIRY:
        required += ["redis", "celery"]

    failing = [name for name in required if not checks[name].startswith("healthy")]
    if failing:
        report["status"] = "unhealthy"
        logger.warning("Health check failing: %s", ", ".join(failing))

    return Response(
        report,
        status=status.HTTP_503_SERVICE_UNAVAILABLE if failing else status.HTTP_200_OK,
    )
