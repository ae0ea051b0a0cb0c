"""
Notification helpers: persist a Notification row and push it over WebSocket.

Every helper is best-effort. A failure is logged and reported through the
return value, never raised, so the booking or offer transition that
triggered it is not rolled back.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction

from .models import Notification

logger = logging.getLogger(__name__)

ADMIN_GROUP = "admins"


def user_group(user_id) -> str:
    return f"user_{user_id}"


def _booking_data(booking) -> Dict[str, Any]:
    from bookings.serializers import BookingSummarySerializer
    # Channel layers msgpack the payload: dates and decimals must be plain JSON
    return json.loads(json.dumps(BookingSummarySerializer(booking).data, cls=DjangoJSONEncoder))


def _payload(notification: Notification, booking, extra: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "type": "notification",
        "notification_id": notification.id,
        "event_type": notification.event_type,
        "title": notification.title,
        "message": notification.message,
        "booking_id": booking.id if booking is not None else None,
        "booking": _booking_data(booking) if booking is not None else None,
        **(extra or {}),
    }


def _push(group: str, payload: Dict[str, Any]):
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning("No channel layer available, notification %s stored only", payload["notification_id"])
        return

    logger.debug("WS -> %s: %s", group, payload["event_type"])
    async_to_sync(channel_layer.group_send)(group, payload)


def _push_after_commit(group: str, payload: Dict[str, Any]):
    try:
        _push(group, payload)
    except Exception:
        logger.exception("Failed to push notification %s to %s", payload["notification_id"], group)


def _deliver(
    *,
    recipient_id: Optional[int],
    recipient_type: str,
    group: str,
    booking,
    title: str,
    message: str,
    event_type: str,
    extra: Optional[Dict[str, Any]] = None,
) -> bool:
    """
    Store the notification now and push it once the surrounding transaction
    commits. A rolled back transaction takes the row with it and nothing is
    pushed, so clients never see offers or bookings that do not exist.
    """
    try:
        # Savepoint: a failed insert must not poison the caller's transaction
        with transaction.atomic():
            notification = Notification.objects.create(
                recipient_id=recipient_id,
                recipient_type=recipient_type,
                event_type=event_type,
                title=title,
                message=message,
                booking=booking,
            )
        # Snapshot the booking as of this transition, not as of commit
        payload = _payload(notification, booking, extra)
    except Exception:
        logger.exception(
            "Failed to deliver %s notification %r for booking %s",
            recipient_type, event_type, getattr(booking, "id", None)
        )
        return False

    transaction.on_commit(lambda: _push_after_commit(group, payload))
    return True


def notify_customer(booking, title: str, message: str, event_type: str, extra: Dict[str, Any] = None) -> bool:
    """Notify the customer who owns `booking` through user_<customer_id>."""
    if not booking.customer_id:
        return False
    return _deliver(
        recipient_id=booking.customer_id,
        recipient_type=Notification.RECIPIENT_CUSTOMER,
        group=user_group(booking.customer_id),
        booking=booking,
        title=title,
        message=message,
        event_type=event_type,
        extra=extra,
    )


def notify_technician(technician, booking, title: str, message: str, event_type: str, extra: Dict[str, Any] = None) -> bool:
    """
    Notify a technician through their personal group: user_<user_id>

    Args:
        technician: TechnicianProfile instance
        booking: related Booking (may be None)
        title: short heading shown in the app
        message: body text
        event_type: machine-readable event, e.g. new_job_offer, offer_expired
        extra: additional payload data (offer_id, expires_at, ...)
    """
    if technician is None:
        return False
    return _deliver(
        recipient_id=technician.user_id,
        recipient_type=Notification.RECIPIENT_TECHNICIAN,
        group=user_group(technician.user_id),
        booking=booking,
        title=title,
        message=message,
        event_type=event_type,
        extra=extra,
    )


def notify_admin(booking, title: str, message: str, event_type: str, extra: Dict[str, Any] = None) -> bool:
    """Broadcast to every connected admin."""
    return _deliver(
        recipient_id=None,
        recipient_type=Notification.RECIPIENT_ADMIN,
        group=ADMIN_GROUP,
        booking=booking,
        title=title,
        message=message,
        event_type=event_type,
        extra=extra,
    )
