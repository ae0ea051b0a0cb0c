"""
Customer-side booking operations.

Checkout creates a pending booking and immediately enters dispatch; the
customer may later cancel it, and an admin may re-dispatch a booking that
ran out of technicians.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from bookings.models import Booking, JobOffer
from technicians.models import TechnicianProfile
from realtime.notifications import notify_admin, notify_technician
from services.commission.resolver import to_amount
from .exceptions import BookingNotFoundError, InvalidStateError
from .lookups import get_booking

logger = logging.getLogger(__name__)

User = get_user_model()


@dataclass
class BookingResult:
    """Result object for booking operations."""
    booking: Booking
    message: str = ""
    dispatch_state: Optional[str] = None


def create_booking(
    caller,
    service_type: str,
    amount=None,
    service_name: str = "",
    scheduled_date=None,
    scheduled_time=None,
    address: str = "",
    latitude=None,
    longitude=None,
    payment_method: str = "cash",
    notes: str = "",
    customer_name: str = "",
    customer_phone: str = "",
    customer_email: str = "",
) -> BookingResult:
    """
    Persist a confirmed checkout as a pending booking and start dispatch.

    The booking and its first dispatch attempt commit together: if dispatch
    hits a database failure the booking is not kept and the error propagates
    (rendered as 503), so no booking is left without an offer or a
    no-technician flag.

    Raises:
        InvalidAmountError: If an amount is given but is not a valid total
    """
    if amount is not None:
        amount = to_amount(amount)

    from services.matching import start_dispatch

    customer = User.objects.get(pk=caller.user_id)

    with transaction.atomic():
        booking = Booking.objects.create(
            customer=customer,
            customer_name=customer_name or customer.display_name,
            customer_phone=customer_phone or customer.phone_number,
            customer_email=customer_email or customer.email,
            service_type=service_type,
            service_name=service_name or service_type,
            scheduled_date=scheduled_date,
            scheduled_time=scheduled_time,
            address=address,
            latitude=latitude,
            longitude=longitude,
            amount=amount,
            payment_method=payment_method,
            notes=notes,
            status=Booking.STATUS_PENDING,
        )
        result = start_dispatch(booking)

    logger.info("Booking %s created by customer %s for %s", booking.id, customer.id, service_type)

    if result.offer is not None:
        message = "Booking confirmed. Finding a technician for you..."
    else:
        message = "Booking confirmed. No technician is available right now, our team will assign one shortly."

    return BookingResult(booking=result.booking, message=message, dispatch_state=result.state)


def get_customer_bookings(caller):
    return list(
        Booking.objects.filter(customer_id=caller.user_id)
        .select_related("technician__user")
        .order_by("-created_at", "-id")
    )


def cancel_by_customer(caller, booking_id, reason: str = "") -> BookingResult:
    """
    Cancel a booking on behalf of its customer.

    Any pending offer is closed and an assigned technician is released.
    """
    with transaction.atomic():
        booking = get_booking(booking_id, lock=True)
        if booking.customer_id != caller.user_id:
            raise BookingNotFoundError()

        if booking.status in (Booking.STATUS_COMPLETED, Booking.STATUS_CANCELLED):
            raise InvalidStateError(f"Cannot cancel - booking is already {booking.status}")

        now = timezone.now()
        pending_offers = list(
            JobOffer.objects.select_related("technician__user")
            .filter(booking=booking, status=JobOffer.STATUS_PENDING)
        )
        JobOffer.objects.filter(booking=booking, status=JobOffer.STATUS_PENDING).update(
            status=JobOffer.STATUS_EXPIRED,
            responded_at=now,
        )

        technician = booking.technician
        booking.status = Booking.STATUS_CANCELLED
        booking.cancelled_at = now
        booking.cancellation_reason = reason or "Cancelled by customer"
        booking.cancelled_by = "customer"
        booking.save(update_fields=["status", "cancelled_at", "cancellation_reason", "cancelled_by", "updated_at"])

        if technician is not None:
            TechnicianProfile.objects.filter(pk=technician.pk, status=TechnicianProfile.STATUS_BUSY).update(
                status=TechnicianProfile.STATUS_ACTIVE,
                last_active=now,
            )

    logger.info("Booking %s cancelled by customer %s", booking.id, caller.user_id)

    # Notify assigned technician and anyone still looking at an offer
    notified = set()
    if technician is not None:
        notify_technician(technician, booking, "Booking Cancelled", "The customer cancelled this booking.", "booking_cancelled")
        notified.add(technician.id)
    for offer in pending_offers:
        if offer.technician_id not in notified:
            notify_technician(
                offer.technician,
                booking,
                "Job Offer Withdrawn",
                "The customer cancelled this booking.",
                "offer_withdrawn",
                extra={"offer_id": offer.id},
            )
            notified.add(offer.technician_id)

    notify_admin(
        booking,
        "Booking Cancelled",
        f"Customer cancelled booking {booking.booking_reference}.",
        "booking_cancelled",
    )
    return BookingResult(booking=booking, message="Booking cancelled successfully")


def dispatch_booking(booking_id) -> BookingResult:
    """Admin entry point: start a new dispatch attempt for an unassigned booking."""
    from services.matching import start_dispatch

    booking = get_booking(booking_id)
    result = start_dispatch(booking)
    return BookingResult(booking=result.booking, message=result.message, dispatch_state=result.state)
