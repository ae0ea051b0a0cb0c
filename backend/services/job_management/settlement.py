"""
Acceptance and completion settlement.

Moves an assigned booking and its technician through the rest of the job:
assignment on offer acceptance, start, completion with the commission split
written as an earnings record, and cancellation by the technician.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from bookings.models import Booking, EarningsRecord, JobOffer
from technicians.models import TechnicianProfile
from realtime.notifications import notify_admin, notify_customer
from services.commission.resolver import CommissionSplit, resolve_commission
from .exceptions import (
    InvalidStateError,
    NotAssignedToYouError,
    TechnicianUnavailableError,
)
from .lookups import get_booking, get_technician_for

logger = logging.getLogger(__name__)


@dataclass
class SettlementResult:
    """Result object for settlement operations."""
    booking: Booking
    message: str = ""
    split: Optional[CommissionSplit] = None
    earnings: Optional[EarningsRecord] = None


def _assigned_booking(caller, booking_id):
    """Lock a booking and check it belongs to the calling technician."""
    technician = get_technician_for(caller)
    booking = get_booking(booking_id, lock=True)
    if booking.technician_id != technician.id:
        raise NotAssignedToYouError()
    return technician, booking


def claim_booking(booking_id, technician_id) -> Booking:
    """
    Assign an open, unassigned booking to a technician and mark them busy.

    Both writes are conditional updates, so of two concurrent claims only
    one can succeed. Callers run this inside their own transaction so a
    failed technician update also reverts the booking update.

    Raises:
        InvalidStateError: If the booking was assigned or closed meanwhile
        TechnicianUnavailableError: If the technician is not in a dispatchable status
    """
    now = timezone.now()

    assigned = Booking.objects.filter(
        pk=booking_id,
        status__in=Booking.OPEN_STATUSES,
        technician__isnull=True,
    ).update(
        status=Booking.STATUS_ASSIGNED,
        technician_id=technician_id,
        assigned_at=now,
        no_technician_available=False,
        updated_at=now,
    )
    if not assigned:
        raise InvalidStateError("This booking is no longer available")

    busy = TechnicianProfile.objects.filter(
        pk=technician_id,
        status__in=TechnicianProfile.DISPATCHABLE_STATUSES,
    ).update(status=TechnicianProfile.STATUS_BUSY, last_active=now)
    if not busy:
        raise TechnicianUnavailableError()

    return Booking.objects.select_related("customer", "technician__user").get(pk=booking_id)


def assign_on_accept(offer: JobOffer) -> Booking:
    """
    Assign the offer's booking to its technician and mark the technician busy.

    Must run inside the transaction that accepted the offer, so a failure
    here also reverts the acceptance.
    """
    booking = claim_booking(offer.booking_id, offer.technician_id)
    technician_name = booking.technician.display_name

    logger.info("Booking %s assigned to technician %s via offer %s", booking.id, offer.technician_id, offer.id)

    notify_customer(
        booking,
        "Technician Assigned",
        f"{technician_name} has been assigned to your {booking.service_name or booking.service_type} booking.",
        "technician_assigned",
    )
    notify_admin(
        booking,
        "Job Accepted",
        f"{technician_name} accepted booking {booking.booking_reference}.",
        "job_accepted",
    )
    return booking


@transaction.atomic
def start_booking(caller, booking_id) -> SettlementResult:
    """Assigned technician starts work: assigned -> in_progress."""
    technician, booking = _assigned_booking(caller, booking_id)

    if booking.status != Booking.STATUS_ASSIGNED:
        raise InvalidStateError(f"Cannot start - booking is {booking.status}")

    booking.status = Booking.STATUS_IN_PROGRESS
    booking.started_at = timezone.now()
    booking.save(update_fields=["status", "started_at", "updated_at"])

    notify_customer(
        booking,
        "Service Started",
        f"{technician.display_name} has started working on your booking.",
        "booking_started",
    )
    notify_admin(
        booking,
        "Job Started",
        f"Booking {booking.booking_reference} is in progress.",
        "job_started",
    )
    return SettlementResult(booking=booking, message="Job started")


def complete_booking(caller, booking_id, notes: Optional[str] = None) -> SettlementResult:
    """
    Complete an assigned booking and record the commission split.

    Every check runs before the first write. Inside one transaction the
    booking is completed with an embedded earnings snapshot, the technician
    is released with an incremented job count, and the earnings record is
    written last.

    Raises:
        BookingNotFoundError: If the booking does not exist
        NotAssignedToYouError: If the booking is assigned to someone else
        InvalidStateError: If the booking is not assigned or in progress
        InvalidAmountError: If the booking amount is missing or invalid
    """
    with transaction.atomic():
        technician, booking = _assigned_booking(caller, booking_id)

        if booking.status not in Booking.ACTIVE_STATUSES:
            raise InvalidStateError(f"Cannot complete - booking is {booking.status}")

        split = resolve_commission(booking.amount)
        now = timezone.now()

        booking.status = Booking.STATUS_COMPLETED
        booking.completed_at = now
        booking.earnings_snapshot = split.as_dict()
        update_fields = ["status", "completed_at", "earnings_snapshot", "updated_at"]
        if notes:
            booking.notes = notes
            update_fields.append("notes")
        booking.save(update_fields=update_fields)

        TechnicianProfile.objects.filter(pk=technician.pk).update(
            status=TechnicianProfile.STATUS_ACTIVE,
            completed_bookings=F("completed_bookings") + 1,
            last_active=now,
        )

        earnings = EarningsRecord.objects.create(
            booking=booking,
            technician=technician,
            total_amount=split.total_amount,
            commission_percentage=split.percentage_used,
            technician_earnings=split.technician_earnings,
            admin_commission=split.admin_commission,
        )

    logger.info(
        "Booking %s completed by technician %s: total=%s technician=%s admin=%s",
        booking.id, technician.id, split.total_amount, split.technician_earnings, split.admin_commission
    )

    notify_customer(
        booking,
        "Service Completed",
        "Your service has been completed. Please rate your technician.",
        "booking_completed",
        extra={"rating_requested": True},
    )
    notify_admin(
        booking,
        "Job Completed",
        f"{technician.display_name} completed booking {booking.booking_reference}. "
        f"Commission: {split.admin_commission}.",
        "job_completed",
    )

    return SettlementResult(
        booking=booking,
        message="Job completed successfully",
        split=split,
        earnings=earnings,
    )


def cancel_assigned(caller, booking_id, reason: str = "") -> SettlementResult:
    """
    Technician drops an assigned booking. The booking is cancelled and is
    not dispatched again.
    """
    with transaction.atomic():
        technician, booking = _assigned_booking(caller, booking_id)

        if booking.status not in Booking.ACTIVE_STATUSES:
            raise InvalidStateError(f"Cannot cancel - booking is {booking.status}")

        now = timezone.now()
        booking.status = Booking.STATUS_CANCELLED
        booking.cancelled_at = now
        booking.cancellation_reason = reason or "Cancelled by technician"
        booking.cancelled_by = "technician"
        booking.save(update_fields=["status", "cancelled_at", "cancellation_reason", "cancelled_by", "updated_at"])

        TechnicianProfile.objects.filter(pk=technician.pk, status=TechnicianProfile.STATUS_BUSY).update(
            status=TechnicianProfile.STATUS_ACTIVE,
            last_active=now,
        )

    logger.info("Booking %s cancelled by technician %s", booking.id, technician.id)

    notify_customer(
        booking,
        "Booking Cancelled",
        "Your technician had to cancel this booking. Please contact support to reschedule.",
        "booking_cancelled",
    )
    notify_admin(
        booking,
        "Job Cancelled by Technician",
        f"{technician.display_name} cancelled booking {booking.booking_reference}: {booking.cancellation_reason}",
        "job_cancelled",
    )
    return SettlementResult(booking=booking, message="Job cancelled")
