"""
Offer dispatch and expiry handling.

Handles the daisy-chain pattern for job offers:
1. Offer sent to the best matching technician
2. Wait for a response or the offer window to close
3. If expired/rejected, offer to the next technician not yet tried
4. Repeat until accepted or no technicians are left (booking exhausted)

A booking moves NO_OFFER_YET -> OFFER_PENDING -> ASSIGNED | EXHAUSTED.
An exhausted booking may be dispatched again as a new attempt.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from bookings.models import Booking, JobOffer
from bookings.tasks import expire_job_offer_task
from technicians.models import TechnicianProfile
from realtime.notifications import notify_admin, notify_customer, notify_technician
from services.job_management.exceptions import (
    DispatchAlreadyInProgressError,
    InvalidStateError,
    OfferExpiredError,
    TechnicianNotFoundError,
    TechnicianNotQualifiedError,
    TechnicianUnavailableError,
)
from services.job_management.lookups import get_booking, get_technician_for
from services.job_management.settlement import assign_on_accept, claim_booking
from .directory import find_candidates
from .offer_store import ACCEPT, REJECT, create_offer, mark_expired, offer_window, respond, sweep_expired

logger = logging.getLogger(__name__)

NO_OFFER_YET = "no_offer_yet"
OFFER_PENDING = "offer_pending"
ASSIGNED = "assigned"
EXHAUSTED = "exhausted"
CLOSED = "closed"


@dataclass
class DispatchResult:
    """Result object for dispatch operations."""
    booking: Booking
    offer: Optional[JobOffer] = None
    state: str = NO_OFFER_YET
    message: str = ""

    @property
    def forwarded(self) -> bool:
        return self.offer is not None and self.state == OFFER_PENDING


def get_dispatch_state(booking: Booking) -> str:
    if booking.technician_id and booking.status not in Booking.OPEN_STATUSES + (Booking.STATUS_CANCELLED,):
        return ASSIGNED
    if booking.status not in Booking.OPEN_STATUSES:
        return CLOSED
    if JobOffer.objects.filter(booking=booking, status=JobOffer.STATUS_PENDING).exists():
        return OFFER_PENDING
    if booking.no_technician_available:
        return EXHAUSTED
    return NO_OFFER_YET


# ===================== Offer creation =====================

def _schedule_expiry(offer: JobOffer):
    """Enqueue the Celery expiry task once the offer is committed."""
    if not getattr(settings, "JOB_OFFER_SCHEDULE_EXPIRY", True):
        return

    offer_id = offer.id
    countdown = int(offer_window().total_seconds()) + 1

    def _enqueue():
        try:
            expire_job_offer_task.apply_async((offer_id,), countdown=countdown)
        except Exception:
            # The periodic sweep still expires the offer
            logger.exception("Failed to schedule expiry for job offer %s", offer_id)

    transaction.on_commit(_enqueue)


def _mark_exhausted(booking: Booking) -> DispatchResult:
    now = timezone.now()
    Booking.objects.filter(pk=booking.pk).update(
        status=Booking.STATUS_PENDING,
        no_technician_available=True,
        updated_at=now,
    )
    booking.status = Booking.STATUS_PENDING
    booking.no_technician_available = True

    logger.info("No technician available for booking %s (attempt %s)", booking.id, booking.dispatch_attempt)

    notify_customer(
        booking,
        "Technician Unavailable",
        "No technician is available for your booking right now. Our team will assign one shortly.",
        "no_technician_available",
    )
    notify_admin(
        booking,
        "Booking Needs Attention",
        f"No technician available for booking {booking.booking_reference} ({booking.service_type}).",
        "dispatch_exhausted",
    )
    return DispatchResult(
        booking=booking,
        state=EXHAUSTED,
        message="No technicians available at the moment",
    )


def _offer_to_next_candidate(booking: Booking, previous_declines: List[int]) -> DispatchResult:
    candidates = find_candidates(booking.service_type, previous_declines, booking.location)
    if not candidates:
        return _mark_exhausted(booking)

    technician = candidates[0]
    offer = create_offer(booking, technician, previous_declines, technician.distance_km)

    minutes = max(1, int(offer_window().total_seconds() // 60))
    notify_technician(
        technician,
        booking,
        "New Job Offer",
        f"New {booking.service_name or booking.service_type} job. "
        f"You will earn {offer.technician_earnings}. Respond within {minutes} minutes.",
        "new_job_offer",
        extra={
            "offer_id": offer.id,
            "expires_at": offer.expires_at.isoformat(),
        },
    )
    _schedule_expiry(offer)

    return DispatchResult(
        booking=booking,
        offer=offer,
        state=OFFER_PENDING,
        message="Job offered to technician",
    )


# ===================== Entry points =====================

@transaction.atomic
def start_dispatch(booking: Booking) -> DispatchResult:
    """
    Begin a dispatch attempt for a booking.

    Raises:
        DispatchAlreadyInProgressError: If an offer for the booking is pending
        InvalidStateError: If the booking is assigned or closed
    """
    booking = Booking.objects.select_for_update().get(pk=booking.pk)

    state = get_dispatch_state(booking)
    if state == OFFER_PENDING:
        raise DispatchAlreadyInProgressError()
    if state in (ASSIGNED, CLOSED):
        raise InvalidStateError(f"Booking cannot be dispatched - it is {booking.status}")

    booking.dispatch_attempt += 1
    booking.no_technician_available = False
    booking.save(update_fields=["dispatch_attempt", "no_technician_available", "updated_at"])

    logger.info("Starting dispatch attempt %s for booking %s", booking.dispatch_attempt, booking.id)
    return _offer_to_next_candidate(booking, [])


def _cascade(offer: JobOffer) -> DispatchResult:
    """Offer the booking to the next technician after `offer` was declined or timed out."""
    booking = Booking.objects.select_for_update().get(pk=offer.booking_id)

    if not booking.is_open:
        logger.info("Booking %s is %s, not forwarding offer %s", booking.id, booking.status, offer.id)
        return DispatchResult(booking=booking, state=get_dispatch_state(booking), message="Booking is no longer open")

    if offer.attempt != booking.dispatch_attempt:
        logger.info("Offer %s belongs to superseded attempt %s of booking %s", offer.id, offer.attempt, booking.id)
        return DispatchResult(booking=booking, state=get_dispatch_state(booking), message="Dispatch attempt superseded")

    if JobOffer.objects.filter(booking=booking, status=JobOffer.STATUS_PENDING).exists():
        return DispatchResult(booking=booking, state=OFFER_PENDING, message="Booking already has a pending offer")

    declines = [int(pk) for pk in offer.previous_declines or []]
    if offer.technician_id not in declines:
        declines.append(offer.technician_id)

    return _offer_to_next_candidate(booking, declines)


def accept_offer(caller, offer_id) -> DispatchResult:
    """
    Accept a job offer and assign its booking to the caller.

    Raises:
        TechnicianNotFoundError: If the caller has no technician profile
        OfferNotFoundError: If the offer is unknown, not theirs, or already answered
        OfferExpiredError: If the offer window had closed
        InvalidStateError / TechnicianUnavailableError: from settlement
    """
    technician = get_technician_for(caller)
    try:
        with transaction.atomic():
            offer = respond(offer_id, technician, ACCEPT)
            booking = assign_on_accept(offer)
    except OfferExpiredError as exc:
        # The rolled back expiry is re-applied here together with the cascade
        expire_offer_and_dispatch(exc.offer_id)
        raise

    return DispatchResult(
        booking=booking,
        offer=offer,
        state=ASSIGNED,
        message="Job accepted successfully",
    )


def reject_offer(caller, offer_id, reason: str = "") -> DispatchResult:
    """
    Decline a job offer and forward the booking to the next technician.

    Returns:
        DispatchResult whose `forwarded` tells if another technician got the job
    """
    technician = get_technician_for(caller)
    try:
        with transaction.atomic():
            offer = respond(offer_id, technician, REJECT, reason=reason)
            TechnicianProfile.objects.filter(pk=technician.pk).update(last_active=timezone.now())

            notify_admin(
                offer.booking,
                "Job Rejected",
                f"{technician.display_name} rejected booking {offer.booking.booking_reference}"
                + (f": {reason}" if reason else "."),
                "job_rejected",
            )
            result = _cascade(offer)
    except OfferExpiredError as exc:
        expire_offer_and_dispatch(exc.offer_id)
        raise

    result.message = "Job rejected" + (" and forwarded to next technician" if result.forwarded else "")
    return result


def _expire_and_cascade(offer: JobOffer) -> DispatchResult:
    notify_technician(
        offer.technician,
        offer.booking,
        "Job Offer Expired",
        "You did not respond in time. The job was offered to another technician.",
        "offer_expired",
        extra={"offer_id": offer.id},
    )
    return _cascade(offer)


def expire_offer_and_dispatch(offer_id, now=None) -> bool:
    """
    Expire an overdue pending offer, notify its technician, then dispatch
    the next one. Offers that are already decided or still inside their
    window are left alone.

    Returns:
        True if the booking was forwarded to another technician
    """
    now = now or timezone.now()
    with transaction.atomic():
        offer = (
            JobOffer.objects.select_related("booking", "technician__user")
            .filter(id=offer_id)
            .first()
        )
        if offer is None or offer.status != JobOffer.STATUS_PENDING or not offer.is_expired(now):
            return False
        if not mark_expired(offer, now):
            return False
        return _expire_and_cascade(offer).forwarded


def process_offer_timeouts(now=None) -> Tuple[int, int]:
    """
    Expire every overdue offer and dispatch the next technician for each.

    Every offer is handled in its own transaction, so one booking whose
    cascade fails does not hold back the others.

    Returns a tuple of (expired_count, dispatched_count).
    """
    expired = sweep_expired(now or timezone.now(), on_expired=_expire_and_cascade)
    dispatched_count = sum(1 for offer in expired if offer.sweep_result.forwarded)

    if expired:
        logger.info("Offer sweep expired %d offer(s), forwarded %d booking(s)", len(expired), dispatched_count)
    return len(expired), dispatched_count


# ===================== Manual assignment =====================

def get_assignment_candidates(booking_id) -> List[TechnicianProfile]:
    """Technicians an admin may assign to an open booking, best fit first."""
    booking = get_booking(booking_id)
    if not booking.is_open:
        raise InvalidStateError(f"Booking cannot be assigned - it is {booking.status}")
    return find_candidates(booking.service_type, location=booking.location)


def assign_by_admin(caller, booking_id, technician_id) -> DispatchResult:
    """
    Assign an open booking directly to a technician.

    A pending offer for the booking is expired first and its technician is
    told the job was withdrawn. The assignment itself goes through the same
    conditional updates as an accepted offer.

    Raises:
        BookingNotFoundError: If the booking does not exist
        TechnicianNotFoundError: If the technician does not exist
        InvalidStateError: If the booking is already assigned or closed
        TechnicianUnavailableError: If the technician is not active or online
        TechnicianNotQualifiedError: If the technician does not handle the service type
    """
    with transaction.atomic():
        booking = get_booking(booking_id, lock=True)
        if not booking.is_open:
            raise InvalidStateError(f"Booking cannot be assigned - it is {booking.status}")

        try:
            technician = TechnicianProfile.objects.select_related("user").get(pk=technician_id)
        except (TechnicianProfile.DoesNotExist, ValueError, TypeError):
            raise TechnicianNotFoundError()

        if technician.status not in TechnicianProfile.DISPATCHABLE_STATUSES:
            raise TechnicianUnavailableError()
        if not technician.handles(booking.service_type):
            raise TechnicianNotQualifiedError()

        pending = JobOffer.objects.select_related("technician__user").filter(
            booking=booking, status=JobOffer.STATUS_PENDING
        )
        for offer in pending:
            if mark_expired(offer):
                notify_technician(
                    offer.technician,
                    booking,
                    "Job Offer Withdrawn",
                    f"Booking {booking.booking_reference} has been assigned by our team.",
                    "offer_withdrawn",
                    extra={"offer_id": offer.id},
                )

        booking = claim_booking(booking.pk, technician.pk)

        notify_technician(
            technician,
            booking,
            "New Job Assignment",
            f"You have been assigned a {booking.service_name or booking.service_type} job "
            f"({booking.booking_reference}).",
            "job_assigned",
        )
        notify_customer(
            booking,
            "Technician Assigned",
            f"{technician.display_name} has been assigned to your "
            f"{booking.service_name or booking.service_type} booking.",
            "technician_assigned",
        )

    logger.info("Admin %s assigned booking %s to technician %s", caller.user_id, booking.id, technician.id)
    return DispatchResult(
        booking=booking,
        state=ASSIGNED,
        message="Technician assigned successfully",
    )
