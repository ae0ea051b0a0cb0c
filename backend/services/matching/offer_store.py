"""
Job offer persistence.

Creates offers with their monetary terms and expiry deadline and applies
technician responses. Every status change out of `pending` is a conditional
update on `status='pending'`, so concurrent responders and the expiry sweep
can never both win.
"""

import logging
from datetime import timedelta
from typing import Any, Callable, List, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from bookings.models import Booking, JobOffer
from technicians.models import TechnicianProfile
from services.commission import resolve_commission
from services.job_management.exceptions import (
    DuplicatePendingOfferError,
    OfferExpiredError,
    OfferNotFoundError,
)

logger = logging.getLogger(__name__)

ACCEPT = "accept"
REJECT = "reject"

_DECISION_STATUS = {
    ACCEPT: JobOffer.STATUS_ACCEPTED,
    REJECT: JobOffer.STATUS_REJECTED,
}


def offer_window() -> timedelta:
    return timedelta(seconds=getattr(settings, "JOB_OFFER_WINDOW_SECONDS", 300))


def create_offer(
    booking: Booking,
    technician: TechnicianProfile,
    previous_declines: Optional[List[int]] = None,
    distance_km=None,
) -> JobOffer:
    """
    Persist a pending offer of `booking` to `technician`.

    Raises:
        DuplicatePendingOfferError: If the booking already has a pending offer
    """
    if JobOffer.objects.filter(booking=booking, status=JobOffer.STATUS_PENDING).exists():
        raise DuplicatePendingOfferError()

    # Offers for bookings without a price carry zero terms until completion
    split = resolve_commission(booking.amount if booking.amount is not None else 0)
    now = timezone.now()

    try:
        with transaction.atomic():
            offer = JobOffer.objects.create(
                booking=booking,
                technician=technician,
                attempt=booking.dispatch_attempt or 1,
                total_amount=split.total_amount,
                technician_earnings=split.technician_earnings,
                admin_commission=split.admin_commission,
                commission_percentage=split.percentage_used,
                distance_km=distance_km,
                status=JobOffer.STATUS_PENDING,
                previous_declines=list(previous_declines or []),
                created_at=now,
                expires_at=now + offer_window(),
            )
    except IntegrityError:
        raise DuplicatePendingOfferError()

    logger.info(
        "Created job offer %s for booking %s to technician %s (expires %s)",
        offer.id, booking.id, technician.id, offer.expires_at.isoformat()
    )
    return offer


def mark_expired(offer: JobOffer, now=None) -> bool:
    """Flip a pending offer to expired. Returns False if it was already decided."""
    now = now or timezone.now()
    updated = JobOffer.objects.filter(id=offer.id, status=JobOffer.STATUS_PENDING).update(
        status=JobOffer.STATUS_EXPIRED,
        responded_at=now,
    )
    if updated:
        offer.status = JobOffer.STATUS_EXPIRED
        offer.responded_at = now
        logger.info("Job offer %s for booking %s expired", offer.id, offer.booking_id)
    return bool(updated)


def respond(offer_id, technician: TechnicianProfile, decision: str, reason: str = "", now=None) -> JobOffer:
    """
    Apply a technician's accept/reject decision to a pending offer.

    Args:
        offer_id: JobOffer id
        technician: responding TechnicianProfile
        decision: ACCEPT or REJECT
        reason: optional rejection reason

    Returns:
        The updated JobOffer

    Raises:
        OfferNotFoundError: If no pending offer with this id belongs to the technician
        OfferExpiredError: If the response arrived after expires_at
    """
    if decision not in _DECISION_STATUS:
        raise ValueError(f"Unknown offer decision: {decision!r}")

    now = now or timezone.now()

    offer = (
        JobOffer.objects.select_related("booking")
        .filter(id=offer_id, technician=technician, status=JobOffer.STATUS_PENDING)
        .first()
    )
    if offer is None:
        raise OfferNotFoundError()

    if offer.is_expired(now):
        mark_expired(offer, now)
        raise OfferExpiredError(offer_id=offer.id)

    new_status = _DECISION_STATUS[decision]
    fields = {"status": new_status, "responded_at": now}
    if decision == REJECT:
        fields["rejection_reason"] = reason or ""

    updated = JobOffer.objects.filter(id=offer.id, status=JobOffer.STATUS_PENDING).update(**fields)
    if not updated:
        # Lost the race against another response or the expiry sweep
        raise OfferNotFoundError()

    for field, value in fields.items():
        setattr(offer, field, value)

    logger.info("Technician %s %sed job offer %s", technician.id, decision, offer.id)
    return offer


def sweep_expired(now=None, on_expired: Optional[Callable[[JobOffer], Any]] = None) -> List[JobOffer]:
    """
    Expire every pending offer whose deadline has passed.

    Each offer is expired in its own transaction together with
    `on_expired(offer)`. If either fails, that offer stays pending for the
    next sweep and the remaining offers are still processed.

    Returns:
        The offers that were expired and committed, with `on_expired`'s
        return value stored on `offer.sweep_result`
    """
    now = now or timezone.now()
    overdue_ids = list(
        JobOffer.objects
        .filter(status=JobOffer.STATUS_PENDING, expires_at__lt=now)
        .order_by("expires_at", "id")
        .values_list("id", flat=True)
    )

    expired = []
    for offer_id in overdue_ids:
        try:
            with transaction.atomic():
                offer = (
                    JobOffer.objects.select_related("booking", "technician__user")
                    .filter(id=offer_id)
                    .first()
                )
                if offer is None or not mark_expired(offer, now):
                    continue
                offer.sweep_result = on_expired(offer) if on_expired is not None else None
        except Exception:
            logger.exception("Could not expire job offer %s, leaving it for the next sweep", offer_id)
            continue
        expired.append(offer)
    return expired


def get_pending_offers_for(technician: TechnicianProfile, now=None):
    """Live (pending, unexpired) offers addressed to a technician."""
    now = now or timezone.now()
    return list(
        JobOffer.objects.select_related("booking")
        .filter(technician=technician, status=JobOffer.STATUS_PENDING, expires_at__gte=now)
        .order_by("expires_at", "id")
    )
