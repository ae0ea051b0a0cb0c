"""Customer ratings of completed bookings."""

import logging

from django.db import IntegrityError, transaction
from django.db.models import Avg, Count

from bookings.models import Booking, Rating
from technicians.models import TechnicianProfile
from .exceptions import AlreadyRatedError, BookingNotFoundError, InvalidRatingError, InvalidStateError
from .lookups import get_booking

logger = logging.getLogger(__name__)


def _recompute_technician_rating(technician_id):
    aggregate = Rating.objects.filter(technician_id=technician_id).aggregate(avg=Avg("score"), count=Count("id"))
    TechnicianProfile.objects.filter(pk=technician_id).update(
        average_rating=round(aggregate["avg"] or 0, 2),
        rating_count=aggregate["count"],
    )


def submit_rating(caller, booking_id, score, comment: str = "") -> Rating:
    """
    Rate the technician of a completed booking, once per booking.

    Raises:
        BookingNotFoundError: If the booking is not the caller's
        InvalidStateError: If the booking is not completed
        InvalidRatingError: If score is not an integer 1-5
        AlreadyRatedError: If the booking already has a rating
    """
    try:
        score = int(score)
    except (TypeError, ValueError):
        raise InvalidRatingError()
    if not 1 <= score <= 5:
        raise InvalidRatingError()

    booking = get_booking(booking_id)
    if booking.customer_id != caller.user_id:
        raise BookingNotFoundError()
    if booking.status != Booking.STATUS_COMPLETED or booking.technician_id is None:
        raise InvalidStateError("Only completed bookings can be rated")
    if Rating.objects.filter(booking=booking).exists():
        raise AlreadyRatedError()

    try:
        with transaction.atomic():
            rating = Rating.objects.create(
                booking=booking,
                customer_id=caller.user_id,
                technician_id=booking.technician_id,
                score=score,
                comment=comment or "",
            )
            _recompute_technician_rating(booking.technician_id)
    except IntegrityError:
        raise AlreadyRatedError()

    logger.info("Booking %s rated %s by customer %s", booking.id, score, caller.user_id)
    return rating
