"""Resolve callers and ids to the rows core operations work on."""

from bookings.models import Booking
from technicians.models import TechnicianProfile
from .exceptions import BookingNotFoundError, TechnicianNotFoundError


def get_technician_for(caller, lock: bool = False) -> TechnicianProfile:
    """
    The TechnicianProfile behind a technician caller.

    Raises:
        TechnicianNotFoundError: If the caller has no technician profile
    """
    qs = TechnicianProfile.objects.select_related("user")
    if lock:
        qs = qs.select_for_update()
    try:
        return qs.get(user_id=caller.user_id)
    except TechnicianProfile.DoesNotExist:
        raise TechnicianNotFoundError()


def get_booking(booking_id, lock: bool = False) -> Booking:
    qs = Booking.objects.select_related("customer", "technician__user")
    if lock:
        # select_for_update cannot lock the nullable side of an outer join
        qs = Booking.objects.select_for_update()
    try:
        return qs.get(pk=booking_id)
    except (Booking.DoesNotExist, ValueError, TypeError):
        raise BookingNotFoundError()
