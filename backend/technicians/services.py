"""Technician-side operations: on/off duty, job board, assigned bookings and earnings."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from django.db.models import Case, Count, Sum, Value, When
from django.utils import timezone

from bookings.models import Booking, EarningsRecord, JobOffer
from common.utils.geo import calculate_distance
from technicians.models import TechnicianProfile
from services.job_management.exceptions import InvalidStatusFilterError, NotActiveError, NotAssignedToYouError
from services.job_management.lookups import get_technician_for

logger = logging.getLogger(__name__)

# Named groups of booking statuses a technician can list by
BOOKING_STATUS_GROUPS = {
    "active": Booking.ACTIVE_STATUSES,
    "history": (Booking.STATUS_COMPLETED, Booking.STATUS_CANCELLED),
}


@dataclass
class AvailableJobs:
    """Read-only job board for one technician."""
    jobs: List[Dict[str, Any]] = field(default_factory=list)
    message: str = ""


def toggle_availability(caller) -> TechnicianProfile:
    """
    Flip the technician's on/off duty switch.

    Only an `active` technician may toggle; the flip is a single
    conditional update so concurrent toggles cannot lose a write.

    Raises:
        NotActiveError: If the technician's status is not active
    """
    technician = get_technician_for(caller)
    if technician.status != TechnicianProfile.STATUS_ACTIVE:
        raise NotActiveError()

    updated = TechnicianProfile.objects.filter(
        pk=technician.pk,
        status=TechnicianProfile.STATUS_ACTIVE,
    ).update(
        is_available=Case(
            When(is_available=True, then=Value(False)),
            default=Value(True),
        ),
        last_active=timezone.now(),
    )
    if not updated:
        raise NotActiveError()

    technician.refresh_from_db(fields=["is_available", "status", "last_active"])
    logger.info("Technician %s is now %s", technician.id, "available" if technician.is_available else "off duty")
    return technician


def list_available_jobs(caller, now=None) -> AvailableJobs:
    """
    Open bookings this technician could take, closest first.

    Offers are pushed by dispatch; this view only lets the technician see
    what is waiting and which booking is currently offered to them.
    """
    technician = get_technician_for(caller)

    if technician.status not in TechnicianProfile.DISPATCHABLE_STATUSES or not technician.is_available:
        return AvailableJobs(message="You are currently unavailable. Turn on availability to see new jobs.")

    now = now or timezone.now()
    offered = dict(
        JobOffer.objects.filter(
            technician=technician,
            status=JobOffer.STATUS_PENDING,
            expires_at__gte=now,
        ).values_list("booking_id", "id")
    )

    open_bookings = Booking.objects.filter(
        status__in=Booking.OPEN_STATUSES,
        technician__isnull=True,
    ).order_by("created_at", "id")

    jobs = []
    for booking in open_bookings:
        if not technician.handles(booking.service_type):
            continue
        distance = None
        if technician.location and booking.location:
            distance = round(calculate_distance(*technician.location, *booking.location), 2)
        jobs.append({
            "booking": booking,
            "distance_km": distance,
            "offered_to_you": offered.get(booking.id),
        })

    # Closest first, bookings without a distance last
    jobs.sort(key=lambda job: (job["distance_km"] is None, job["distance_km"] or 0))

    return AvailableJobs(jobs=jobs, message="" if jobs else "No jobs available right now.")


def get_technician_bookings(caller, status: Optional[str] = None) -> List[Booking]:
    """
    Bookings assigned to the calling technician, newest first.

    `status` is either a single booking status or one of the groups in
    BOOKING_STATUS_GROUPS ("active" for assigned and in-progress jobs,
    "history" for completed and cancelled ones). None lists everything.

    Raises:
        InvalidStatusFilterError: If `status` is neither a status nor a group
    """
    technician = get_technician_for(caller)
    bookings = Booking.objects.filter(technician=technician).select_related("customer", "technician__user")

    if status:
        if status in BOOKING_STATUS_GROUPS:
            bookings = bookings.filter(status__in=BOOKING_STATUS_GROUPS[status])
        elif status in dict(Booking.STATUS_CHOICES):
            bookings = bookings.filter(status=status)
        else:
            raise InvalidStatusFilterError(f"Unknown booking status filter: {status}")

    return list(bookings.order_by("-created_at", "-id"))


def get_technician_booking(caller, booking_id) -> Booking:
    technician = get_technician_for(caller)
    try:
        return Booking.objects.select_related("customer", "technician__user").get(
            pk=booking_id, technician=technician
        )
    except (Booking.DoesNotExist, ValueError, TypeError):
        raise NotAssignedToYouError()


def get_earnings_summary(caller, recent: int = 10) -> Dict[str, Any]:
    technician = get_technician_for(caller)
    records = EarningsRecord.objects.filter(technician=technician)

    totals = records.aggregate(
        jobs=Count("id"),
        earned=Sum("technician_earnings"),
        revenue=Sum("total_amount"),
    )
    pending = records.filter(payout_status="pending").aggregate(amount=Sum("technician_earnings"))["amount"]

    month_start = timezone.localtime().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    this_month = records.filter(created_at__gte=month_start).aggregate(amount=Sum("technician_earnings"))["amount"]

    return {
        "completedJobs": totals["jobs"],
        "totalEarnings": totals["earned"] or Decimal("0"),
        "totalRevenue": totals["revenue"] or Decimal("0"),
        "pendingPayout": pending or Decimal("0"),
        "thisMonth": this_month or Decimal("0"),
        "averageRating": technician.average_rating,
        "ratingCount": technician.rating_count,
        "recent": list(records.select_related("booking").order_by("-created_at", "-id")[:recent]),
    }
