"""
Technician directory.

Finds the technicians eligible for a booking, ordered by how well they fit
(closest first when the booking has a location, best rated otherwise).
"""

import logging
from typing import Iterable, List, Optional, Tuple

from django.conf import settings

from technicians.models import TechnicianProfile
from common.utils import calculate_distance

logger = logging.getLogger(__name__)


def _service_radius(profile: TechnicianProfile) -> float:
    if profile.service_radius_km is not None:
        return float(profile.service_radius_km)
    return float(getattr(settings, "DISPATCH_DEFAULT_SERVICE_RADIUS_KM", 10))


def _rating_key(profile: TechnicianProfile):
    return (-float(profile.average_rating or 0), profile.id)


def find_candidates(
    service_type: str,
    exclude_ids: Iterable[int] = (),
    location: Optional[Tuple[float, float]] = None,
) -> List[TechnicianProfile]:
    """
    Technicians who may be offered a booking of `service_type`.

    Args:
        service_type: service the booking needs (matched as a case-insensitive
            substring of any specialization)
        exclude_ids: technician ids that already declined or timed out
        location: booking (lat, lon), enables radius filtering and distance order

    Returns:
        Ordered list of TechnicianProfile; each carries a `distance_km`
        attribute (None when either side has no coordinates). Empty when
        nobody matches.
    """
    excluded = {int(pk) for pk in exclude_ids}

    profiles = (
        TechnicianProfile.objects.select_related("user")
        .filter(
            status__in=TechnicianProfile.DISPATCHABLE_STATUSES,
            is_available=True,
        )
        .exclude(id__in=excluded)
    )

    located: List[tuple] = []
    unlocated: List[TechnicianProfile] = []

    for profile in profiles:
        if not profile.handles(service_type):
            continue

        profile.distance_km = None
        if location is None or profile.location is None:
            unlocated.append(profile)
            continue

        distance = calculate_distance(location[0], location[1], *profile.location)
        # Drop technicians outside their own service area
        if distance > _service_radius(profile):
            continue
        profile.distance_km = round(distance, 2)
        located.append((profile, distance))

    located.sort(key=lambda item: (item[1],) + _rating_key(item[0]))
    unlocated.sort(key=_rating_key)

    candidates = [profile for profile, _ in located] + unlocated

    logger.debug(
        "Directory lookup for %r: %d candidates (excluded=%s)",
        service_type, len(candidates), sorted(excluded)
    )
    return candidates
