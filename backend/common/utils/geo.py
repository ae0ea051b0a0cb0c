"""
Geographic utility functions.

This module provides core geospatial calculations used throughout the application.
"""

from math import radians, cos, sin, asin, sqrt
from typing import Optional, Tuple

EARTH_RADIUS_KM = 6371.0

Location = Tuple[float, float]


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points in kilometers using Haversine formula.

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in kilometers
    """
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * asin(sqrt(a))
    return c * EARTH_RADIUS_KM


def to_location(latitude, longitude) -> Optional[Location]:
    """Build a (lat, lon) pair, or None when either coordinate is missing."""
    if latitude is None or longitude is None:
        return None
    return float(latitude), float(longitude)
