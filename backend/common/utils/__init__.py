"""Common utility functions."""

from .geo import calculate_distance, to_location

__all__ = [
    "calculate_distance",
    "to_location",
]
