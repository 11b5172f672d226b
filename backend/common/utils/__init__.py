"""Common utility functions."""

from .geo import calculate_distance, bounding_box

__all__ = [
    "calculate_distance",
    "bounding_box",
]
