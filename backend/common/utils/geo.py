"""
Geographic utility functions.

This module provides core geospatial calculations used throughout the application.
"""

from math import radians, cos, sin, asin, sqrt
from typing import Tuple

EARTH_RADIUS_METERS = 6371000
METERS_PER_DEGREE_LAT = 111000.0


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points in meters using Haversine formula.
    
    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point
    
    Returns:
        Distance in meters
    """
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * asin(sqrt(a))
    return c * EARTH_RADIUS_METERS


def bounding_box(lat: float, lon: float, radius_meters: float) -> Tuple[float, float, float, float]:
    """
    Approximate lat/lon rectangle that contains the circle around a point.

    Used as a database prefilter before the exact haversine check.

    Returns:
        (min_lat, max_lat, min_lon, max_lon)
    """
    lat = float(lat)
    lon = float(lon)
    lat_offset = radius_meters / METERS_PER_DEGREE_LAT
    # Longitude degrees shrink towards the poles; clamp to avoid dividing by ~0
    lon_scale = max(abs(cos(radians(lat))), 0.01)
    lon_offset = radius_meters / (METERS_PER_DEGREE_LAT * lon_scale)
    return (
        round(max(lat - lat_offset, -90.0), 6),
        round(min(lat + lat_offset, 90.0), 6),
        round(max(lon - lon_offset, -180.0), 6),
        round(min(lon + lon_offset, 180.0), 6),
    )
