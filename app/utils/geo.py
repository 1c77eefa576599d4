# app/utils/geo.py
"""
Great-circle helpers for project geofences.
Coordinates are decimal degrees. Invalid input propagates as NaN.
"""

import math
from typing import NamedTuple

EARTH_RADIUS_METERS = 6371000


class LatLon(NamedTuple):
    latitude: float
    longitude: float


def distance_meters(a: LatLon, b: LatLon) -> float:
    """Haversine distance between two points, in meters."""
    lat1, lon1 = math.radians(a[0]), math.radians(a[1])
    lat2, lon2 = math.radians(b[0]), math.radians(b[1])
    d_lat = lat2 - lat1
    d_lon = lon2 - lon1

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def is_inside(point: LatLon, center: LatLon, radius_meters: float) -> bool:
    return distance_meters(point, center) <= radius_meters
