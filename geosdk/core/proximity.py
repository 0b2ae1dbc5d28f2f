"""Distance helpers for reverse geocoding."""
import math
from typing import List

EARTH_RADIUS_M = 6371000.0

# Haversine distance in meters from a bound (lat, lat, lon) query point to
# each row's latitude/longitude; the placeholders appear in that order
HAVERSINE_SQL = (
    f"2 * {EARTH_RADIUS_M} * asin(least(1.0, sqrt("
    "pow(sin(radians(latitude - ?) / 2), 2) + "
    "cos(radians(?)) * cos(radians(latitude)) * "
    "pow(sin(radians(longitude - ?) / 2), 2))))"
)


def calculate_distance_m(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """
    Calculate distance between two points using Haversine formula.

    Args:
        lon1: Longitude of first point
        lat1: Latitude of first point
        lon2: Longitude of second point
        lat2: Latitude of second point

    Returns:
        Distance in meters
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    c = 2 * math.asin(min(1.0, math.sqrt(a)))

    return EARTH_RADIUS_M * c


def haversine_params(lat: float, lon: float) -> List[float]:
    """Bound values for HAVERSINE_SQL, in placeholder order."""
    return [float(lat), float(lat), float(lon)]
