"""Distance and speed helpers for GPS fixes."""

import math
from datetime import datetime

from live_trains.models.trains import SpeedCategory

# Earth's radius in kilometers for haversine calculation
EARTH_RADIUS_KM = 6371.0

SLOW_BELOW_KMH = 50.0
MODERATE_BELOW_KMH = 100.0
FAST_BELOW_KMH = 160.0


def haversine_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the great-circle distance between two points in kilometers.

    Args:
        lat1, lon1: First point coordinates in degrees.
        lat2, lon2: Second point coordinates in degrees.

    Returns:
        Distance in kilometers.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def speed_kmh(
    lat1: float, lon1: float, time1: datetime, lat2: float, lon2: float, time2: datetime
) -> float | None:
    """Average speed between two fixes in km/h.

    Returns:
        Speed in km/h, or None if no time elapsed between the fixes.
    """
    elapsed_hours = (time2 - time1).total_seconds() / 3600
    if elapsed_hours <= 0:
        return None
    return haversine_distance_km(lat1, lon1, lat2, lon2) / elapsed_hours


def categorize_speed(kmh: float) -> SpeedCategory:
    """Map a speed in km/h to its display bucket."""
    if kmh < SLOW_BELOW_KMH:
        return SpeedCategory.SLOW
    if kmh < MODERATE_BELOW_KMH:
        return SpeedCategory.MODERATE
    if kmh < FAST_BELOW_KMH:
        return SpeedCategory.FAST
    return SpeedCategory.HIGH_SPEED
