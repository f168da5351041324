"""
Check-in location evaluation.
Uses the Haversine formula to measure distance between two GPS points.
"""
import math
from dataclasses import dataclass
from typing import Optional

EARTH_RADIUS_M = 6371000.0

DEFAULT_CHECK_IN_RADIUS_M = 200.0

LOCATION_UNAVAILABLE = "Location unavailable"


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points on Earth.

    Args:
        lat1: Latitude of first point (degrees)
        lon1: Longitude of first point (degrees)
        lat2: Latitude of second point (degrees)
        lon2: Longitude of second point (degrees)

    Returns:
        Distance in meters. NaN inputs propagate.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


@dataclass(frozen=True)
class LocationCheck:
    has_location: bool
    distance_m: Optional[float]
    is_within_range: bool


def _usable(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


def has_valid_reading(latitude: Optional[float], longitude: Optional[float]) -> bool:
    # Browsers without permission report 0/0; treat as no reading.
    if not (_usable(latitude) and _usable(longitude)):
        return False
    return float(latitude) != 0.0 and float(longitude) != 0.0


def evaluate_location(
    latitude: Optional[float],
    longitude: Optional[float],
    site_latitude: Optional[float] = None,
    site_longitude: Optional[float] = None,
    radius_m: float = DEFAULT_CHECK_IN_RADIUS_M,
) -> LocationCheck:
    """
    Decide whether a reading counts as "on site".

    With stored site coordinates the reading is geofenced against radius_m.
    Without them any valid reading is accepted at distance 0.
    A missing reading never blocks the caller; it is recorded as out of range.
    """
    if not has_valid_reading(latitude, longitude):
        return LocationCheck(has_location=False, distance_m=None, is_within_range=False)

    if _usable(site_latitude) and _usable(site_longitude):
        distance = haversine_distance(
            float(latitude), float(longitude), float(site_latitude), float(site_longitude)
        )
        return LocationCheck(has_location=True, distance_m=distance, is_within_range=distance <= radius_m)

    return LocationCheck(has_location=True, distance_m=0.0, is_within_range=True)
