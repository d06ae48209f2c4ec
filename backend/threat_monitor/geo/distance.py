"""Great-circle distance helpers."""
import math
from typing import NamedTuple

EARTH_RADIUS_KM = 6371.0


class RadiusCheck(NamedTuple):
    within: bool
    distance_km: float


def great_circle_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Haversine distance between two points in kilometers.

    Args:
        lat1, lon1: First point coordinates
        lat2, lon2: Second point coordinates
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def is_within_radius(lat1: float, lon1: float, lat2: float, lon2: float, radius_km: float) -> RadiusCheck:
    distance = great_circle_distance_km(lat1, lon1, lat2, lon2)
    return RadiusCheck(within=distance <= radius_km, distance_km=distance)


def format_distance(km: float) -> str:
    """Meters below 1 km, otherwise kilometers with one decimal."""
    if km < 1:
        return f"{math.floor(km * 1000 + 0.5)} м"
    return f"{km:.1f} км"
