"""地理编码与距离计算"""
from threat_monitor.geo.distance import (
    RadiusCheck,
    format_distance,
    great_circle_distance_km,
    is_within_radius,
)
from threat_monitor.geo.geocoding import Coordinates, Geocoder, normalize_location_name

__all__ = [
    "RadiusCheck",
    "format_distance",
    "great_circle_distance_km",
    "is_within_radius",
    "Coordinates",
    "Geocoder",
    "normalize_location_name",
]
