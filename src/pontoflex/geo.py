"""Great-circle distance and geofence checks for work locations."""
import math
from typing import Optional

from pontoflex.core.constants import DEFAULT_GEOFENCE_RADIUS_M, EARTH_RADIUS_M


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in meters between two coordinates (haversine formula).

    Args:
        lat1, lon1: First point in decimal degrees
        lat2, lon2: Second point in decimal degrees

    Returns:
        Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (math.sin(d_phi / 2) ** 2
         + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def within_geofence(
    distance_m: float,
    radius_m: Optional[float] = None,
    default_radius_m: float = DEFAULT_GEOFENCE_RADIUS_M,
) -> bool:
    """True if distance is inside the radius. Unset or zero radius uses the default."""
    return distance_m <= (radius_m or default_radius_m)


def has_coordinates(location: Optional[dict]) -> bool:
    """True if a work location dict carries usable latitude/longitude."""
    if not location:
        return False
    return location.get("latitude") is not None and location.get("longitude") is not None
