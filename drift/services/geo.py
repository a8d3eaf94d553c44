"""
Geospatial helpers.

Great-circle distances in miles, computed in Python so the candidate filter can
rank results without a GIS extension in the database.
"""

from dataclasses import dataclass
from math import asin, cos, radians, sin, sqrt
from typing import Optional

from drift.core.exceptions import InvalidArgumentError


EARTH_RADIUS_MILES = 3959.0


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""

    lat: float
    lon: float

    def __post_init__(self):
        validate_coordinates(self.lat, self.lon)


def validate_coordinates(lat: float, lon: float) -> None:
    """Reject coordinates outside [-90, 90] / [-180, 180]."""
    if lat is None or lon is None:
        raise InvalidArgumentError("Latitude and longitude are both required.")
    if not -90.0 <= lat <= 90.0:
        raise InvalidArgumentError(f"Latitude {lat} is out of range [-90, 90].")
    if not -180.0 <= lon <= 180.0:
        raise InvalidArgumentError(f"Longitude {lon} is out of range [-180, 180].")


def distance_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance in miles between two coordinates."""
    validate_coordinates(lat1, lon1)
    validate_coordinates(lat2, lon2)

    phi1 = radians(lat1)
    phi2 = radians(lat2)
    dphi = radians(lat2 - lat1)
    dlambda = radians(lon2 - lon1)

    h = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlambda / 2) ** 2
    # rounding can leave h a hair above 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_MILES * asin(sqrt(h))


def point_distance(a: GeoPoint, b: GeoPoint) -> float:
    return distance_miles(a.lat, a.lon, b.lat, b.lon)


def make_point(lat: Optional[float], lon: Optional[float]) -> Optional[GeoPoint]:
    """Build a point from nullable columns; None unless both halves are set."""
    if lat is None or lon is None:
        return None
    return GeoPoint(lat, lon)
