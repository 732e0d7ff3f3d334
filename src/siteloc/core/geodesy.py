"""Great-circle distance helpers."""

from __future__ import annotations

import math

from ..config import EARTH_RADIUS_M
from ..models.types import GeoCoordinate


def haversine_m(a: GeoCoordinate, b: GeoCoordinate) -> float:
    """Return the great-circle distance between *a* and *b* in meters.

    A spherical earth is assumed; the error against the WGS84 ellipsoid stays
    well below a percent, which is plenty for matching photos to a property.
    """

    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)
    h = math.sin(d_lat / 2.0) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2.0) ** 2
    # Rounding can push ``h`` a hair above one for antipodal points.
    h = min(1.0, max(0.0, h))
    return 2.0 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


__all__ = ["haversine_m"]
