"""Great-circle distance on a spherical Earth."""

from __future__ import annotations

import math

from gpsfilter._constants import EARTH_RADIUS_M, METERS_PER_SECOND_PER_KNOT
from gpsfilter.models.position import GeoPoint


def haversine_distance(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between *a* and *b* in metres.

    The Haversine intermediate is clamped to ``[0, 1]`` so rounding at
    identical or antipodal points never leaves the domain of ``asin``.
    """
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2.0) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2.0) ** 2
    h = min(1.0, max(0.0, h))
    return 2.0 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


def implied_speed_knots(distance_m: float, elapsed_s: float) -> float:
    """Speed in knots needed to cover *distance_m* in *elapsed_s* seconds."""
    return distance_m / elapsed_s / METERS_PER_SECOND_PER_KNOT
