"""Great-circle distance between reference localities."""

from __future__ import annotations

import math
from decimal import Decimal

from pcs_kernel.domain.reference import ReferenceData

EARTH_RADIUS_MILES = 3958.8


def great_circle_miles(
    lat1: Decimal,
    lon1: Decimal,
    lat2: Decimal,
    lon2: Decimal,
) -> Decimal:
    """Haversine distance in whole statute miles."""
    phi1, phi2 = math.radians(float(lat1)), math.radians(float(lat2))
    d_phi = phi2 - phi1
    d_lambda = math.radians(float(lon2) - float(lon1))
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return Decimal(round(EARTH_RADIUS_MILES * c))


def locality_distance_miles(
    reference: ReferenceData,
    origin: str | None,
    destination: str | None,
) -> Decimal | None:
    """Straight-line miles between two localities, or None if either lacks coordinates."""
    a = reference.locality(origin)
    b = reference.locality(destination)
    if a is None or b is None or not a.has_coordinates or not b.has_coordinates:
        return None
    return great_circle_miles(a.latitude, a.longitude, b.latitude, b.longitude)
