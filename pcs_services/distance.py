"""
Distance collaborators for filling in a claim's travel distance.

The estimate service accepts any ``DistanceProvider``; the default one
measures the great-circle distance between reference localities and
scales it to an approximate driving distance. A road-routing provider can
be substituted without touching the engines.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol, runtime_checkable

from pcs_engines.geo import locality_distance_miles
from pcs_kernel.domain.reference import ReferenceData

# Driving routes between CONUS installations run about 15% longer than the
# great-circle line.
DEFAULT_ROAD_FACTOR = Decimal("1.15")


@runtime_checkable
class DistanceProvider(Protocol):
    """Returns whole miles between two localities, or None when unknown.

    ``name`` describes how the miles were obtained; it is recorded on the
    claim as its ``distance_source``.
    """

    name: str

    def miles(self, origin: str | None, destination: str | None) -> Decimal | None:
        ...


class GreatCircleDistanceProvider:
    """Haversine distance over locality coordinates, scaled by ``road_factor``."""

    def __init__(
        self, reference: ReferenceData, road_factor: Decimal = DEFAULT_ROAD_FACTOR
    ) -> None:
        if road_factor < 1:
            raise ValueError(f"road_factor must be >= 1, got {road_factor}")
        self._reference = reference
        self._road_factor = road_factor
        self.name = f"great-circle x{road_factor}"

    def miles(self, origin: str | None, destination: str | None) -> Decimal | None:
        straight = locality_distance_miles(self._reference, origin, destination)
        if straight is None:
            return None
        return (straight * self._road_factor).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
