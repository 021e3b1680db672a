"""
Service layer: orchestration over the pure engines.

Services own the collaborators engines may not touch (distance lookup,
thread pools) and bind claim-scoped log context around engine calls.
"""

from pcs_services.distance import DistanceProvider, GreatCircleDistanceProvider
from pcs_services.estimate_service import ClaimEstimate, PCSEstimateService

__all__ = [
    "ClaimEstimate",
    "DistanceProvider",
    "GreatCircleDistanceProvider",
    "PCSEstimateService",
]
