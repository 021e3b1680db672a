"""
Pure domain layer.

Immutable value types shared by the engines, config and service layers,
with NO dependencies on:
- Configuration files
- Clock / wall time
- I/O

All domain objects are frozen and deterministic.
"""

from pcs_kernel.domain.claim import (
    Claim,
    PerDiemClassification,
    TravelMethod,
    ensure_calculable,
    normalize_claim,
)
from pcs_kernel.domain.paygrades import (
    BAND_SENIORITY,
    PaygradeBand,
    PaygradeTable,
    canonical_paygrade,
)
from pcs_kernel.domain.rates import (
    TIER_CONFIDENCE,
    ConfidenceTier,
    EntitlementType,
    Locality,
    RateRecord,
    WeightAllowance,
)
from pcs_kernel.domain.reference import (
    MALT_TIER_BANDS,
    DlaStackingPolicy,
    EntitlementPolicy,
    PpmDistanceBand,
    ReferenceData,
    ValidationPolicy,
    WithholdingPolicy,
)
from pcs_kernel.domain.results import (
    CalculationResult,
    ConfidenceLevel,
    ConfidenceSummary,
    EntitlementLineResult,
    LineComponent,
    Severity,
    ValidationFinding,
    ValidationSummary,
)
from pcs_kernel.domain.values import (
    cents_to_decimal,
    format_usd,
    require_decimal,
    to_cents,
)

__all__ = [
    "BAND_SENIORITY",
    "CalculationResult",
    "Claim",
    "ConfidenceLevel",
    "ConfidenceSummary",
    "ConfidenceTier",
    "DlaStackingPolicy",
    "EntitlementLineResult",
    "EntitlementPolicy",
    "EntitlementType",
    "LineComponent",
    "Locality",
    "MALT_TIER_BANDS",
    "PaygradeBand",
    "PaygradeTable",
    "PerDiemClassification",
    "PpmDistanceBand",
    "RateRecord",
    "ReferenceData",
    "Severity",
    "TIER_CONFIDENCE",
    "TravelMethod",
    "ValidationFinding",
    "ValidationPolicy",
    "ValidationSummary",
    "WeightAllowance",
    "WithholdingPolicy",
    "canonical_paygrade",
    "cents_to_decimal",
    "ensure_calculable",
    "format_usd",
    "normalize_claim",
    "require_decimal",
    "to_cents",
]
