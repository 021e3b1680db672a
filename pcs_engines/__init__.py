"""
Module: pcs_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines: rate
    resolution, entitlement lines, PPM withholding, confidence aggregation
    and JTR compliance validation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import pcs_kernel (and sibling engine modules).
    MUST NOT import pcs_config or pcs_services.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      As-of dates come from the claim snapshot.
    - Decimal-only arithmetic; amounts leave the engines as integer cents.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine`` (see
    ``pcs_engines.tracer``), emitting PCS_ENGINE_TRACE log records with
    engine name, version, input fingerprint and duration.

Usage:
    from pcs_engines import calculate_entitlements, validate_claim
    from pcs_engines import PPMWithholdingCalculator
"""

from pcs_kernel.logging_config import get_logger

logger = get_logger("engines")

from pcs_engines.confidence import (
    aggregate_confidence,
    compile_data_sources,
    confidence_level,
    describe_source,
)
from pcs_engines.entitlements import (
    CITATIONS,
    LINE_CALCULATORS,
    calculate_dla,
    calculate_entitlements,
    calculate_malt,
    calculate_per_diem,
    calculate_ppm,
    calculate_tle,
    dla_multiplier,
    malt_tier_miles,
    per_diem_factor,
)
from pcs_engines.geo import great_circle_miles, locality_distance_miles
from pcs_engines.ppm_withholding import (
    AllowedExpenses,
    PPMNetPayout,
    PPMWithholdingCalculator,
    WithholdingComponent,
    WithholdingComponentType,
    calculate_ppm_net_payout,
)
from pcs_engines.rate_resolver import NO_RATE_SOURCE, resolve_rate
from pcs_engines.tracer import compute_input_fingerprint, traced_engine
from pcs_engines.validation import (
    DEFAULT_REGISTRY,
    RuleCode,
    RuleRegistry,
    ValidationRule,
    build_registry,
    get_rule,
    validate_claim,
)

__all__ = [
    "AllowedExpenses",
    "CITATIONS",
    "DEFAULT_REGISTRY",
    "LINE_CALCULATORS",
    "NO_RATE_SOURCE",
    "PPMNetPayout",
    "PPMWithholdingCalculator",
    "RuleCode",
    "RuleRegistry",
    "ValidationRule",
    "WithholdingComponent",
    "WithholdingComponentType",
    "aggregate_confidence",
    "build_registry",
    "calculate_dla",
    "calculate_entitlements",
    "calculate_malt",
    "calculate_per_diem",
    "calculate_ppm",
    "calculate_ppm_net_payout",
    "calculate_tle",
    "compile_data_sources",
    "compute_input_fingerprint",
    "confidence_level",
    "describe_source",
    "dla_multiplier",
    "get_rule",
    "great_circle_miles",
    "locality_distance_miles",
    "malt_tier_miles",
    "per_diem_factor",
    "resolve_rate",
    "traced_engine",
    "validate_claim",
]

logger.debug("engines_package_loaded", extra={"engine_count": len(__all__)})
