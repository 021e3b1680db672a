"""
Reference data context.

``ReferenceData`` is the immutable bundle every engine call receives
explicitly: rate tables, the paygrade band mapping, localities, weight
allowances and the policy constants that parameterize the formulas. It is
built once by ``pcs_config`` and passed down; nothing in the engine reads
it from a global.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from pcs_kernel.domain.paygrades import PaygradeTable, canonical_paygrade
from pcs_kernel.domain.rates import EntitlementType, Locality, RateRecord, WeightAllowance


# Band qualifiers for the three marginal MALT tiers, junior tier first.
MALT_TIER_BANDS: tuple[str, str, str] = ("tier_1", "tier_2", "tier_3")


class DlaStackingPolicy(str, Enum):
    """How the dependency and OCONUS DLA multipliers combine when both apply."""

    LARGER_ONLY = "larger_only"
    MULTIPLICATIVE = "multiplicative"


@dataclass(frozen=True, slots=True)
class PpmDistanceBand:
    """Carrier-rate distance band; ``up_to_miles=None`` is the open top band."""

    name: str
    up_to_miles: Decimal | None

    def contains(self, miles: Decimal, lower_bound: Decimal) -> bool:
        if miles < lower_bound:
            return False
        return self.up_to_miles is None or miles <= self.up_to_miles


@dataclass(frozen=True)
class EntitlementPolicy:
    """Formula constants for the entitlement calculator."""

    tle_max_nights_per_location: int = 10
    dependents_multiplier: Decimal = Decimal("1.5")
    oconus_multiplier: Decimal = Decimal("1.5")
    dla_stacking: DlaStackingPolicy = DlaStackingPolicy.LARGER_ONLY
    dla_minimum_distance_miles: Decimal = Decimal("50")
    malt_tier_limits: tuple[Decimal, Decimal] = (Decimal("100"), Decimal("400"))
    per_diem_travel_factor: Decimal = Decimal("0.75")
    per_diem_extended_factor: Decimal = Decimal("0.55")
    ppm_incentive_rate: Decimal = Decimal("0.95")
    ppm_distance_bands: tuple[PpmDistanceBand, ...] = ()
    ppm_estimate_confidence: int = 50
    ppm_estimate_variance: Decimal = Decimal("0.30")
    estimated_distance_confidence: int = 80

    def __post_init__(self) -> None:
        if self.tle_max_nights_per_location <= 0:
            raise ValueError("tle_max_nights_per_location must be positive")
        first, second = self.malt_tier_limits
        if not Decimal("0") < first < second:
            raise ValueError(f"MALT tier limits must be increasing: {self.malt_tier_limits}")
        for name in ("per_diem_travel_factor", "per_diem_extended_factor", "ppm_incentive_rate"):
            value = getattr(self, name)
            if not Decimal("0") < value <= Decimal("1"):
                raise ValueError(f"{name} must be in (0, 1], got {value}")
        for name in ("dependents_multiplier", "oconus_multiplier"):
            if getattr(self, name) < Decimal("1"):
                raise ValueError(f"{name} must be >= 1")
        for name in ("ppm_estimate_confidence", "estimated_distance_confidence"):
            if not 0 <= getattr(self, name) <= 100:
                raise ValueError(f"{name} must be 0-100, got {getattr(self, name)}")
        if not Decimal("0") <= self.ppm_estimate_variance < Decimal("1"):
            raise ValueError(
                f"ppm_estimate_variance must be in [0, 1), got {self.ppm_estimate_variance}"
            )
        bounds = [b.up_to_miles for b in self.ppm_distance_bands]
        if bounds:
            if bounds[-1] is not None:
                raise ValueError("Last PPM distance band must be open-ended")
            closed = bounds[:-1]
            if any(b is None for b in closed) or closed != sorted(closed):
                raise ValueError("PPM distance bands must be ascending")

    def ppm_band_for(self, miles: Decimal) -> PpmDistanceBand | None:
        lower = Decimal("0")
        for band in self.ppm_distance_bands:
            if band.contains(miles, lower):
                return band
            lower = band.up_to_miles if band.up_to_miles is not None else lower
        return None


@dataclass(frozen=True)
class WithholdingPolicy:
    """Default PPM withholding rates (fractions, not percentages)."""

    federal_rate: Decimal = Decimal("0.22")
    default_state_rate: Decimal = Decimal("0")
    fica_rate: Decimal = Decimal("0.062")
    medicare_rate: Decimal = Decimal("0.0145")
    fica_wage_base: Decimal = Decimal("168600")
    state_rates: Mapping[str, Decimal] = field(default_factory=dict)
    disclaimer: str = (
        "This is an ESTIMATE of withholding on a PPM incentive payment. "
        "Actual withholding is determined by DFAS. This is not tax advice."
    )

    def state_rate_for(self, state: str | None) -> Decimal:
        if not state:
            return self.default_state_rate
        return self.state_rates.get(state.strip().upper(), self.default_state_rate)


@dataclass(frozen=True)
class ValidationPolicy:
    """Scoring weights and thresholds for the validation rule engine."""

    error_weight: int = 25
    warning_weight: int = 10
    confidence_floor: int = 60
    distance_min_ratio: Decimal = Decimal("0.9")
    distance_max_ratio: Decimal = Decimal("2.0")

    def __post_init__(self) -> None:
        if self.error_weight < self.warning_weight:
            raise ValueError("Errors must weigh at least as much as warnings")
        if self.distance_min_ratio > self.distance_max_ratio:
            raise ValueError("distance_min_ratio must not exceed distance_max_ratio")


@dataclass(frozen=True)
class ReferenceData:
    """Immutable, versioned reference context for one rate year."""

    set_id: str
    version: str
    effective_from: date
    effective_to: date | None
    jtr_version: str
    rates: tuple[RateRecord, ...]
    paygrades: PaygradeTable
    localities: Mapping[str, Locality] = field(default_factory=dict)
    weight_allowances: Mapping[str, WeightAllowance] = field(default_factory=dict)
    entitlement_policy: EntitlementPolicy = field(default_factory=EntitlementPolicy)
    withholding_policy: WithholdingPolicy = field(default_factory=WithholdingPolicy)
    validation_policy: ValidationPolicy = field(default_factory=ValidationPolicy)
    checksum: str = ""

    def records_for(
        self,
        entitlement: EntitlementType,
        band: str | None = None,
    ) -> tuple[RateRecord, ...]:
        return tuple(
            r for r in self.rates
            if r.entitlement is entitlement and r.band == band
        )

    def locality(self, code: str | None) -> Locality | None:
        if not code:
            return None
        return self.localities.get(code.strip().upper())

    def is_oconus(self, code: str | None) -> bool:
        loc = self.locality(code)
        return loc is not None and loc.oconus

    def weight_allowance(self, paygrade: str, has_dependents: bool) -> int | None:
        allowance = self.weight_allowances.get(canonical_paygrade(paygrade))
        if allowance is None:
            return None
        return allowance.for_dependency(has_dependents)

    def covers(self, as_of: date) -> bool:
        if as_of < self.effective_from:
            return False
        return self.effective_to is None or as_of <= self.effective_to
