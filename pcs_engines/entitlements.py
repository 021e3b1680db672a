"""
Entitlement Calculator (``pcs_engines.entitlements``).

Responsibility
--------------
Compose rate-resolver outputs with trip parameters into the five PCS
reimbursement lines and their total:

* DLA -- band base x dependency multiplier x OCONUS multiplier (JTR 050302.B)
* TLE -- daily rate x nights, capped per location (JTR 054205)
* MALT -- marginal mileage tiers (JTR 054206)
* Per diem -- locality rate x classification factor x travel days (JTR 054401)
* PPM -- incentive share of the government cost estimate (JTR 054703):
  the official GCC when the member entered one, otherwise a planning
  estimate from weight (capped at the JTR 054705 allowance) x carrier rate

Architecture position
---------------------
**Engines layer** -- pure functional core. ZERO I/O, ZERO clock reads.
Reference data arrives as an explicit ``ReferenceData`` argument.

Invariants enforced
-------------------
* Arithmetic in ``Decimal``; every component quantized to integer cents
  (ROUND_HALF_UP) exactly once; a line is the sum of its components and
  the total is the sum of the lines.
* Each line carries the minimum confidence of the rates it used, further
  capped when an input was estimated (carrier-rate GCC, filled-in distance).
* The five lines are independent and may be evaluated concurrently; the
  result is assembled in fixed order so output does not depend on
  scheduling.

Failure modes
-------------
* ``InvalidClaimInputError`` at entry for negative quantities or
  arrival <= departure. Nothing is computed on such claims.
* Missing reference data never raises (see ``rate_resolver``).
"""

from __future__ import annotations

import contextvars
from collections.abc import Callable, Iterable
from concurrent.futures import Executor
from decimal import Decimal

from pcs_engines.confidence import aggregate_confidence, compile_data_sources, describe_source
from pcs_engines.rate_resolver import resolve_rate
from pcs_engines.tracer import traced_engine
from pcs_kernel.domain.claim import Claim, PerDiemClassification, ensure_calculable
from pcs_kernel.domain.rates import TIER_CONFIDENCE, ConfidenceTier, EntitlementType, RateRecord
from pcs_kernel.domain.reference import (
    MALT_TIER_BANDS,
    DlaStackingPolicy,
    EntitlementPolicy,
    ReferenceData,
)
from pcs_kernel.domain.results import (
    LINE_ORDER,
    CalculationResult,
    EntitlementLineResult,
    LineComponent,
)
from pcs_kernel.domain.values import cents_to_decimal, format_usd, to_cents
from pcs_kernel.logging_config import get_logger

logger = get_logger("engines.entitlements")

CITATIONS: dict[EntitlementType, str] = {
    EntitlementType.DLA: "JTR 050302.B",
    EntitlementType.TLE: "JTR 054205",
    EntitlementType.MALT: "JTR 054206",
    EntitlementType.PER_DIEM: "JTR 054401",
    EntitlementType.PPM: "JTR 054703",
}

WEIGHT_ALLOWANCE_CITATION = "JTR 054705"

_ZERO = Decimal("0")


def _build_line(
    entitlement: EntitlementType,
    records: Iterable[RateRecord],
    components: Iterable[LineComponent],
    *,
    notes: Iterable[str] = (),
    applicable: bool = True,
    empty_source: str = "",
    confidence_ceiling: int = 100,
    variance_range: tuple[int, int] | None = None,
    confidence_note: str = "",
) -> EntitlementLineResult:
    records = tuple(records)
    components = tuple(components)
    confidence = min([r.confidence for r in records] + [confidence_ceiling])
    sources = tuple(dict.fromkeys(r.source for r in records))
    return EntitlementLineResult(
        entitlement=entitlement,
        amount_cents=sum(c.amount_cents for c in components),
        confidence=confidence,
        source="; ".join(sources) if sources else empty_source,
        last_verified=min((r.last_verified for r in records), default=None),
        citation=CITATIONS[entitlement],
        applicable=applicable,
        components=components,
        notes=tuple(notes),
        data_sources=tuple(dict.fromkeys(describe_source(r) for r in records)),
        variance_range=variance_range,
        confidence_note=confidence_note if confidence < 100 else "",
    )


# ---------------------------------------------------------------------------
# DLA
# ---------------------------------------------------------------------------


def dla_multiplier(
    policy: EntitlementPolicy,
    has_dependents: bool,
    oconus: bool,
) -> tuple[Decimal, tuple[str, ...]]:
    """Combined DLA multiplier and the notes explaining it.

    The dependency multiplier is flat (not per dependent). When both the
    dependency and OCONUS multipliers apply, ``policy.dla_stacking`` decides
    whether they multiply or only the larger applies.
    """
    applied: list[tuple[str, Decimal]] = []
    if has_dependents:
        applied.append(("dependents", policy.dependents_multiplier))
    if oconus:
        applied.append(("OCONUS", policy.oconus_multiplier))

    notes = [f"{name} multiplier x{factor}" for name, factor in applied]
    if len(applied) < 2:
        return (applied[0][1] if applied else Decimal("1")), tuple(notes)

    if policy.dla_stacking is DlaStackingPolicy.MULTIPLICATIVE:
        multiplier = applied[0][1] * applied[1][1]
    else:
        multiplier = max(factor for _, factor in applied)
    notes.append(
        f"dependents and OCONUS both apply; '{policy.dla_stacking.value}' stacking "
        f"policy gives x{multiplier} pending regulatory confirmation"
    )
    return multiplier, tuple(notes)


@traced_engine("dla", "1.0", fingerprint_fields=("claim", "reference"))
def calculate_dla(*, claim: Claim, reference: ReferenceData) -> EntitlementLineResult:
    """Dislocation allowance for the claim's paygrade band."""
    rate = resolve_rate(
        reference,
        EntitlementType.DLA,
        claim.entitlement_date,
        paygrade=claim.paygrade,
        with_dependents=claim.has_dependents,
    )
    multiplier, notes = dla_multiplier(
        reference.entitlement_policy, claim.has_dependents, claim.oconus
    )
    band = rate.paygrade_band.value if rate.paygrade_band else "default"
    component = LineComponent(
        label=f"DLA base ({band})",
        quantity=multiplier,
        rate=rate.amount,
        amount_cents=to_cents(rate.amount * multiplier),
    )
    return _build_line(EntitlementType.DLA, (rate,), (component,), notes=notes)


# ---------------------------------------------------------------------------
# TLE
# ---------------------------------------------------------------------------


@traced_engine("tle", "1.0", fingerprint_fields=("claim", "reference"))
def calculate_tle(*, claim: Claim, reference: ReferenceData) -> EntitlementLineResult:
    """Temporary lodging at origin and destination, nights capped per location.

    Nights above the cap are clamped here and reported as a warning by the
    validation engine; the household is billed as one unit.
    """
    max_nights = reference.entitlement_policy.tle_max_nights_per_location
    records: list[RateRecord] = []
    components: list[LineComponent] = []
    notes: list[str] = []

    for label, locality, nights in (
        ("origin", claim.origin_locality, claim.tle_origin_nights),
        ("destination", claim.destination_locality, claim.tle_destination_nights),
    ):
        if nights <= 0:
            continue
        counted = min(nights, max_nights)
        if counted < nights:
            notes.append(
                f"{label} nights clamped from {nights} to {max_nights} "
                f"({CITATIONS[EntitlementType.TLE]})"
            )
        rate = resolve_rate(
            reference, EntitlementType.TLE, claim.entitlement_date, locality=locality
        )
        records.append(rate)
        components.append(
            LineComponent(
                label=f"TLE {label} ({locality or 'national default'})",
                quantity=Decimal(counted),
                rate=rate.amount,
                amount_cents=to_cents(rate.amount * counted),
            )
        )

    return _build_line(
        EntitlementType.TLE,
        records,
        components,
        notes=notes,
        applicable=bool(components),
        empty_source="No TLE nights claimed",
    )


# ---------------------------------------------------------------------------
# MALT
# ---------------------------------------------------------------------------


def malt_tier_miles(
    distance: Decimal,
    limits: tuple[Decimal, Decimal],
) -> tuple[tuple[str, Decimal, Decimal | None, Decimal], ...]:
    """Split a distance across the marginal tiers.

    Returns ``(tier, lower, upper, miles_in_tier)`` for every tier that
    carries miles.
    """
    first, second = limits
    bounds = (
        (MALT_TIER_BANDS[0], _ZERO, first),
        (MALT_TIER_BANDS[1], first, second),
        (MALT_TIER_BANDS[2], second, None),
    )
    out = []
    for tier, lower, upper in bounds:
        top = distance if upper is None else min(distance, upper)
        miles = max(_ZERO, top - lower)
        if miles > 0:
            out.append((tier, lower, upper, miles))
    return tuple(out)


@traced_engine("malt", "1.0", fingerprint_fields=("claim", "reference"))
def calculate_malt(*, claim: Claim, reference: ReferenceData) -> EntitlementLineResult:
    """Tiered marginal mileage, once per move regardless of dependents."""
    records: list[RateRecord] = []
    components: list[LineComponent] = []
    for tier, lower, upper, miles in malt_tier_miles(
        claim.distance_miles, reference.entitlement_policy.malt_tier_limits
    ):
        rate = resolve_rate(reference, EntitlementType.MALT, claim.entitlement_date, band=tier)
        records.append(rate)
        span = f"{lower}-{upper} mi" if upper is not None else f"over {lower} mi"
        components.append(
            LineComponent(
                label=f"MALT {tier} ({span})",
                quantity=miles,
                rate=rate.amount,
                amount_cents=to_cents(miles * rate.amount),
            )
        )
    ceiling, notes, caveat = _distance_caveat(claim, reference.entitlement_policy)
    return _build_line(
        EntitlementType.MALT,
        records,
        components,
        notes=notes if components else (),
        applicable=bool(components),
        empty_source="No mileage claimed",
        confidence_ceiling=ceiling if components else 100,
        confidence_note=caveat,
    )


def _distance_caveat(claim: Claim, policy: EntitlementPolicy) -> tuple[int, tuple[str, ...], str]:
    """Confidence ceiling, notes and caveat for a distance that was filled in."""
    if not claim.distance_estimated:
        return 100, (), ""
    return (
        policy.estimated_distance_confidence,
        (f"distance {claim.distance_miles} mi estimated ({claim.distance_source})",),
        "distance was estimated, not claimed; confirm it with the official DTOD route.",
    )


# ---------------------------------------------------------------------------
# Per diem
# ---------------------------------------------------------------------------


def per_diem_factor(policy: EntitlementPolicy, classification: PerDiemClassification) -> Decimal:
    if classification is PerDiemClassification.EXTENDED:
        return policy.per_diem_extended_factor
    return policy.per_diem_travel_factor


@traced_engine("per_diem", "1.0", fingerprint_fields=("claim", "reference"))
def calculate_per_diem(*, claim: Claim, reference: ReferenceData) -> EntitlementLineResult:
    """Destination locality rate x classification factor x travel days."""
    days = claim.travel_days
    factor = per_diem_factor(reference.entitlement_policy, claim.per_diem_classification)
    rate = resolve_rate(
        reference,
        EntitlementType.PER_DIEM,
        claim.entitlement_date,
        locality=claim.destination_locality,
    )
    daily = rate.amount * factor
    component = LineComponent(
        label=f"Per diem {claim.per_diem_classification.value} ({factor * 100:.0f}% of {rate.amount})",
        quantity=Decimal(days),
        rate=daily,
        amount_cents=to_cents(daily * days),
    )
    return _build_line(EntitlementType.PER_DIEM, (rate,), (component,))


# ---------------------------------------------------------------------------
# PPM
# ---------------------------------------------------------------------------


OFFICIAL_GCC_SOURCE = "Official GCC (member-entered from move.mil)"


def _ppm_from_official_gcc(claim: Claim, policy: EntitlementPolicy) -> EntitlementLineResult:
    gcc = cents_to_decimal(claim.official_gcc_cents)
    component = LineComponent(
        label=f"PPM incentive ({policy.ppm_incentive_rate * 100:.0f}% of official GCC)",
        quantity=gcc,
        rate=policy.ppm_incentive_rate,
        amount_cents=to_cents(gcc * policy.ppm_incentive_rate),
    )
    return _build_line(
        EntitlementType.PPM,
        (),
        (component,),
        notes=(f"official government cost estimate {format_usd(claim.official_gcc_cents)}",),
        empty_source=OFFICIAL_GCC_SOURCE,
    )


@traced_engine("ppm", "1.0", fingerprint_fields=("claim", "reference"))
def calculate_ppm(*, claim: Claim, reference: ReferenceData) -> EntitlementLineResult:
    """PPM incentive: share of the government cost estimate (GCC).

    Two modes:

    * official -- the member entered the GCC from move.mil; the incentive
      is computed from it directly at full confidence.
    * estimator -- no official GCC; the GCC is estimated as weight x the
      distance-banded carrier rate. Confidence is capped at the policy's
      planning level and the line carries a +/- variance range.
    """
    if not claim.travel_method.involves_ppm:
        return _build_line(
            EntitlementType.PPM,
            (),
            (),
            applicable=False,
            empty_source="Government-arranged move; no PPM incentive",
        )

    policy = reference.entitlement_policy
    if claim.official_gcc_cents:
        return _ppm_from_official_gcc(claim, policy)

    weight = claim.effective_weight_lb
    distance = claim.distance_miles
    if weight <= 0 or distance <= 0:
        return _build_line(
            EntitlementType.PPM,
            (),
            (),
            notes=("PPM incentive requires a weight and a distance",),
            empty_source="PPM weight or distance not provided",
            confidence_ceiling=0,
        )

    notes: list[str] = []
    ceiling = policy.ppm_estimate_confidence

    allowance = reference.weight_allowance(claim.paygrade, claim.has_dependents)
    counted = weight
    if allowance is None:
        ceiling = min(ceiling, TIER_CONFIDENCE[ConfidenceTier.FALLBACK])
        notes.append(
            f"No weight allowance for paygrade {claim.paygrade or '<blank>'}; "
            f"weight not capped ({WEIGHT_ALLOWANCE_CITATION})"
        )
    elif weight > allowance:
        counted = allowance
        notes.append(
            f"weight capped at {allowance} lb allowance; {weight - allowance} lb "
            f"excess is not reimbursable ({WEIGHT_ALLOWANCE_CITATION})"
        )

    distance_band = policy.ppm_band_for(distance)
    rate = resolve_rate(
        reference,
        EntitlementType.PPM,
        claim.entitlement_date,
        band=distance_band.name if distance_band else None,
    )
    pounds = Decimal(counted)
    gcc = pounds * rate.amount
    notes.append(
        f"government cost estimate {format_usd(to_cents(gcc))} "
        f"({counted} lb x {rate.amount}/lb, band {rate.band or 'default'})"
    )
    amount = to_cents(gcc * policy.ppm_incentive_rate)
    component = LineComponent(
        label=f"PPM incentive ({policy.ppm_incentive_rate * 100:.0f}% of estimated GCC)",
        quantity=pounds,
        rate=rate.amount * policy.ppm_incentive_rate,
        amount_cents=amount,
    )

    spread = to_cents(Decimal(amount) * policy.ppm_estimate_variance / 100)
    variance_range = (amount - spread, amount + spread)
    notes.append(
        f"planning estimate only: actual GCC may vary by +/-"
        f"{policy.ppm_estimate_variance * 100:.0f}% ({format_usd(variance_range[0])} to "
        f"{format_usd(variance_range[1])}); get the official GCC from move.mil"
    )

    distance_ceiling, distance_notes, distance_caveat = _distance_caveat(claim, policy)
    notes.extend(distance_notes)
    return _build_line(
        EntitlementType.PPM,
        (rate,),
        (component,),
        notes=notes,
        confidence_ceiling=min(ceiling, distance_ceiling),
        variance_range=variance_range,
        confidence_note=(
            distance_caveat
            if distance_ceiling < ceiling
            else "the GCC was estimated from carrier rates; enter the official GCC from move.mil."
        ),
    )


# ---------------------------------------------------------------------------
# Full calculation
# ---------------------------------------------------------------------------

LineCalculator = Callable[..., EntitlementLineResult]

LINE_CALCULATORS: dict[EntitlementType, LineCalculator] = {
    EntitlementType.DLA: calculate_dla,
    EntitlementType.TLE: calculate_tle,
    EntitlementType.MALT: calculate_malt,
    EntitlementType.PER_DIEM: calculate_per_diem,
    EntitlementType.PPM: calculate_ppm,
}


@traced_engine("entitlements", "1.0", fingerprint_fields=("claim", "reference"))
def calculate_entitlements(
    *,
    claim: Claim,
    reference: ReferenceData,
    executor: Executor | None = None,
) -> CalculationResult:
    """Compute all five lines, the total, confidence and data sources.

    Args:
        claim: Normalized claim snapshot.
        reference: Injected reference data.
        executor: Optional executor; when given, the five lines are
            submitted concurrently and joined in fixed order.

    Raises:
        InvalidClaimInputError: If the claim fails ``ensure_calculable``.
    """
    ensure_calculable(claim)

    logger.info(
        "entitlement_calculation_started",
        extra={
            "paygrade": claim.paygrade,
            "travel_method": claim.travel_method.value,
            "reference_set_id": reference.set_id,
            "concurrent": executor is not None,
        },
    )

    if executor is None:
        lines = tuple(
            LINE_CALCULATORS[ent](claim=claim, reference=reference) for ent in LINE_ORDER
        )
    else:
        # Each task runs in a copy of the caller's context so log fields follow it.
        futures = [
            executor.submit(
                contextvars.copy_context().run,
                LINE_CALCULATORS[ent],
                claim=claim,
                reference=reference,
            )
            for ent in LINE_ORDER
        ]
        lines = tuple(f.result() for f in futures)

    confidence = aggregate_confidence(lines, claim)
    result = CalculationResult(
        claim_id=claim.claim_id,
        reference_set=reference.set_id,
        lines=lines,
        total_cents=sum(line.amount_cents for line in lines),
        confidence=confidence,
        data_sources=compile_data_sources(lines),
        jtr_version=reference.jtr_version,
    )

    logger.info(
        "entitlement_calculation_completed",
        extra={
            "total_cents": result.total_cents,
            "overall_confidence": confidence.overall,
            "line_amounts": {line.entitlement.value: line.amount_cents for line in lines},
        },
    )
    return result
