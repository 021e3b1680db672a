"""
JTR compliance rules.

Each rule is a pure predicate over a ``RuleContext``. Rules that need data
the caller did not supply (reference tables, a calculation result) pass
with ``details={"skipped": True}`` so the registry size stays the number of
rules evaluated.
"""

from __future__ import annotations

import re
from decimal import Decimal

from pcs_engines.geo import locality_distance_miles
from pcs_engines.validation.registry import (
    RuleCode,
    RuleContext,
    RuleOutcome,
    RuleRegistry,
    ValidationRule,
)
from pcs_kernel.domain.reference import EntitlementPolicy, ValidationPolicy
from pcs_kernel.domain.results import Severity

_PAYGRADE_FORMAT = re.compile(r"^(E[1-9]|O(10|[1-9])|W[1-5])$")

_DEFAULT_ENTITLEMENT_POLICY = EntitlementPolicy()
_DEFAULT_VALIDATION_POLICY = ValidationPolicy()


def _entitlement_policy(ctx: RuleContext) -> EntitlementPolicy:
    return ctx.reference.entitlement_policy if ctx.reference else _DEFAULT_ENTITLEMENT_POLICY


def _validation_policy(ctx: RuleContext) -> ValidationPolicy:
    return ctx.reference.validation_policy if ctx.reference else _DEFAULT_VALIDATION_POLICY


# ---------------------------------------------------------------------------
# Required fields
# ---------------------------------------------------------------------------


def check_claim_name(ctx: RuleContext) -> RuleOutcome:
    if ctx.claim.claim_name:
        return RuleOutcome.ok("Claim name provided")
    return RuleOutcome.fail(
        "Claim name is required",
        "Enter a descriptive name, e.g. 'PCS Fort Liberty to JBLM 2025'.",
    )


def check_orders_date(ctx: RuleContext) -> RuleOutcome:
    if ctx.claim.orders_date is not None:
        return RuleOutcome.ok("PCS orders date provided")
    return RuleOutcome.fail(
        "PCS orders date is required",
        "Enter the date on your PCS orders; entitlements are determined by it.",
    )


def check_paygrade(ctx: RuleContext) -> RuleOutcome:
    paygrade = ctx.claim.paygrade
    if ctx.reference is not None:
        known = ctx.reference.paygrades.is_known(paygrade)
    else:
        known = bool(_PAYGRADE_FORMAT.match(paygrade))
    if known:
        return RuleOutcome.ok(f"Paygrade {paygrade} recognized")
    return RuleOutcome.fail(
        f"Paygrade {paygrade or '<blank>'!r} is not a recognized paygrade",
        "Use the paygrade held on the PCS orders date, e.g. E5, W2 or O3.",
        paygrade=paygrade,
    )


# ---------------------------------------------------------------------------
# Temporal consistency
# ---------------------------------------------------------------------------


def check_arrival_after_departure(ctx: RuleContext) -> RuleOutcome:
    claim = ctx.claim
    if claim.arrival_date > claim.departure_date:
        return RuleOutcome.ok(f"Travel spans {claim.travel_days} day(s)")
    return RuleOutcome.fail(
        "Arrival date must be after departure date",
        "Check the departure and arrival dates; arrival is the day you reported to the new station.",
        departure_date=claim.departure_date.isoformat(),
        arrival_date=claim.arrival_date.isoformat(),
    )


def check_orders_before_travel(ctx: RuleContext) -> RuleOutcome:
    claim = ctx.claim
    if claim.orders_date is None:
        return RuleOutcome.skipped("no orders date")
    if claim.orders_date <= claim.departure_day:
        return RuleOutcome.ok("Travel began on or after the orders date")
    return RuleOutcome.fail(
        "Travel began before the PCS orders were issued",
        "Confirm the orders date; travel before orders is reimbursable only with an advance authorization.",
        orders_date=claim.orders_date.isoformat(),
        departure_date=claim.departure_day.isoformat(),
    )


# ---------------------------------------------------------------------------
# Input sanity
# ---------------------------------------------------------------------------

_NON_NEGATIVE_FIELDS = (
    "distance_miles",
    "estimated_weight_lb",
    "actual_weight_lb",
    "tle_origin_nights",
    "tle_destination_nights",
    "dependents_count",
    "official_gcc_cents",
    "fuel_receipts_cents",
)


def check_non_negative(ctx: RuleContext) -> RuleOutcome:
    negative = {
        name: str(getattr(ctx.claim, name))
        for name in _NON_NEGATIVE_FIELDS
        if (getattr(ctx.claim, name) or 0) < 0
    }
    if not negative:
        return RuleOutcome.ok("All quantities are zero or positive")
    return RuleOutcome.fail(
        f"Negative values are not allowed: {', '.join(negative)}",
        "Correct the highlighted fields; distances, weights and nights cannot be negative.",
        fields=negative,
    )


# ---------------------------------------------------------------------------
# Regulatory ceilings
# ---------------------------------------------------------------------------


def _tle_ceiling(ctx: RuleContext, label: str, nights: int) -> RuleOutcome:
    maximum = _entitlement_policy(ctx).tle_max_nights_per_location
    if nights <= maximum:
        return RuleOutcome.ok(f"TLE {label} nights ({nights}) within the {maximum}-night limit")
    return RuleOutcome.fail(
        f"TLE {label} nights ({nights}) exceeds maximum of {maximum} per location",
        f"Reduce {label} nights to {maximum}; nights beyond {maximum} are not reimbursable "
        f"and the estimate counts only {maximum}.",
        claimed=nights,
        maximum=maximum,
    )


def check_tle_origin_ceiling(ctx: RuleContext) -> RuleOutcome:
    return _tle_ceiling(ctx, "origin", ctx.claim.tle_origin_nights)


def check_tle_destination_ceiling(ctx: RuleContext) -> RuleOutcome:
    return _tle_ceiling(ctx, "destination", ctx.claim.tle_destination_nights)


# ---------------------------------------------------------------------------
# Cross-field plausibility
# ---------------------------------------------------------------------------


def check_distance_plausibility(ctx: RuleContext) -> RuleOutcome:
    claim = ctx.claim
    if ctx.reference is None:
        return RuleOutcome.skipped("no reference localities")
    if claim.distance_miles <= 0:
        return RuleOutcome.skipped("no distance claimed")
    straight = locality_distance_miles(
        ctx.reference, claim.origin_locality, claim.destination_locality
    )
    if straight is None:
        return RuleOutcome.skipped("origin or destination has no coordinates")
    if straight < 1:
        return RuleOutcome.skipped("origin and destination coincide")

    policy = _validation_policy(ctx)
    ratio = (claim.distance_miles / straight).quantize(Decimal("0.01"))
    details = {
        "claimed_miles": str(claim.distance_miles),
        "straight_line_miles": str(straight),
        "ratio": str(ratio),
    }
    if ratio < policy.distance_min_ratio:
        return RuleOutcome.fail(
            f"Claimed distance ({claim.distance_miles} mi) is shorter than the "
            f"straight-line distance between the stated bases ({straight} mi)",
            "Use the official route distance (DTOD) between the old and new duty stations.",
            **details,
        )
    if ratio > policy.distance_max_ratio:
        return RuleOutcome.fail(
            f"Claimed distance ({claim.distance_miles} mi) is more than "
            f"{policy.distance_max_ratio}x the straight-line distance ({straight} mi)",
            "Confirm the route; MALT is paid on the official distance, not the miles actually driven.",
            **details,
        )
    return RuleOutcome.ok("Claimed distance is consistent with the stated bases", **details)


def check_dla_minimum_distance(ctx: RuleContext) -> RuleOutcome:
    distance = ctx.claim.distance_miles
    minimum = _entitlement_policy(ctx).dla_minimum_distance_miles
    if distance <= 0:
        return RuleOutcome.skipped("no distance claimed")
    if distance >= minimum:
        return RuleOutcome.ok(f"Move distance meets the {minimum}-mile DLA threshold")
    return RuleOutcome.fail(
        f"Move of {distance} miles is under {minimum} miles; DLA may not be payable",
        "Local moves generally do not qualify for DLA; confirm eligibility with your finance office.",
        distance_miles=str(distance),
        minimum_miles=str(minimum),
    )


def check_dla_multiplier_stacking(ctx: RuleContext) -> RuleOutcome:
    claim = ctx.claim
    if not (claim.oconus and claim.has_dependents):
        return RuleOutcome.ok("At most one DLA multiplier applies")
    policy = _entitlement_policy(ctx)
    return RuleOutcome.fail(
        "Dependency and OCONUS DLA multipliers both apply; the estimate uses the "
        f"'{policy.dla_stacking.value}' stacking policy pending regulatory confirmation",
        "Confirm the DLA amount for OCONUS moves with dependents with your finance office.",
        stacking_policy=policy.dla_stacking.value,
    )


# ---------------------------------------------------------------------------
# PPM
# ---------------------------------------------------------------------------


def check_ppm_weight_required(ctx: RuleContext) -> RuleOutcome:
    claim = ctx.claim
    if not claim.travel_method.involves_ppm:
        return RuleOutcome.ok("No PPM portion on this move")
    if claim.effective_weight_lb > 0:
        return RuleOutcome.ok(f"PPM weight declared ({claim.effective_weight_lb} lb)")
    return RuleOutcome.fail(
        "PPM moves must declare an estimated or actual weight",
        "Enter the net weight from your certified weight tickets (full minus empty).",
    )


def check_ppm_weight_allowance(ctx: RuleContext) -> RuleOutcome:
    claim = ctx.claim
    if not claim.travel_method.involves_ppm:
        return RuleOutcome.ok("No PPM portion on this move")
    if ctx.reference is None:
        return RuleOutcome.skipped("no weight allowance table")
    allowance = ctx.reference.weight_allowance(claim.paygrade, claim.has_dependents)
    if allowance is None:
        return RuleOutcome.skipped(f"no allowance for paygrade {claim.paygrade or '<blank>'}")
    weight = claim.effective_weight_lb
    if weight <= allowance:
        return RuleOutcome.ok(f"Weight is within the {allowance:,} lb allowance", allowance=allowance)
    return RuleOutcome.fail(
        f"Weight ({weight:,} lb) exceeds the {allowance:,} lb allowance by {weight - allowance:,} lb",
        "Excess weight is not reimbursable; the estimate caps the PPM at the allowance.",
        weight=weight,
        allowance=allowance,
        overage=weight - allowance,
    )


# ---------------------------------------------------------------------------
# Calculation quality
# ---------------------------------------------------------------------------


def check_confidence_floor(ctx: RuleContext) -> RuleOutcome:
    if ctx.calculation is None:
        return RuleOutcome.skipped("no calculation supplied")
    floor = _validation_policy(ctx).confidence_floor
    overall = ctx.calculation.confidence.overall
    if overall >= floor:
        return RuleOutcome.ok(f"Estimate confidence {overall} meets the {floor} floor")
    weakest = [
        ent.label for ent, conf in ctx.calculation.confidence.by_line if conf < floor
    ]
    return RuleOutcome.fail(
        f"Estimate confidence is {overall}; {', '.join(weakest)} below the {floor} floor",
        "Verify these amounts with your finance office before submitting.",
        overall=overall,
        floor=floor,
        lines=weakest,
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

DEFAULT_RULES: tuple[ValidationRule, ...] = (
    ValidationRule(RuleCode.REQ_CLAIM_NAME, "Claim name present", "claim_name",
                   Severity.ERROR, "DD Form 1351-2", check_claim_name),
    ValidationRule(RuleCode.REQ_ORDERS_DATE, "Orders date present", "orders_date",
                   Severity.ERROR, "JTR 050301", check_orders_date),
    ValidationRule(RuleCode.REQ_PAYGRADE, "Paygrade recognized", "paygrade",
                   Severity.ERROR, "JTR 050302.B", check_paygrade),
    ValidationRule(RuleCode.DATE_ARRIVAL_AFTER_DEPARTURE, "Arrival after departure", "arrival_date",
                   Severity.ERROR, "JTR 054401", check_arrival_after_departure),
    ValidationRule(RuleCode.DATE_ORDERS_BEFORE_TRAVEL, "Orders precede travel", "orders_date",
                   Severity.WARNING, "JTR 050301", check_orders_before_travel),
    ValidationRule(RuleCode.INPUT_NON_NEGATIVE, "Quantities non-negative", "distance_miles",
                   Severity.ERROR, "JTR 054206", check_non_negative),
    ValidationRule(RuleCode.TLE_ORIGIN_NIGHTS_CEILING, "TLE origin nights ceiling", "tle_origin_nights",
                   Severity.WARNING, "JTR 054205", check_tle_origin_ceiling),
    ValidationRule(RuleCode.TLE_DESTINATION_NIGHTS_CEILING, "TLE destination nights ceiling",
                   "tle_destination_nights", Severity.WARNING, "JTR 054205", check_tle_destination_ceiling),
    ValidationRule(RuleCode.DISTANCE_PLAUSIBILITY, "Distance consistent with bases", "distance_miles",
                   Severity.WARNING, "JTR 054206", check_distance_plausibility),
    ValidationRule(RuleCode.DLA_MINIMUM_DISTANCE, "DLA minimum distance", "distance_miles",
                   Severity.WARNING, "JTR 050301", check_dla_minimum_distance),
    ValidationRule(RuleCode.DLA_MULTIPLIER_STACKING, "DLA multiplier stacking", "oconus",
                   Severity.INFO, "JTR 050302.B", check_dla_multiplier_stacking),
    ValidationRule(RuleCode.PPM_WEIGHT_REQUIRED, "PPM weight declared", "actual_weight_lb",
                   Severity.ERROR, "JTR 054703", check_ppm_weight_required),
    ValidationRule(RuleCode.PPM_WEIGHT_ALLOWANCE, "PPM weight within allowance", "actual_weight_lb",
                   Severity.WARNING, "JTR 054705", check_ppm_weight_allowance),
    ValidationRule(RuleCode.CALC_CONFIDENCE_FLOOR, "Estimate confidence floor", "confidence",
                   Severity.WARNING, "JTR 010103", check_confidence_floor),
)


def build_registry(rules: tuple[ValidationRule, ...] = DEFAULT_RULES) -> RuleRegistry:
    """Register rules in order and verify every RuleCode is covered."""
    registry = RuleRegistry()
    for rule in rules:
        registry.register(rule)
    registry.verify_complete()
    return registry


DEFAULT_REGISTRY = build_registry()


def get_rule(code: RuleCode | str) -> ValidationRule:
    """Look up a built-in rule.

    Raises:
        UnknownRuleError: If the code is not a registered rule.
    """
    return DEFAULT_REGISTRY.get(code)
