"""
Confidence Aggregator (``pcs_engines.confidence``).

Responsibility
--------------
Fold per-line rate confidences into one overall figure and compile the
deduplicated, human-readable list of data sources behind an estimate.

Invariants enforced
-------------------
* ``overall`` is the MINIMUM of the line confidences, never an average:
  one unreliable rate visibly lowers trust in the whole total.
* Source list order follows line order; duplicates keep their first
  position.
* Data-completeness factors are informational: they add recommendations
  and never move the overall score.
"""

from __future__ import annotations

from collections.abc import Sequence

from pcs_kernel.domain.claim import Claim
from pcs_kernel.domain.rates import RateRecord
from pcs_kernel.domain.results import (
    ConfidenceLevel,
    ConfidenceSummary,
    EntitlementLineResult,
)

_LEVEL_THRESHOLDS: tuple[tuple[int, ConfidenceLevel], ...] = (
    (90, ConfidenceLevel.EXCELLENT),
    (70, ConfidenceLevel.GOOD),
    (50, ConfidenceLevel.FAIR),
)


def confidence_level(score: int) -> ConfidenceLevel:
    for threshold, level in _LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return ConfidenceLevel.NEEDS_WORK


def _recommendation(line: EntitlementLineResult) -> str:
    label = line.entitlement.label
    if line.confidence_note:
        return f"Verify {label}: {line.confidence_note}"
    if line.confidence == 0:
        return f"Verify {label} with your finance office: no reference rate matched this claim."
    if line.confidence <= 60:
        return f"Verify {label} with your finance office: a national default rate was used."
    return f"Verify {label} with your finance office: rate taken from an adjacent effective period."


def data_completeness(claim: Claim) -> tuple[tuple[str, bool], ...]:
    """Which supporting evidence the claim carries, in display order."""
    return (
        ("has_orders", claim.orders_date is not None),
        ("has_weigh_tickets", claim.actual_weight_lb > 0),
        ("dates_verified", claim.arrival_date > claim.departure_date),
        ("distance_verified", claim.distance_miles > 0 and not claim.distance_estimated),
        ("receipts_complete", claim.fuel_receipts_cents > 0),
    )


def _completeness_recommendations(claim: Claim, factors: dict[str, bool]) -> list[str]:
    ppm = claim.travel_method.involves_ppm
    out = []
    if not factors["has_orders"]:
        out.append("Add PCS orders date")
    if ppm and not factors["has_weigh_tickets"]:
        out.append("Add actual weight from weigh tickets")
    if not factors["distance_verified"]:
        out.append("Verify distance calculation")
    if ppm and not factors["receipts_complete"]:
        out.append("Add fuel receipts")
    return out


def aggregate_confidence(
    lines: Sequence[EntitlementLineResult],
    claim: Claim | None = None,
) -> ConfidenceSummary:
    """Reduce line confidences to an overall score (minimum policy).

    When the claim is given, its data-completeness factors are recorded
    and missing evidence adds recommendations; the score is unaffected.

    Raises:
        ValueError: If ``lines`` is empty.
    """
    if not lines:
        raise ValueError("Cannot aggregate confidence over zero lines")

    by_line = tuple((line.entitlement, line.confidence) for line in lines)
    overall = min(conf for _, conf in by_line)

    recommendations = [_recommendation(line) for line in lines if line.confidence < 100]
    factors: tuple[tuple[str, bool], ...] = ()
    if claim is not None:
        factors = data_completeness(claim)
        recommendations.extend(_completeness_recommendations(claim, dict(factors)))
    if overall < 50:
        recommendations.append(
            "Overall estimate confidence is low; treat the total as indicative only "
            "and confirm amounts with your finance office before relying on them."
        )

    return ConfidenceSummary(
        overall=overall,
        by_line=by_line,
        level=confidence_level(overall),
        recommendations=tuple(recommendations),
        factors=factors,
    )


def describe_source(record: RateRecord) -> str:
    """Human-readable citation for one rate record."""
    text = record.source
    if record.citation and record.citation not in text:
        text = f"{text} [{record.citation}]"
    return f"{text} (verified {record.last_verified.isoformat()})"


def compile_data_sources(lines: Sequence[EntitlementLineResult]) -> tuple[str, ...]:
    """Deduplicated data sources across lines, first occurrence wins."""
    seen: dict[str, None] = {}
    for line in lines:
        for source in line.data_sources:
            seen.setdefault(source, None)
    return tuple(seen)
