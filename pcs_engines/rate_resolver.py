"""
Rate Resolver (``pcs_engines.rate_resolver``).

Responsibility
--------------
Look up the reference rate for an entitlement type, paygrade, dependency
flag, locality and as-of date. Always returns a usable ``RateRecord``;
imperfect reference data lowers the record's confidence instead of failing
the calculation.

Architecture position
---------------------
**Engines layer** -- pure lookup over the injected ``ReferenceData``.
ZERO I/O, ZERO clock reads.

Invariants enforced
-------------------
* Never raises for missing data. Resolution order:

  1. exact match on (type, band, paygrade band, dependency, locality, date)
     -> ``exact``, confidence 100;
  2. only an adjacent effective period exists -> ``interpolated``, 80;
  3. locality missing or unknown -> national default, ``fallback``, 60;
  4. unmapped paygrade -> default band record, ``fallback``, 0;
  5. nothing at all -> zero-amount placeholder, ``fallback``, 0.

* Confidence only ever decreases along the chain; penalties compose by
  minimum.
* Among equally applicable records the most specific wins (explicit
  paygrade band / dependency over wildcards), then the latest version.

Failure modes
-------------
* ``UnknownEntitlementTypeError`` for an entitlement code that is not
  enumerated. That is a programming error, not missing data.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal

from pcs_kernel.domain.paygrades import BAND_SENIORITY, PaygradeBand
from pcs_kernel.domain.rates import (
    TIER_CONFIDENCE,
    ConfidenceTier,
    EntitlementType,
    RateRecord,
)
from pcs_kernel.domain.reference import ReferenceData
from pcs_kernel.exceptions import UnknownPaygradeError
from pcs_kernel.logging_config import get_logger

logger = get_logger("engines.rate_resolver")

NO_RATE_SOURCE = "No reference rate available - verify with finance office"

_TIER_RANK = {
    ConfidenceTier.EXACT: 0,
    ConfidenceTier.INTERPOLATED: 1,
    ConfidenceTier.FALLBACK: 2,
}


def _worse(a: ConfidenceTier, b: ConfidenceTier) -> ConfidenceTier:
    return a if _TIER_RANK[a] >= _TIER_RANK[b] else b


def _specificity(record: RateRecord) -> int:
    return (record.paygrade_band is not None) + (record.with_dependents is not None)


def _pick_for_date(
    candidates: list[RateRecord],
    as_of: date,
) -> tuple[RateRecord, ConfidenceTier]:
    effective = [r for r in candidates if r.is_effective(as_of)]
    if effective:
        chosen = max(effective, key=lambda r: (_specificity(r), r.effective_from))
        return chosen, ConfidenceTier.EXACT
    chosen = min(
        candidates,
        key=lambda r: (r.days_from(as_of), -_specificity(r), -r.effective_from.toordinal()),
    )
    return chosen, ConfidenceTier.INTERPOLATED


def _placeholder(
    reference: ReferenceData,
    entitlement: EntitlementType,
    band: str | None,
    locality: str | None,
) -> RateRecord:
    return RateRecord(
        entitlement=entitlement,
        amount=Decimal("0"),
        effective_from=reference.effective_from,
        effective_to=reference.effective_to,
        source=NO_RATE_SOURCE,
        last_verified=reference.effective_from,
        band=band,
        locality=locality,
        confidence_tier=ConfidenceTier.FALLBACK,
        confidence=0,
    )


def _log_fallback(
    entitlement: EntitlementType,
    reason: str,
    confidence: int,
    **context: object,
) -> None:
    logger.warning(
        "rate_resolver_fallback",
        extra={
            "entitlement": entitlement.value,
            "reason": reason,
            "confidence": confidence,
            **{k: v for k, v in context.items() if v is not None},
        },
    )


def _unmapped_paygrade_rate(
    reference: ReferenceData,
    entitlement: EntitlementType,
    candidates: list[RateRecord],
    paygrade: str | None,
    as_of: date,
) -> RateRecord:
    """Unmapped paygrade: wildcard record if present, else the most junior band."""
    default = [r for r in candidates if r.paygrade_band is None]
    if not default:
        for band in BAND_SENIORITY:
            default = [r for r in candidates if r.paygrade_band is band]
            if default:
                break
    if not default:
        _log_fallback(entitlement, "no_rate_for_entitlement", 0, paygrade=paygrade)
        return _placeholder(reference, entitlement, None, None)

    chosen, _ = _pick_for_date(default, as_of)
    _log_fallback(entitlement, "paygrade_unmapped", 0, paygrade=paygrade)
    return replace(
        chosen.degraded(ConfidenceTier.FALLBACK, 0),
        source=f"{chosen.source} (paygrade {paygrade or '<blank>'} unmapped; default band applied)",
    )


def resolve_rate(
    reference: ReferenceData,
    entitlement: EntitlementType | str,
    as_of: date,
    *,
    paygrade: str | None = None,
    with_dependents: bool | None = None,
    locality: str | None = None,
    band: str | None = None,
) -> RateRecord:
    """Resolve the applicable rate, degrading confidence rather than failing.

    Args:
        reference: Injected immutable reference data.
        entitlement: Entitlement type (enum or wire code).
        as_of: Date the rate must be effective on.
        paygrade: Canonical paygrade (used by paygrade-keyed entitlements).
        with_dependents: Dependency flag; records with ``None`` match either.
        locality: Locality code (used by locality-keyed entitlements).
        band: Qualifier within an entitlement (MALT tier, PPM distance band).

    Returns:
        A ``RateRecord`` whose ``confidence_tier`` and ``confidence`` reflect
        how it was matched.
    """
    if not isinstance(entitlement, EntitlementType):
        entitlement = EntitlementType.parse(entitlement)

    candidates = list(reference.records_for(entitlement, band))
    candidates = [
        r for r in candidates
        if r.with_dependents is None or r.with_dependents == with_dependents
    ]

    if entitlement.paygrade_keyed:
        try:
            paygrade_band: PaygradeBand = reference.paygrades.band_for(paygrade or "")
        except UnknownPaygradeError:
            return _unmapped_paygrade_rate(reference, entitlement, candidates, paygrade, as_of)
        candidates = [r for r in candidates if r.paygrade_band in (None, paygrade_band)]

    tier = ConfidenceTier.EXACT
    ceiling = TIER_CONFIDENCE[ConfidenceTier.EXACT]
    code = locality.strip().upper() if locality else None

    if entitlement.locality_keyed:
        local = [r for r in candidates if code is not None and r.locality == code]
        if local:
            candidates = local
        else:
            candidates = [r for r in candidates if r.locality is None]
            tier = ConfidenceTier.FALLBACK
            ceiling = TIER_CONFIDENCE[ConfidenceTier.FALLBACK]
            if candidates:
                _log_fallback(
                    entitlement,
                    "locality_not_found" if code else "locality_missing",
                    ceiling,
                    locality=code,
                )
    else:
        candidates = [r for r in candidates if r.locality is None]

    if not candidates:
        _log_fallback(entitlement, "no_rate_for_key", 0, paygrade=paygrade, locality=code, band=band)
        return _placeholder(reference, entitlement, band, code)

    chosen, date_tier = _pick_for_date(candidates, as_of)
    if date_tier is ConfidenceTier.INTERPOLATED:
        _log_fallback(
            entitlement,
            "no_rate_effective_on_date",
            TIER_CONFIDENCE[date_tier],
            as_of=as_of.isoformat(),
            band=band,
        )
        ceiling = min(ceiling, TIER_CONFIDENCE[date_tier])
        tier = _worse(tier, date_tier)

    if tier is ConfidenceTier.EXACT:
        return chosen
    return chosen.degraded(tier, ceiling)
