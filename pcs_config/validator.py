"""
Reference Data Validator (``pcs_config.validator``).

Responsibility
--------------
Cross-table consistency checks on a parsed ``ReferenceData`` before it is
handed to the engines.  Each row parses on its own; this module checks that
the rows together form a usable rate year.

Architecture position
---------------------
**Config layer** -- called by ``pcs_config.get_reference_data()`` after
loading.  Has no dependency on engines or services.

Invariants enforced
-------------------
* Every entitlement has at least one rate.
* TLE and per diem carry a national default (``locality`` unset).
* Every paygrade band has a DLA base, and DLA bases are non-decreasing
  with seniority.
* Every MALT tier and PPM distance band has a rate.
* Rate rows sharing a key never have overlapping effective ranges.
* Rate rows only reference declared localities.

Failure modes
-------------
* Errors (``ReferenceValidationResult.errors``)  -> the set MUST NOT be
  used.
* Warnings  -> the set may be used but should be reviewed.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field

from pcs_kernel.domain.paygrades import BAND_SENIORITY
from pcs_kernel.domain.rates import EntitlementType, RateRecord
from pcs_kernel.domain.reference import MALT_TIER_BANDS, ReferenceData


@dataclass
class ReferenceValidationResult:
    """
    Result of reference data validation.

    ``is_valid`` is ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_reference_data(reference: ReferenceData) -> ReferenceValidationResult:
    """Validate a parsed reference set.

    Returns:
        ReferenceValidationResult with collected errors and warnings.
    """
    result = ReferenceValidationResult()

    _check_coverage(reference, result)
    _check_national_defaults(reference, result)
    _check_dla_bands(reference, result)
    _check_banded_tables(reference, result)
    _check_overlaps(reference, result)
    _check_localities(reference, result)
    _check_paygrades(reference, result)
    _check_effective_window(reference, result)

    return result


def _check_coverage(reference: ReferenceData, result: ReferenceValidationResult) -> None:
    present = {r.entitlement for r in reference.rates}
    for entitlement in EntitlementType:
        if entitlement not in present:
            result.add_error(f"No rates defined for {entitlement.value}")


def _check_national_defaults(
    reference: ReferenceData, result: ReferenceValidationResult
) -> None:
    for entitlement in (EntitlementType.TLE, EntitlementType.PER_DIEM):
        has_default = any(
            r.entitlement is entitlement and r.locality is None for r in reference.rates
        )
        if not has_default:
            result.add_error(f"{entitlement.value}: missing national default rate")


def _check_dla_bands(reference: ReferenceData, result: ReferenceValidationResult) -> None:
    dla = [r for r in reference.rates if r.entitlement is EntitlementType.DLA]
    mapped = {r.paygrade_band for r in dla}
    for band in BAND_SENIORITY:
        if band not in mapped and None not in mapped:
            result.add_error(f"dla: no base amount for paygrade band {band.value}")

    # Monotonicity is checked within each (effective_from, dependency) cohort.
    cohorts: dict[tuple, dict] = defaultdict(dict)
    for r in dla:
        if r.paygrade_band is not None:
            cohorts[(r.effective_from, r.with_dependents)][r.paygrade_band] = r.amount
    for (effective_from, with_dependents), by_band in sorted(
        cohorts.items(), key=lambda item: (item[0][0], str(item[0][1]))
    ):
        previous = None
        for band in BAND_SENIORITY:
            amount = by_band.get(band)
            if amount is None:
                continue
            if previous is not None and amount < previous[1]:
                result.add_error(
                    f"dla ({effective_from}): base for {band.value} ({amount}) is below "
                    f"{previous[0].value} ({previous[1]}); bases must not decrease "
                    f"with seniority"
                )
            previous = (band, amount)


def _check_banded_tables(reference: ReferenceData, result: ReferenceValidationResult) -> None:
    malt_bands = {r.band for r in reference.rates if r.entitlement is EntitlementType.MALT}
    for tier in MALT_TIER_BANDS:
        if tier not in malt_bands:
            result.add_error(f"malt: no rate for {tier}")

    policy = reference.entitlement_policy
    if not policy.ppm_distance_bands:
        result.add_error("ppm: no carrier distance bands declared")
    ppm_bands = {r.band for r in reference.rates if r.entitlement is EntitlementType.PPM}
    for band in policy.ppm_distance_bands:
        if band.name not in ppm_bands:
            result.add_error(f"ppm: no carrier rate for distance band '{band.name}'")
    declared = {b.name for b in policy.ppm_distance_bands}
    for name in sorted(b for b in ppm_bands if b is not None and b not in declared):
        result.add_warning(f"ppm: carrier rate for undeclared distance band '{name}'")


def _rate_key(record: RateRecord) -> tuple:
    return (
        record.entitlement.value,
        record.paygrade_band.value if record.paygrade_band else None,
        record.with_dependents,
        record.locality,
        record.band,
    )


def _check_overlaps(reference: ReferenceData, result: ReferenceValidationResult) -> None:
    groups: dict[tuple, list[RateRecord]] = defaultdict(list)
    for r in reference.rates:
        groups[_rate_key(r)].append(r)

    for key, records in groups.items():
        records.sort(key=lambda r: r.effective_from)
        for earlier, later in zip(records, records[1:]):
            if earlier.effective_to is None or later.effective_from <= earlier.effective_to:
                result.add_error(
                    f"Overlapping effective ranges for {key}: "
                    f"{earlier.effective_from}..{earlier.effective_to or 'open'} and "
                    f"{later.effective_from}..{later.effective_to or 'open'}"
                )


def _check_localities(reference: ReferenceData, result: ReferenceValidationResult) -> None:
    for r in reference.rates:
        if r.locality is not None and r.locality not in reference.localities:
            result.add_error(
                f"{r.entitlement.value}: rate references undeclared locality {r.locality}"
            )
    for code, loc in sorted(reference.localities.items()):
        if not loc.has_coordinates:
            result.add_warning(f"Locality {code} has no coordinates; distance checks skipped")


def _check_paygrades(reference: ReferenceData, result: ReferenceValidationResult) -> None:
    for band in BAND_SENIORITY:
        if not reference.paygrades.grades_in(band):
            result.add_warning(f"Paygrade band {band.value} has no grades mapped to it")
    for grade in sorted(reference.weight_allowances):
        if not reference.paygrades.is_known(grade):
            result.add_warning(f"Weight allowance for unmapped paygrade {grade}")
    for grade in sorted(reference.paygrades.bands):
        if grade not in reference.weight_allowances:
            result.add_warning(f"Paygrade {grade} has no weight allowance")


def _check_effective_window(
    reference: ReferenceData, result: ReferenceValidationResult
) -> None:
    for r in reference.rates:
        if not reference.covers(r.effective_from):
            result.add_warning(
                f"{r.entitlement.value} rate effective {r.effective_from} starts outside "
                f"set {reference.set_id} range"
            )
