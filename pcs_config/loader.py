"""
Reference Data Loader (``pcs_config.loader``).

Responsibility
--------------
Loads the YAML files of one reference set directory and parses them into
the frozen ``pcs_kernel.domain`` types that make up a ``ReferenceData``
context.  This is config-layer tooling; engines and services receive the
parsed ``ReferenceData`` and never touch YAML.  The single public entry
point for runtime reference data is ``pcs_config.get_reference_data()``.

Architecture position
---------------------
**Config layer** -- sits above ``pcs_kernel`` and below ``pcs_services``.
It has no dependency on ``pcs_engines``.

Invariants enforced
-------------------
* Amounts and rates are parsed through ``str`` into ``Decimal``; YAML
  floats never reach arithmetic.
* No silent defaults for required fields: a missing key raises
  ``KeyError``; an unexpected key in a rate row raises ``ValueError``.
* ``compute_checksum`` produces a deterministic SHA-256 hash over the
  raw content of every file in the set.

Failure modes
-------------
* Missing ``reference_set.yaml``  -> ``FileNotFoundError`` propagates.
* Missing table file  -> ``MissingReferenceDataError``.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid dates, enum values or amounts  -> ``ValueError``.

Audit relevance
---------------
The checksum ties every estimate back to the exact rate tables that
produced it; it is carried on ``ReferenceData.checksum`` and in the
``PCS_REFERENCE_TRACE`` log record.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from pcs_kernel.domain.paygrades import PaygradeBand, PaygradeTable, canonical_paygrade
from pcs_kernel.domain.rates import EntitlementType, Locality, RateRecord, WeightAllowance
from pcs_kernel.domain.reference import (
    DlaStackingPolicy,
    EntitlementPolicy,
    PpmDistanceBand,
    ReferenceData,
    ValidationPolicy,
    WithholdingPolicy,
)
from pcs_kernel.exceptions import MissingReferenceDataError

SET_FILE = "reference_set.yaml"

SET_FILES: dict[str, str] = {
    "reference_set": SET_FILE,
    "rates": "rates.yaml",
    "paygrades": "paygrades.yaml",
    "localities": "localities.yaml",
    "weight_allowances": "weight_allowances.yaml",
    "withholding": "withholding.yaml",
}

_ROW_KEYS = frozenset({
    "amount",
    "paygrade_band",
    "with_dependents",
    "locality",
    "band",
    "effective_from",
    "effective_to",
    "source",
    "last_verified",
    "citation",
})

# Table-level keys a row inherits when it does not set them itself.
_INHERITED_KEYS = ("effective_from", "effective_to", "source", "last_verified", "citation")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level, got {type(data).__name__}")
    return data


def parse_date(value: str | date) -> date:
    """Parse a date from string or date object."""
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def parse_optional_date(value: str | date | None) -> date | None:
    if value is None:
        return None
    return parse_date(value)


def parse_decimal(value: Any, what: str = "value") -> Decimal:
    """Parse an amount or rate into ``Decimal`` via its string form."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{what}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{what}: not a decimal number: {value!r}") from None


def compute_checksum(data: dict[str, Any]) -> str:
    """Compute SHA-256 checksum of canonical JSON representation."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


def parse_entitlement_policy(data: dict[str, Any]) -> EntitlementPolicy:
    if not data:
        return EntitlementPolicy()
    defaults = EntitlementPolicy()
    tier_limits = data.get("malt_tier_limits")
    bands = tuple(
        PpmDistanceBand(
            name=b["name"],
            up_to_miles=(
                parse_decimal(b["up_to_miles"], f"ppm band {b['name']}")
                if b.get("up_to_miles") is not None
                else None
            ),
        )
        for b in data.get("ppm_distance_bands", [])
    )

    def dec(key: str) -> Decimal:
        if key not in data:
            return getattr(defaults, key)
        return parse_decimal(data[key], key)

    return EntitlementPolicy(
        tle_max_nights_per_location=int(
            data.get("tle_max_nights_per_location", defaults.tle_max_nights_per_location)
        ),
        dependents_multiplier=dec("dependents_multiplier"),
        oconus_multiplier=dec("oconus_multiplier"),
        dla_stacking=DlaStackingPolicy(data.get("dla_stacking", defaults.dla_stacking.value)),
        dla_minimum_distance_miles=dec("dla_minimum_distance_miles"),
        malt_tier_limits=(
            (parse_decimal(tier_limits[0], "malt_tier_limits"),
             parse_decimal(tier_limits[1], "malt_tier_limits"))
            if tier_limits is not None
            else defaults.malt_tier_limits
        ),
        per_diem_travel_factor=dec("per_diem_travel_factor"),
        per_diem_extended_factor=dec("per_diem_extended_factor"),
        ppm_incentive_rate=dec("ppm_incentive_rate"),
        ppm_distance_bands=bands,
        ppm_estimate_confidence=int(
            data.get("ppm_estimate_confidence", defaults.ppm_estimate_confidence)
        ),
        ppm_estimate_variance=dec("ppm_estimate_variance"),
        estimated_distance_confidence=int(
            data.get("estimated_distance_confidence", defaults.estimated_distance_confidence)
        ),
    )


def parse_withholding_policy(data: dict[str, Any]) -> WithholdingPolicy:
    if not data:
        return WithholdingPolicy()
    defaults = WithholdingPolicy()
    state_rates = {
        str(state).strip().upper(): parse_decimal(rate, f"state rate {state}")
        for state, rate in (data.get("state_rates") or {}).items()
    }

    def dec(key: str) -> Decimal:
        if key not in data:
            return getattr(defaults, key)
        return parse_decimal(data[key], key)

    return WithholdingPolicy(
        federal_rate=dec("federal_rate"),
        default_state_rate=dec("default_state_rate"),
        fica_rate=dec("fica_rate"),
        medicare_rate=dec("medicare_rate"),
        fica_wage_base=dec("fica_wage_base"),
        state_rates=state_rates,
        disclaimer=data.get("disclaimer", defaults.disclaimer),
    )


def parse_validation_policy(data: dict[str, Any]) -> ValidationPolicy:
    if not data:
        return ValidationPolicy()
    defaults = ValidationPolicy()
    return ValidationPolicy(
        error_weight=int(data.get("error_weight", defaults.error_weight)),
        warning_weight=int(data.get("warning_weight", defaults.warning_weight)),
        confidence_floor=int(data.get("confidence_floor", defaults.confidence_floor)),
        distance_min_ratio=parse_decimal(
            data.get("distance_min_ratio", defaults.distance_min_ratio), "distance_min_ratio"
        ),
        distance_max_ratio=parse_decimal(
            data.get("distance_max_ratio", defaults.distance_max_ratio), "distance_max_ratio"
        ),
    )


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


def parse_rate_row(
    entitlement: EntitlementType,
    row: dict[str, Any],
    inherited: dict[str, Any],
) -> RateRecord:
    """Parse one rate row, filling unset provenance keys from its table."""
    unknown = set(row) - _ROW_KEYS
    if unknown:
        raise ValueError(
            f"{entitlement.value} rate row has unknown keys {sorted(unknown)}: {row}"
        )
    merged = {**inherited, **{k: v for k, v in row.items() if v is not None}}
    band_code = merged.get("paygrade_band")
    locality = merged.get("locality")
    return RateRecord(
        entitlement=entitlement,
        amount=parse_decimal(merged["amount"], f"{entitlement.value} amount"),
        effective_from=parse_date(merged["effective_from"]),
        effective_to=parse_optional_date(merged.get("effective_to")),
        source=merged["source"],
        last_verified=parse_date(merged["last_verified"]),
        citation=merged.get("citation", ""),
        paygrade_band=PaygradeBand.parse(band_code) if band_code is not None else None,
        with_dependents=merged.get("with_dependents"),
        locality=str(locality).strip().upper() if locality is not None else None,
        band=merged.get("band"),
    )


def parse_rates(
    data: dict[str, Any],
    set_defaults: dict[str, Any],
) -> tuple[RateRecord, ...]:
    """Parse ``rates.yaml``: a list of tables, each with rows for one entitlement."""
    records: list[RateRecord] = []
    for table in data.get("tables", []):
        entitlement = EntitlementType.parse(table["entitlement"])
        inherited = dict(set_defaults)
        inherited.update({k: table[k] for k in _INHERITED_KEYS if k in table})
        for row in table.get("rows", []):
            records.append(parse_rate_row(entitlement, row, inherited))
    return tuple(records)


def parse_paygrades(data: dict[str, Any]) -> PaygradeTable:
    mapping: dict[str, PaygradeBand] = {}
    for band_code, grades in data["bands"].items():
        band = PaygradeBand.parse(band_code)
        for grade in grades:
            code = canonical_paygrade(grade)
            if code in mapping:
                raise ValueError(
                    f"Paygrade {code} mapped to both {mapping[code].value} and {band.value}"
                )
            mapping[code] = band
    return PaygradeTable(bands=mapping)


def parse_localities(data: dict[str, Any]) -> dict[str, Locality]:
    localities: dict[str, Locality] = {}
    for entry in data.get("localities", []):
        code = str(entry["code"]).strip().upper()
        if code in localities:
            raise ValueError(f"Duplicate locality code: {code}")
        lat = entry.get("latitude")
        lon = entry.get("longitude")
        localities[code] = Locality(
            code=code,
            name=entry["name"],
            state=entry.get("state"),
            oconus=bool(entry.get("oconus", False)),
            latitude=parse_decimal(lat, f"{code} latitude") if lat is not None else None,
            longitude=parse_decimal(lon, f"{code} longitude") if lon is not None else None,
        )
    return localities


def parse_weight_allowances(data: dict[str, Any]) -> dict[str, WeightAllowance]:
    allowances: dict[str, WeightAllowance] = {}
    for grade, entry in data.get("allowances", {}).items():
        code = canonical_paygrade(grade)
        allowances[code] = WeightAllowance(
            paygrade=code,
            without_dependents=int(entry["without_dependents"]),
            with_dependents=int(entry["with_dependents"]),
        )
    return allowances


# ---------------------------------------------------------------------------
# Set assembly
# ---------------------------------------------------------------------------


def read_set_header(set_dir: Path) -> dict[str, Any]:
    """Load only ``reference_set.yaml`` (identity and effective range)."""
    return load_yaml_file(set_dir / SET_FILE)


def load_raw_set(set_dir: Path) -> dict[str, dict[str, Any]]:
    """Load every file of a set as raw dicts, keyed by logical name.

    Raises:
        FileNotFoundError: If the directory has no ``reference_set.yaml``.
        MissingReferenceDataError: If the header exists but a table file
            is absent.
    """
    header = read_set_header(set_dir)
    raw = {"reference_set": header}
    for name, filename in SET_FILES.items():
        if name == "reference_set":
            continue
        path = set_dir / filename
        if not path.is_file():
            raise MissingReferenceDataError(
                str(header.get("set_id", set_dir.name)), name, filename
            )
        raw[name] = load_yaml_file(path)
    return raw


def build_reference_data(raw: dict[str, dict[str, Any]]) -> ReferenceData:
    """Parse raw set content into ``ReferenceData`` with its checksum."""
    header = raw["reference_set"]
    policies = header.get("policies", {})
    effective_from = parse_date(header["effective_from"])
    effective_to = parse_optional_date(header.get("effective_to"))
    set_defaults: dict[str, Any] = {
        "effective_from": effective_from,
        "effective_to": effective_to,
    }
    if header.get("last_verified") is not None:
        set_defaults["last_verified"] = parse_date(header["last_verified"])

    return ReferenceData(
        set_id=header["set_id"],
        version=str(header["version"]),
        effective_from=effective_from,
        effective_to=effective_to,
        jtr_version=str(header.get("jtr_version", "")),
        rates=parse_rates(raw["rates"], set_defaults),
        paygrades=parse_paygrades(raw["paygrades"]),
        localities=parse_localities(raw["localities"]),
        weight_allowances=parse_weight_allowances(raw["weight_allowances"]),
        entitlement_policy=parse_entitlement_policy(policies.get("entitlements", {})),
        withholding_policy=parse_withholding_policy(raw["withholding"]),
        validation_policy=parse_validation_policy(policies.get("validation", {})),
        checksum=compute_checksum(raw),
    )


def load_reference_set(set_dir: Path) -> ReferenceData:
    """Load and parse one reference set directory.

    Does not validate cross-table consistency; see
    ``pcs_config.validator.validate_reference_data``.
    """
    return build_reference_data(load_raw_set(set_dir))
