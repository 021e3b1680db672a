"""
PCS claim snapshot and normalization.

Responsibility
--------------
Turns the loosely-typed, partially-filled claim payloads produced by forms
and OCR pre-population into one explicit, fully-populated ``Claim``
snapshot. Both the entitlement calculator and the validation rule engine
only ever see the normalized snapshot.

Invariants enforced
-------------------
* Required fields (claim id, departure and arrival dates) are present.
* Dates are parsed once; a time component on either trip date promotes
  both to naive UTC datetimes so they stay comparable.
* Paygrades are canonical (``'e-5'`` -> ``'E5'``).

Failure modes
-------------
* ``InvalidClaimInputError`` for missing required fields or unparseable
  values, naming the offending field.
* Negative quantities and inverted dates are deliberately NOT rejected by
  normalization: the validation engine must be able to report them. They
  are rejected by ``ensure_calculable`` at calculation entry.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import TYPE_CHECKING, Any

from pcs_kernel.domain.paygrades import canonical_paygrade
from pcs_kernel.domain.values import require_decimal, to_cents
from pcs_kernel.exceptions import InvalidClaimInputError

if TYPE_CHECKING:
    from pcs_kernel.domain.reference import ReferenceData


class TravelMethod(str, Enum):
    """How household goods move."""

    PPM = "ppm"
    GOVERNMENT = "government"
    MIXED = "mixed"

    @property
    def involves_ppm(self) -> bool:
        return self is not TravelMethod.GOVERNMENT


class PerDiemClassification(str, Enum):
    """Per diem factor selector. Always stated on the claim, never inferred."""

    TRAVEL = "travel"
    EXTENDED = "extended"


_SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class Claim:
    """Normalized PCS claim snapshot."""

    claim_id: str
    departure_date: date
    arrival_date: date
    claim_name: str | None = None
    paygrade: str = ""
    dependents_count: int = 0
    origin_locality: str | None = None
    destination_locality: str | None = None
    destination_state: str | None = None
    orders_date: date | None = None
    tle_origin_nights: int = 0
    tle_destination_nights: int = 0
    distance_miles: Decimal = Decimal("0")
    estimated_weight_lb: int = 0
    actual_weight_lb: int = 0
    travel_method: TravelMethod = TravelMethod.GOVERNMENT
    oconus: bool = False
    per_diem_classification: PerDiemClassification = PerDiemClassification.TRAVEL
    branch: str | None = None
    official_gcc_cents: int | None = None
    fuel_receipts_cents: int = 0
    distance_source: str | None = None

    def __post_init__(self) -> None:
        if not self.claim_id:
            raise ValueError("Claim.claim_id is required")
        require_decimal(self.distance_miles, "distance_miles")
        if isinstance(self.departure_date, datetime) != isinstance(self.arrival_date, datetime):
            raise ValueError("departure_date and arrival_date must both be dates or both datetimes")

    @property
    def has_dependents(self) -> bool:
        return self.dependents_count > 0

    @property
    def effective_weight_lb(self) -> int:
        """Actual (weighed) weight when known, otherwise the estimate."""
        return self.actual_weight_lb if self.actual_weight_lb > 0 else self.estimated_weight_lb

    @property
    def travel_days(self) -> int:
        """Ceiling of the departure-to-arrival delta in days (0 if not positive)."""
        delta = self.arrival_date - self.departure_date
        seconds = delta.total_seconds()
        if seconds <= 0:
            return 0
        return math.ceil(seconds / _SECONDS_PER_DAY)

    @property
    def departure_day(self) -> date:
        """Departure as a calendar date."""
        if isinstance(self.departure_date, datetime):
            return self.departure_date.date()
        return self.departure_date

    @property
    def entitlement_date(self) -> date:
        """Date entitlements are determined on: the orders date, else departure.

        Rate lookups and reference-set selection both key on this date, so a
        move ordered in one fiscal year and travelled in the next is paid at
        the rates in force when the orders were issued.
        """
        return self.orders_date if self.orders_date is not None else self.departure_day

    @property
    def distance_estimated(self) -> bool:
        """True when the distance was filled in by a provider, not claimed."""
        return self.distance_source is not None


def ensure_calculable(claim: Claim) -> None:
    """Reject structurally invalid claims before any entitlement math.

    Raises:
        InvalidClaimInputError: Naming the first offending field.
    """
    if claim.arrival_date <= claim.departure_date:
        raise InvalidClaimInputError(
            "arrival_date",
            f"must be after departure_date ({claim.departure_date.isoformat()})",
            claim.arrival_date.isoformat(),
        )
    for name in (
        "distance_miles",
        "estimated_weight_lb",
        "actual_weight_lb",
        "tle_origin_nights",
        "tle_destination_nights",
        "dependents_count",
        "official_gcc_cents",
        "fuel_receipts_cents",
    ):
        value = getattr(claim, name) or 0
        if value < 0:
            raise InvalidClaimInputError(name, "must not be negative", str(value))


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

# Form and OCR field names mapped onto Claim fields.
_ALIASES: dict[str, str] = {
    "id": "claim_id",
    "rank_at_pcs": "paygrade",
    "rank": "paygrade",
    "pcs_orders_date": "orders_date",
    "malt_distance": "distance_miles",
    "distance": "distance_miles",
    "origin_base": "origin_locality",
    "destination_base": "destination_locality",
    "estimated_weight": "estimated_weight_lb",
    "actual_weight": "actual_weight_lb",
    "departure": "departure_date",
    "arrival": "arrival_date",
    "gcc_amount": "official_gcc",
    "gcc": "official_gcc",
    "fuel": "fuel_receipts",
}

_TRUE_STRINGS = frozenset({"true", "yes", "y", "1"})
_FALSE_STRINGS = frozenset({"false", "no", "n", "0", ""})

_TRAVEL_METHOD_ALIASES = {
    "dity": TravelMethod.PPM,
    "hhg": TravelMethod.GOVERNMENT,
    "gov": TravelMethod.GOVERNMENT,
    "partial": TravelMethod.MIXED,
}


def _canonical_keys(raw: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in raw.items():
        name = _ALIASES.get(key, key)
        # Explicit canonical keys win over aliases.
        if name in out and key != name:
            continue
        out[name] = value
    return out


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_date(field: str, value: Any) -> date | None:
    if _blank(value):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise InvalidClaimInputError(field, "expected an ISO date", value)
    text = value.strip()
    try:
        if "T" in text or " " in text:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            return _parse_date(field, parsed)
        return date.fromisoformat(text)
    except ValueError:
        raise InvalidClaimInputError(field, "not a valid ISO date", value) from None


def _parse_decimal(field: str, value: Any) -> Decimal:
    if _blank(value):
        return Decimal("0")
    if isinstance(value, bool):
        raise InvalidClaimInputError(field, "expected a number", value)
    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).replace(",", "").strip()
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise InvalidClaimInputError(field, "expected a number", value) from None
    if not result.is_finite():
        raise InvalidClaimInputError(field, "must be finite", value)
    return result


def _parse_money(field: str, value: Any) -> int | None:
    """Dollar amount to integer cents; blank stays None."""
    if _blank(value):
        return None
    return to_cents(_parse_decimal(field, value))


def _parse_int(field: str, value: Any) -> int:
    number = _parse_decimal(field, value)
    if number != number.to_integral_value():
        raise InvalidClaimInputError(field, "expected a whole number", value)
    return int(number)


def _parse_bool(field: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, int):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise InvalidClaimInputError(field, "expected true/false", value)


def _parse_text(value: Any) -> str | None:
    if _blank(value):
        return None
    return str(value).strip()


def _parse_locality(value: Any) -> str | None:
    text = _parse_text(value)
    return text.upper() if text else None


def _parse_dependents(values: dict[str, Any]) -> int:
    if not _blank(values.get("dependents_count")):
        return _parse_int("dependents_count", values["dependents_count"])
    for key in ("dependents", "has_dependents"):
        value = values.get(key)
        if _blank(value):
            continue
        if isinstance(value, bool) or (
            isinstance(value, str) and not value.strip().lstrip("-").isdigit()
        ):
            return 1 if _parse_bool(key, value) else 0
        return _parse_int(key, value)
    return 0


def _parse_enum(field: str, value: Any, enum_cls: type[Enum], default: Enum, aliases: Mapping[str, Enum] | None = None) -> Any:
    if _blank(value):
        return default
    if isinstance(value, enum_cls):
        return value
    text = str(value).strip().lower()
    if aliases and text in aliases:
        return aliases[text]
    try:
        return enum_cls(text)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidClaimInputError(field, f"must be one of: {allowed}", value) from None


def normalize_claim(
    raw: Mapping[str, Any],
    reference: "ReferenceData | None" = None,
) -> Claim:
    """Build a fully-populated ``Claim`` snapshot from a draft payload.

    Args:
        raw: Draft claim mapping (snake_case keys or form/OCR aliases).
            An existing ``Claim`` is returned unchanged.
        reference: When given, localities flagged OCONUS set ``oconus``.

    Raises:
        InvalidClaimInputError: Missing required field or unparseable value.
    """
    if isinstance(raw, Claim):
        return raw

    values = _canonical_keys(raw)

    claim_id = _parse_text(values.get("claim_id"))
    if claim_id is None:
        raise InvalidClaimInputError("claim_id", "is required")

    departure = _parse_date("departure_date", values.get("departure_date"))
    if departure is None:
        raise InvalidClaimInputError("departure_date", "is required")
    arrival = _parse_date("arrival_date", values.get("arrival_date"))
    if arrival is None:
        raise InvalidClaimInputError("arrival_date", "is required")

    if isinstance(departure, datetime) != isinstance(arrival, datetime):
        departure, arrival = _as_datetime(departure), _as_datetime(arrival)

    origin = _parse_locality(values.get("origin_locality"))
    destination = _parse_locality(values.get("destination_locality"))

    oconus = _parse_bool("oconus", values.get("oconus"))
    if reference is not None and not oconus:
        oconus = reference.is_oconus(origin) or reference.is_oconus(destination)

    destination_state = _parse_text(values.get("destination_state"))
    if destination_state is None and reference is not None:
        dest = reference.locality(destination)
        destination_state = dest.state if dest is not None else None

    return Claim(
        claim_id=claim_id,
        departure_date=departure,
        arrival_date=arrival,
        claim_name=_parse_text(values.get("claim_name")),
        paygrade=canonical_paygrade(_parse_text(values.get("paygrade"))),
        dependents_count=_parse_dependents(values),
        origin_locality=origin,
        destination_locality=destination,
        destination_state=destination_state.upper() if destination_state else None,
        orders_date=_calendar_date(_parse_date("orders_date", values.get("orders_date"))),
        tle_origin_nights=_parse_int("tle_origin_nights", values.get("tle_origin_nights")),
        tle_destination_nights=_parse_int(
            "tle_destination_nights", values.get("tle_destination_nights")
        ),
        distance_miles=_parse_decimal("distance_miles", values.get("distance_miles")),
        estimated_weight_lb=_parse_int("estimated_weight_lb", values.get("estimated_weight_lb")),
        actual_weight_lb=_parse_int("actual_weight_lb", values.get("actual_weight_lb")),
        travel_method=_parse_enum(
            "travel_method",
            values.get("travel_method"),
            TravelMethod,
            TravelMethod.GOVERNMENT,
            _TRAVEL_METHOD_ALIASES,
        ),
        oconus=oconus,
        per_diem_classification=_parse_enum(
            "per_diem_classification",
            values.get("per_diem_classification"),
            PerDiemClassification,
            PerDiemClassification.TRAVEL,
        ),
        branch=_parse_text(values.get("branch")),
        official_gcc_cents=_parse_money("official_gcc", values.get("official_gcc")),
        fuel_receipts_cents=_parse_money("fuel_receipts", values.get("fuel_receipts")) or 0,
        distance_source=_parse_text(values.get("distance_source")),
    )


def _calendar_date(value: date | None) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    return value


def _as_datetime(value: date) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)
