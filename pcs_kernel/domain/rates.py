"""
Reference rate value types.

A ``RateRecord`` is one row of a versioned reference table: the amount an
entitlement pays for a (band, dependency, locality, qualifier) key over an
effective date range, together with its citation and how much the engine
trusts it. The rate resolver hands back copies of these records with the
confidence adjusted to reflect how the match was made.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum

from pcs_kernel.domain.paygrades import PaygradeBand
from pcs_kernel.domain.values import require_decimal
from pcs_kernel.exceptions import UnknownEntitlementTypeError


class EntitlementType(str, Enum):
    """The five reimbursement lines of a PCS estimate.

    Values are the wire keys used in the calculation output.
    """

    DLA = "dla"
    TLE = "tle"
    MALT = "malt"
    PER_DIEM = "perDiem"
    PPM = "ppm"

    @classmethod
    def parse(cls, code: str) -> "EntitlementType":
        """Resolve a wire code or member name.

        Raises:
            UnknownEntitlementTypeError: If the code is not enumerated.
        """
        for member in cls:
            if code in (member.value, member.name, member.name.lower()):
                return member
        raise UnknownEntitlementTypeError(code)

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def paygrade_keyed(self) -> bool:
        return self is EntitlementType.DLA

    @property
    def locality_keyed(self) -> bool:
        return self in (EntitlementType.TLE, EntitlementType.PER_DIEM)


_LABELS = {
    EntitlementType.DLA: "DLA",
    EntitlementType.TLE: "TLE",
    EntitlementType.MALT: "MALT",
    EntitlementType.PER_DIEM: "Per Diem",
    EntitlementType.PPM: "PPM",
}


class ConfidenceTier(str, Enum):
    """How a rate was matched."""

    EXACT = "exact"
    INTERPOLATED = "interpolated"
    FALLBACK = "fallback"


TIER_CONFIDENCE: dict[ConfidenceTier, int] = {
    ConfidenceTier.EXACT: 100,
    ConfidenceTier.INTERPOLATED: 80,
    ConfidenceTier.FALLBACK: 60,
}


@dataclass(frozen=True, slots=True)
class RateRecord:
    """One versioned reference rate.

    ``None`` in a key field (band, dependency, locality) means the record
    applies to any value of that key. A record with ``locality=None`` on a
    locality-keyed entitlement is the national default.
    """

    entitlement: EntitlementType
    amount: Decimal
    effective_from: date
    source: str
    last_verified: date
    effective_to: date | None = None
    citation: str = ""
    paygrade_band: PaygradeBand | None = None
    with_dependents: bool | None = None
    locality: str | None = None
    band: str | None = None
    confidence_tier: ConfidenceTier = ConfidenceTier.EXACT
    confidence: int = 100

    def __post_init__(self) -> None:
        require_decimal(self.amount, "RateRecord.amount")
        if self.amount < 0:
            raise ValueError(f"Rate amount cannot be negative: {self.amount}")
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"Confidence must be 0-100, got {self.confidence}")
        if self.effective_to is not None and self.effective_to < self.effective_from:
            raise ValueError(
                f"effective_to ({self.effective_to}) before "
                f"effective_from ({self.effective_from})"
            )
        if not self.source:
            raise ValueError("RateRecord.source is required")

    def is_effective(self, as_of: date) -> bool:
        if as_of < self.effective_from:
            return False
        return self.effective_to is None or as_of <= self.effective_to

    def days_from(self, as_of: date) -> int:
        """Distance in days between ``as_of`` and this record's range (0 if inside)."""
        if as_of < self.effective_from:
            return (self.effective_from - as_of).days
        if self.effective_to is not None and as_of > self.effective_to:
            return (as_of - self.effective_to).days
        return 0

    def degraded(self, tier: ConfidenceTier, confidence: int) -> "RateRecord":
        """Copy with a lower-trust tier; confidence never increases."""
        return replace(
            self,
            confidence_tier=tier,
            confidence=min(self.confidence, confidence),
        )


@dataclass(frozen=True, slots=True)
class Locality:
    """A duty location / per diem locality."""

    code: str
    name: str
    state: str | None = None
    oconus: bool = False
    latitude: Decimal | None = None
    longitude: Decimal | None = None

    def __post_init__(self) -> None:
        if not self.code:
            raise ValueError("Locality.code is required")
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError(
                f"Locality {self.code}: latitude and longitude must both be set"
            )

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None


@dataclass(frozen=True, slots=True)
class WeightAllowance:
    """JTR 054705 household-goods weight allowance for one paygrade (lb)."""

    paygrade: str
    without_dependents: int
    with_dependents: int

    def __post_init__(self) -> None:
        if self.without_dependents <= 0 or self.with_dependents <= 0:
            raise ValueError(f"Weight allowance for {self.paygrade} must be positive")
        if self.with_dependents < self.without_dependents:
            raise ValueError(
                f"Weight allowance for {self.paygrade}: with-dependents "
                f"({self.with_dependents}) below without ({self.without_dependents})"
            )

    def for_dependency(self, has_dependents: bool) -> int:
        return self.with_dependents if has_dependents else self.without_dependents
