"""
Paygrade bands.

DLA base amounts are published per band rather than per grade. The band set
is closed and ordered by seniority; the grade-to-band mapping itself is
reference data (``paygrades.yaml``) and is loaded into a ``PaygradeTable``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from pcs_kernel.exceptions import UnknownPaygradeError


class PaygradeBand(str, Enum):
    """Entitlement rate tiers shared by groups of paygrades."""

    E1_E4 = "E1-E4"
    E5_E6 = "E5-E6"
    E7_E9 = "E7-E9"
    O1_O3 = "O1-O3"
    O4_O6 = "O4-O6"
    O7_PLUS = "O7+"

    @classmethod
    def parse(cls, value: str) -> "PaygradeBand":
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown paygrade band: {value!r}") from None


# Junior to senior. DLA base amounts must be non-decreasing along this order.
BAND_SENIORITY: tuple[PaygradeBand, ...] = (
    PaygradeBand.E1_E4,
    PaygradeBand.E5_E6,
    PaygradeBand.E7_E9,
    PaygradeBand.O1_O3,
    PaygradeBand.O4_O6,
    PaygradeBand.O7_PLUS,
)

_PAYGRADE_RE = re.compile(r"^([EOW])[\s\-_]*0*(\d{1,2})$")


def canonical_paygrade(raw: str | None) -> str:
    """Normalize a paygrade code: ``'e-5'``, ``'E 5'``, ``'E05'`` -> ``'E5'``.

    Values that do not look like a paygrade are returned upper-cased and
    stripped so that validation can report them verbatim.
    """
    if raw is None:
        return ""
    text = str(raw).strip().upper()
    match = _PAYGRADE_RE.match(text)
    if match is None:
        return text
    return f"{match.group(1)}{int(match.group(2))}"


@dataclass(frozen=True)
class PaygradeTable:
    """Grade-to-band mapping, keyed by canonical paygrade code."""

    bands: Mapping[str, PaygradeBand]

    def __post_init__(self) -> None:
        for code in self.bands:
            if code != canonical_paygrade(code):
                raise ValueError(f"Paygrade key not canonical: {code!r}")

    def is_known(self, paygrade: str) -> bool:
        return canonical_paygrade(paygrade) in self.bands

    def band_for(self, paygrade: str) -> PaygradeBand:
        """Return the band for a paygrade.

        Raises:
            UnknownPaygradeError: If the paygrade is not mapped.
        """
        code = canonical_paygrade(paygrade)
        try:
            return self.bands[code]
        except KeyError:
            raise UnknownPaygradeError(paygrade) from None

    def grades_in(self, band: PaygradeBand) -> tuple[str, ...]:
        return tuple(sorted(code for code, b in self.bands.items() if b is band))
