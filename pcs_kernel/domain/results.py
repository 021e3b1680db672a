"""
Calculation and validation result types.

These are the engine's outputs. ``to_dict()`` renders the external
(camelCase) shape consumed by the UI and persistence collaborators;
``to_json()`` is byte-deterministic so identical snapshots can be compared
byte for byte.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from pcs_kernel.domain.rates import EntitlementType

LINE_ORDER: tuple[EntitlementType, ...] = (
    EntitlementType.DLA,
    EntitlementType.TLE,
    EntitlementType.MALT,
    EntitlementType.PER_DIEM,
    EntitlementType.PPM,
)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


def _dumps(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=_json_default)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


# ---------------------------------------------------------------------------
# Calculation
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LineComponent:
    """One auditable step of a line's arithmetic (quantity x rate)."""

    label: str
    quantity: Decimal
    rate: Decimal
    amount_cents: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "quantity": str(self.quantity),
            "rate": str(self.rate),
            "amount": self.amount_cents,
        }


@dataclass(frozen=True)
class EntitlementLineResult:
    """One reimbursement line (amount in integer cents)."""

    entitlement: EntitlementType
    amount_cents: int
    confidence: int
    source: str
    last_verified: date | None
    citation: str = ""
    applicable: bool = True
    components: tuple[LineComponent, ...] = ()
    notes: tuple[str, ...] = ()
    data_sources: tuple[str, ...] = ()
    variance_range: tuple[int, int] | None = None
    confidence_note: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.amount_cents, int) or isinstance(self.amount_cents, bool):
            raise TypeError("amount_cents must be int")
        if self.amount_cents < 0:
            raise ValueError(f"{self.entitlement.label} amount cannot be negative")
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"Confidence must be 0-100, got {self.confidence}")
        if self.components:
            component_total = sum(c.amount_cents for c in self.components)
            if component_total != self.amount_cents:
                raise ValueError(
                    f"{self.entitlement.label} components sum to {component_total}, "
                    f"line amount is {self.amount_cents}"
                )
        if self.variance_range is not None:
            low, high = self.variance_range
            if not 0 <= low <= self.amount_cents <= high:
                raise ValueError(
                    f"{self.entitlement.label} variance range {self.variance_range} "
                    f"does not bracket {self.amount_cents}"
                )

    def to_dict(self) -> dict[str, Any]:
        return {
            "amount": self.amount_cents,
            "confidence": self.confidence,
            "source": self.source,
            "lastVerified": self.last_verified.isoformat() if self.last_verified else None,
            "citation": self.citation,
            "applicable": self.applicable,
            "components": [c.to_dict() for c in self.components],
            "notes": list(self.notes),
            "dataSources": list(self.data_sources),
            "varianceRange": (
                {"min": self.variance_range[0], "max": self.variance_range[1]}
                if self.variance_range is not None
                else None
            ),
        }


class ConfidenceLevel(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    NEEDS_WORK = "needs_work"


@dataclass(frozen=True)
class ConfidenceSummary:
    """Overall confidence (minimum of the lines) plus per-line detail.

    ``factors`` records which supporting evidence the claim carries (orders
    date, weigh tickets, verified distance, receipts). They drive
    recommendations only and never change ``overall``.
    """

    overall: int
    by_line: tuple[tuple[EntitlementType, int], ...]
    level: ConfidenceLevel
    recommendations: tuple[str, ...] = ()
    factors: tuple[tuple[str, bool], ...] = ()

    def __post_init__(self) -> None:
        if self.by_line and self.overall != min(c for _, c in self.by_line):
            raise ValueError("overall confidence must equal the minimum line confidence")

    def for_line(self, entitlement: EntitlementType) -> int:
        return dict(self.by_line)[entitlement]

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall,
            "byLine": {ent.value: conf for ent, conf in self.by_line},
            "level": self.level.value,
            "recommendations": list(self.recommendations),
            "factors": {_camel(name): present for name, present in self.factors},
        }


@dataclass(frozen=True)
class CalculationResult:
    """All five entitlement lines with total, confidence and sources."""

    claim_id: str
    reference_set: str
    lines: tuple[EntitlementLineResult, ...]
    total_cents: int
    confidence: ConfidenceSummary
    data_sources: tuple[str, ...] = ()
    jtr_version: str = ""

    def __post_init__(self) -> None:
        order = tuple(line.entitlement for line in self.lines)
        if order != LINE_ORDER:
            raise ValueError(f"Lines must be exactly {[e.value for e in LINE_ORDER]}")
        if self.total_cents != sum(line.amount_cents for line in self.lines):
            raise ValueError("total_cents must equal the sum of line amounts")

    def line(self, entitlement: EntitlementType) -> EntitlementLineResult:
        return self.lines[LINE_ORDER.index(entitlement)]

    @property
    def dla(self) -> EntitlementLineResult:
        return self.line(EntitlementType.DLA)

    @property
    def tle(self) -> EntitlementLineResult:
        return self.line(EntitlementType.TLE)

    @property
    def malt(self) -> EntitlementLineResult:
        return self.line(EntitlementType.MALT)

    @property
    def per_diem(self) -> EntitlementLineResult:
        return self.line(EntitlementType.PER_DIEM)

    @property
    def ppm(self) -> EntitlementLineResult:
        return self.line(EntitlementType.PPM)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            line.entitlement.value: line.to_dict() for line in self.lines
        }
        payload["total"] = self.total_cents
        payload["confidence"] = self.confidence.to_dict()
        payload["dataSources"] = list(self.data_sources)
        payload["claimId"] = self.claim_id
        payload["referenceSet"] = self.reference_set
        payload["jtrRuleVersion"] = self.jtr_version
        return payload

    def to_json(self) -> str:
        return _dumps(self.to_dict())


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class ValidationFinding:
    """Outcome of one rule against one claim snapshot."""

    rule_code: str
    field: str
    severity: Severity
    passed: bool
    message: str
    citation: str = ""
    suggested_fix: str | None = None
    details: Mapping[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_code": self.rule_code,
            "field": self.field,
            "severity": self.severity.value,
            "passed": self.passed,
            "message": self.message,
            "citation": self.citation,
            "suggested_fix": self.suggested_fix,
            "details": dict(self.details) if self.details is not None else None,
        }


@dataclass(frozen=True)
class ValidationSummary:
    """Aggregate of every rule in the registry for one snapshot."""

    total_rules: int
    passed: int
    warnings: int
    errors: int
    infos: int
    overall_score: int
    results: tuple[ValidationFinding, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.passed + self.warnings + self.errors + self.infos != self.total_rules:
            raise ValueError("Finding counts must add up to total_rules")
        if not 0 <= self.overall_score <= 100:
            raise ValueError(f"overall_score must be 0-100, got {self.overall_score}")

    @property
    def ready_to_submit(self) -> bool:
        return self.errors == 0

    @property
    def failed_findings(self) -> tuple[ValidationFinding, ...]:
        return tuple(f for f in self.results if not f.passed)

    def findings_for(self, rule_code: str) -> tuple[ValidationFinding, ...]:
        return tuple(f for f in self.results if f.rule_code == rule_code)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_rules": self.total_rules,
            "passed": self.passed,
            "warnings": self.warnings,
            "errors": self.errors,
            "infos": self.infos,
            "overall_score": self.overall_score,
            "ready_to_submit": self.ready_to_submit,
            "results": [f.to_dict() for f in self.results],
        }

    def to_json(self) -> str:
        return _dumps(self.to_dict())
