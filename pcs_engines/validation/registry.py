"""
Validation rule registry.

Rules are statically enumerated by ``RuleCode`` and registered once at
import time. Registration validates the rule; ``verify_complete()`` checks
that every enumerated code has a rule, so a missing or duplicate rule is a
startup failure rather than a silently shorter compliance report.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pcs_kernel.domain.claim import Claim
from pcs_kernel.domain.reference import ReferenceData
from pcs_kernel.domain.results import CalculationResult, Severity, ValidationFinding
from pcs_kernel.exceptions import DuplicateRuleError, RuleRegistryError, UnknownRuleError


class RuleCode(str, Enum):
    """Every JTR compliance rule the engine knows, in evaluation order."""

    REQ_CLAIM_NAME = "REQ_CLAIM_NAME"
    REQ_ORDERS_DATE = "REQ_ORDERS_DATE"
    REQ_PAYGRADE = "REQ_PAYGRADE"
    DATE_ARRIVAL_AFTER_DEPARTURE = "DATE_ARRIVAL_AFTER_DEPARTURE"
    DATE_ORDERS_BEFORE_TRAVEL = "DATE_ORDERS_BEFORE_TRAVEL"
    INPUT_NON_NEGATIVE = "INPUT_NON_NEGATIVE"
    TLE_ORIGIN_NIGHTS_CEILING = "TLE_ORIGIN_NIGHTS_CEILING"
    TLE_DESTINATION_NIGHTS_CEILING = "TLE_DESTINATION_NIGHTS_CEILING"
    DISTANCE_PLAUSIBILITY = "DISTANCE_PLAUSIBILITY"
    DLA_MINIMUM_DISTANCE = "DLA_MINIMUM_DISTANCE"
    DLA_MULTIPLIER_STACKING = "DLA_MULTIPLIER_STACKING"
    PPM_WEIGHT_REQUIRED = "PPM_WEIGHT_REQUIRED"
    PPM_WEIGHT_ALLOWANCE = "PPM_WEIGHT_ALLOWANCE"
    CALC_CONFIDENCE_FLOOR = "CALC_CONFIDENCE_FLOOR"

    @classmethod
    def parse(cls, code: str) -> "RuleCode":
        try:
            return cls(code)
        except ValueError:
            raise UnknownRuleError(code) from None


@dataclass(frozen=True)
class RuleContext:
    """Everything a rule may look at. Only ``claim`` is guaranteed."""

    claim: Claim
    calculation: CalculationResult | None = None
    reference: ReferenceData | None = None


@dataclass(frozen=True)
class RuleOutcome:
    """What a rule predicate returns; the engine turns it into a finding."""

    passed: bool
    message: str
    suggested_fix: str | None = None
    details: Mapping[str, Any] | None = None

    @classmethod
    def ok(cls, message: str, **details: Any) -> "RuleOutcome":
        return cls(True, message, None, details or None)

    @classmethod
    def skipped(cls, reason: str) -> "RuleOutcome":
        return cls(True, f"Not evaluated: {reason}", None, {"skipped": True})

    @classmethod
    def fail(cls, message: str, suggested_fix: str, **details: Any) -> "RuleOutcome":
        return cls(False, message, suggested_fix, details or None)


RuleCheck = Callable[[RuleContext], RuleOutcome]


@dataclass(frozen=True)
class ValidationRule:
    """A single, pure compliance predicate."""

    code: RuleCode
    title: str
    field: str
    severity: Severity
    citation: str
    check: RuleCheck

    def __post_init__(self) -> None:
        if not isinstance(self.code, RuleCode):
            raise RuleRegistryError(f"Rule code must be a RuleCode, got {self.code!r}")
        if not self.citation:
            raise RuleRegistryError(f"Rule {self.code.value} has no citation")
        if not callable(self.check):
            raise RuleRegistryError(f"Rule {self.code.value} check is not callable")

    def finding(self, outcome: RuleOutcome) -> ValidationFinding:
        return ValidationFinding(
            rule_code=self.code.value,
            field=self.field,
            severity=self.severity,
            passed=outcome.passed,
            message=outcome.message,
            citation=self.citation,
            suggested_fix=outcome.suggested_fix,
            details=outcome.details,
        )


@dataclass
class RuleRegistry:
    """Ordered collection of rules keyed by code."""

    _rules: dict[RuleCode, ValidationRule] = field(default_factory=dict)

    def register(self, rule: ValidationRule) -> ValidationRule:
        """Add a rule.

        Raises:
            DuplicateRuleError: If the code is already registered.
        """
        if rule.code in self._rules:
            raise DuplicateRuleError(rule.code.value)
        self._rules[rule.code] = rule
        return rule

    def get(self, code: RuleCode | str) -> ValidationRule:
        """Look up a rule by code.

        Raises:
            UnknownRuleError: If no rule has that code.
        """
        key = code if isinstance(code, RuleCode) else RuleCode.parse(code)
        try:
            return self._rules[key]
        except KeyError:
            raise UnknownRuleError(key.value) from None

    def verify_complete(self) -> None:
        """Every enumerated RuleCode must have a registered rule."""
        missing = [c.value for c in RuleCode if c not in self._rules]
        if missing:
            raise RuleRegistryError(f"Rules not registered: {', '.join(missing)}")

    @property
    def rules(self) -> tuple[ValidationRule, ...]:
        return tuple(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[ValidationRule]:
        return iter(self.rules)

    def __contains__(self, code: object) -> bool:
        return code in self._rules
