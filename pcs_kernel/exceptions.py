"""
Typed Exception Hierarchy for the PCS entitlement engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Entitlement estimates are shown to service members and handed to finance
offices. Callers must be able to tell "your orders date is malformed" apart
from "the DLA table is missing a band" without parsing message strings.

Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (field names, rule codes, set ids)

Example:
    try:
        result = service.calculate(raw_claim)
    except InvalidClaimInputError as e:
        return {"error": e.code, "field": e.field, "reason": e.reason}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PCSEngineError (base)
    |
    +-- InvalidInputError                  fail-fast at calculation entry
    |   +-- InvalidClaimInputError
    |   +-- InvalidWithholdingRateError
    |
    +-- ReferenceDataError                 reference tables and their loading
    |   +-- MissingReferenceDataError
    |   +-- ReferenceDataValidationError
    |   +-- ReferenceIntegrityError
    |   +-- ReferenceSetNotFoundError
    |   +-- UnknownPaygradeError
    |   +-- UnknownEntitlementTypeError
    |
    +-- RuleRegistryError                  startup validation of the rule set
    |   +-- UnknownRuleError
    |   +-- DuplicateRuleError
    |
    +-- RuleEvaluationError                one rule raised while evaluating

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category   | Code                          | When Raised
-----------|-------------------------------|-----------------------------------
Input      | INVALID_CLAIM_INPUT           | Negative distance, bad date, arrival <= departure
           | INVALID_WITHHOLDING_RATE      | Rate outside [0, 1] or components exceed 100%
-----------|-------------------------------|-----------------------------------
Reference  | MISSING_REFERENCE_DATA        | A required table/default is absent
           | REFERENCE_DATA_INVALID        | Startup validation of a rate set failed
           | REFERENCE_INTEGRITY_MISMATCH  | Checksum differs from approved pin
           | REFERENCE_SET_NOT_FOUND       | No set covers the requested date
           | UNKNOWN_PAYGRADE              | Paygrade code not in the band table
           | UNKNOWN_ENTITLEMENT_TYPE      | Entitlement code not enumerated
-----------|-------------------------------|-----------------------------------
Rules      | UNKNOWN_RULE                  | Rule code not registered
           | DUPLICATE_RULE                | Two rules share a code
           | RULE_EVALUATION_FAILED        | A rule predicate raised

Missing rate data inside a calculation is NOT raised: the rate resolver
degrades to a default rate with lowered confidence. MissingReferenceDataError
is reserved for structurally incomplete reference sets detected at load time.
"""

from __future__ import annotations

from collections.abc import Sequence


class PCSEngineError(Exception):
    """
    Base exception for all entitlement engine errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "PCS_ENGINE_ERROR"


# Input errors


class InvalidInputError(PCSEngineError):
    """Base exception for structurally invalid caller input."""

    code: str = "INVALID_INPUT"


class InvalidClaimInputError(InvalidInputError):
    """A claim field is missing, malformed or violates a structural invariant."""

    code: str = "INVALID_CLAIM_INPUT"

    def __init__(self, field: str, reason: str, value: object = None):
        self.field = field
        self.reason = reason
        self.value = value
        super().__init__(f"Invalid claim field '{field}': {reason}")


class InvalidWithholdingRateError(InvalidInputError):
    """A withholding rate is outside [0, 1] or the components exceed 100%."""

    code: str = "INVALID_WITHHOLDING_RATE"

    def __init__(self, component: str, rate: str, reason: str):
        self.component = component
        self.rate = rate
        self.reason = reason
        super().__init__(
            f"Invalid withholding rate for {component} ({rate}): {reason}"
        )


# Reference data errors


class ReferenceDataError(PCSEngineError):
    """Base exception for reference-rate table errors."""

    code: str = "REFERENCE_DATA_ERROR"


class MissingReferenceDataError(ReferenceDataError):
    """A table or default required by the engine is absent from a set."""

    code: str = "MISSING_REFERENCE_DATA"

    def __init__(self, set_id: str, entitlement: str, key: str):
        self.set_id = set_id
        self.entitlement = entitlement
        self.key = key
        super().__init__(
            f"Reference set '{set_id}' has no {entitlement} data for {key}"
        )


class ReferenceDataValidationError(ReferenceDataError):
    """A reference set failed startup validation."""

    code: str = "REFERENCE_DATA_INVALID"

    def __init__(self, set_id: str, problems: Sequence[str]):
        self.set_id = set_id
        self.problems = tuple(problems)
        detail = "; ".join(self.problems)
        super().__init__(
            f"Reference set '{set_id}' failed validation "
            f"({len(self.problems)} problem(s)): {detail}"
        )


class ReferenceIntegrityError(ReferenceDataError):
    """Reference set checksum does not match the approved pin."""

    code: str = "REFERENCE_INTEGRITY_MISMATCH"

    def __init__(self, set_id: str, expected: str, actual: str, pin_path: str):
        self.set_id = set_id
        self.expected = expected
        self.actual = actual
        self.pin_path = pin_path
        super().__init__(
            f"Reference integrity check failed for '{set_id}': "
            f"pinned checksum {expected[:16]}... != "
            f"computed checksum {actual[:16]}... (pin file: {pin_path})"
        )


class ReferenceSetNotFoundError(ReferenceDataError):
    """No reference set covers the requested date (or set id is unknown)."""

    code: str = "REFERENCE_SET_NOT_FOUND"

    def __init__(self, requested: str, search_dir: str):
        self.requested = requested
        self.search_dir = search_dir
        super().__init__(
            f"No reference set found for {requested} in {search_dir}"
        )


class UnknownPaygradeError(ReferenceDataError):
    """Paygrade code is not mapped to an entitlement band."""

    code: str = "UNKNOWN_PAYGRADE"

    def __init__(self, paygrade: str):
        self.paygrade = paygrade
        super().__init__(f"Paygrade not mapped to a band: {paygrade!r}")


class UnknownEntitlementTypeError(ReferenceDataError):
    """Entitlement type code is not one of the enumerated types."""

    code: str = "UNKNOWN_ENTITLEMENT_TYPE"

    def __init__(self, entitlement: str):
        self.entitlement = entitlement
        super().__init__(f"Unknown entitlement type: {entitlement!r}")


# Rule registry errors


class RuleRegistryError(PCSEngineError):
    """Base exception for validation rule registry errors."""

    code: str = "RULE_REGISTRY_ERROR"


class UnknownRuleError(RuleRegistryError):
    """Rule code is not registered."""

    code: str = "UNKNOWN_RULE"

    def __init__(self, rule_code: str):
        self.rule_code = rule_code
        super().__init__(f"No validation rule registered for code: {rule_code!r}")


class DuplicateRuleError(RuleRegistryError):
    """Two rules were registered under the same code."""

    code: str = "DUPLICATE_RULE"

    def __init__(self, rule_code: str):
        self.rule_code = rule_code
        super().__init__(f"Validation rule already registered: {rule_code}")


class RuleEvaluationError(PCSEngineError):
    """A single validation rule raised while evaluating a claim."""

    code: str = "RULE_EVALUATION_FAILED"

    def __init__(self, rule_code: str, cause: BaseException):
        self.rule_code = rule_code
        self.cause_type = type(cause).__name__
        super().__init__(
            f"Validation rule {rule_code} failed: {self.cause_type}: {cause}"
        )
