"""
Validation Rule Engine (``pcs_engines.validation.engine``).

Responsibility
--------------
Run every registered compliance rule against a claim snapshot (and, when
supplied, its calculation result) and summarize the findings.

Architecture position
---------------------
**Engines layer** -- pure. Rules never perform I/O; the engine only adds
logging around them.

Invariants enforced
-------------------
* Completeness: the whole registry runs, in registry order, with no
  short-circuit. ``total_rules`` always equals the registry size and
  there is exactly one finding per rule.
* Isolation: a rule that raises does not stop the others. Its finding is
  severity ``info``, ``passed=False``, names the broken rule, and a
  ``validation_rule_failed`` error is logged with the traceback.
* ``overall_score = max(0, 100 - error_weight*errors - warning_weight*warnings)``.

Audit relevance
---------------
Every finding carries its regulatory citation so a reviewer can trace each
warning back to the JTR paragraph that motivated it.
"""

from __future__ import annotations

import time

from pcs_engines.tracer import traced_engine
from pcs_engines.validation.registry import RuleContext, RuleRegistry, ValidationRule
from pcs_engines.validation.rules import DEFAULT_REGISTRY
from pcs_kernel.domain.claim import Claim
from pcs_kernel.domain.reference import ReferenceData, ValidationPolicy
from pcs_kernel.domain.results import (
    CalculationResult,
    Severity,
    ValidationFinding,
    ValidationSummary,
)
from pcs_kernel.exceptions import RuleEvaluationError
from pcs_kernel.logging_config import get_logger

logger = get_logger("engines.validation")


def _broken_rule_finding(rule: ValidationRule, error: RuleEvaluationError) -> ValidationFinding:
    return ValidationFinding(
        rule_code=rule.code.value,
        field=rule.field,
        severity=Severity.INFO,
        passed=False,
        message=f"Rule {rule.code.value} ({rule.title}) could not be evaluated: {error.cause_type}",
        citation=rule.citation,
        suggested_fix="Re-check this item manually; the automated check did not complete.",
        details={
            "rule_failed": True,
            "error_code": error.code,
            "error_type": error.cause_type,
            "declared_severity": rule.severity.value,
        },
    )


def _evaluate(rule: ValidationRule, ctx: RuleContext) -> ValidationFinding:
    try:
        outcome = rule.check(ctx)
    except Exception as exc:
        error = RuleEvaluationError(rule.code.value, exc)
        logger.error(
            "validation_rule_failed",
            exc_info=True,
            extra={"rule_code": rule.code.value, "error_type": error.cause_type},
        )
        return _broken_rule_finding(rule, error)
    return rule.finding(outcome)


def score_findings(findings: tuple[ValidationFinding, ...], policy: ValidationPolicy) -> int:
    errors = sum(1 for f in findings if not f.passed and f.severity is Severity.ERROR)
    warnings = sum(1 for f in findings if not f.passed and f.severity is Severity.WARNING)
    penalty = errors * policy.error_weight + warnings * policy.warning_weight
    return max(0, 100 - penalty)


@traced_engine("validation", "1.0", fingerprint_fields=("claim", "calculation", "reference"))
def validate_claim(
    *,
    claim: Claim,
    calculation: CalculationResult | None = None,
    reference: ReferenceData | None = None,
    registry: RuleRegistry | None = None,
) -> ValidationSummary:
    """Evaluate every rule and summarize.

    Args:
        claim: Normalized claim snapshot (may be structurally invalid).
        calculation: Optional calculation result for calculation-quality rules.
        reference: Optional reference data for table-driven rules.
        registry: Rule registry; defaults to the built-in JTR rule set.
    """
    registry = registry if registry is not None else DEFAULT_REGISTRY
    policy = reference.validation_policy if reference is not None else ValidationPolicy()
    ctx = RuleContext(claim=claim, calculation=calculation, reference=reference)

    t0 = time.monotonic()
    findings = tuple(_evaluate(rule, ctx) for rule in registry)

    failed = [f for f in findings if not f.passed]
    errors = sum(1 for f in failed if f.severity is Severity.ERROR)
    warnings = sum(1 for f in failed if f.severity is Severity.WARNING)
    infos = len(failed) - errors - warnings

    summary = ValidationSummary(
        total_rules=len(registry),
        passed=len(findings) - len(failed),
        warnings=warnings,
        errors=errors,
        infos=infos,
        overall_score=score_findings(findings, policy),
        results=findings,
    )

    logger.info(
        "validation_completed",
        extra={
            "total_rules": summary.total_rules,
            "passed": summary.passed,
            "errors": errors,
            "warnings": warnings,
            "infos": infos,
            "overall_score": summary.overall_score,
            "ready_to_submit": summary.ready_to_submit,
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        },
    )
    return summary
