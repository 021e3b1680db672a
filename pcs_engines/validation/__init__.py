"""
JTR compliance validation.

Public API:
    validate_claim      -- run the full registry against a claim snapshot
    RuleCode            -- enumerated rule identifiers
    RuleRegistry        -- ordered, startup-validated rule collection
    DEFAULT_REGISTRY    -- built-in JTR rule set
    get_rule            -- look up a built-in rule by code
"""

from pcs_engines.validation.engine import score_findings, validate_claim
from pcs_engines.validation.registry import (
    RuleCode,
    RuleContext,
    RuleOutcome,
    RuleRegistry,
    ValidationRule,
)
from pcs_engines.validation.rules import (
    DEFAULT_REGISTRY,
    DEFAULT_RULES,
    build_registry,
    get_rule,
)

__all__ = [
    "DEFAULT_REGISTRY",
    "DEFAULT_RULES",
    "RuleCode",
    "RuleContext",
    "RuleOutcome",
    "RuleRegistry",
    "ValidationRule",
    "build_registry",
    "get_rule",
    "score_findings",
    "validate_claim",
]
