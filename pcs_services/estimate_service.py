"""
pcs_services.estimate_service -- Claim estimate orchestration.

Responsibility:
    Turns a draft claim payload into a complete estimate: normalized
    snapshot, five-line calculation, compliance validation and (for PPM
    moves) the gross-to-net payout.  Owns the collaborators the pure
    engines must not touch: the distance provider and the executor.

Architecture position:
    Services -- orchestration over engines + kernel.  Receives an already
    loaded ``ReferenceData`` (from ``pcs_config.get_reference_data()``) and
    holds it for its lifetime.

Invariants enforced:
    - The same ``ReferenceData`` instance backs normalization, calculation,
      validation and withholding for one estimate.
    - A missing claim distance is filled from the distance provider only
      when the provider knows both localities, and the claim records the
      provider as its ``distance_source``; otherwise it stays zero and the
      distance rules record themselves as skipped.
    - Calculation and validation are run on the same claim snapshot.
    - A claim that cannot be calculated (arrival on or before departure,
      negative quantities) is still validated; its estimate carries the
      validation errors and no calculation.

Failure modes:
    - ``InvalidClaimInputError`` from normalization propagates (the payload
      could not be read). Structural problems found after normalization
      are reported through validation instead.
    - Rule failures inside validation are isolated by the rule engine and
      never abort an estimate.

Audit relevance:
    Every call binds ``claim_id``, ``reference_set`` and ``jtr_version``
    into the log context, so engine traces emitted during the estimate
    carry all three.
"""

from __future__ import annotations

from collections.abc import Mapping
from concurrent.futures import Executor
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any

from pcs_engines.entitlements import calculate_entitlements
from pcs_engines.ppm_withholding import AllowedExpenses, PPMNetPayout, PPMWithholdingCalculator
from pcs_engines.validation import RuleRegistry, validate_claim
from pcs_kernel.domain.claim import Claim, ensure_calculable, normalize_claim
from pcs_kernel.domain.reference import ReferenceData
from pcs_kernel.domain.results import CalculationResult, ValidationSummary
from pcs_kernel.domain.values import to_cents
from pcs_kernel.exceptions import InvalidClaimInputError
from pcs_kernel.logging_config import LogContext, get_logger
from pcs_services.distance import DistanceProvider, GreatCircleDistanceProvider

_logger = get_logger("services.estimate")


@dataclass(frozen=True)
class ClaimEstimate:
    """Everything the UI needs for one claim snapshot."""

    claim: Claim
    calculation: CalculationResult | None
    validation: ValidationSummary
    ppm_payout: PPMNetPayout | None = None

    @property
    def ready_to_submit(self) -> bool:
        return self.calculation is not None and self.validation.ready_to_submit

    def to_dict(self) -> dict[str, Any]:
        return {
            "claimId": self.claim.claim_id,
            "calculation": self.calculation.to_dict() if self.calculation else None,
            "validation": self.validation.to_dict(),
            "ppmPayout": self.ppm_payout.to_dict() if self.ppm_payout else None,
        }


class PCSEstimateService:
    """Estimate PCS claims against one reference set.

    Usage:
        reference = get_reference_data(as_of=date(2025, 6, 1))
        service = PCSEstimateService(reference)
        estimate = service.estimate({"claim_id": "c-1", ...})
    """

    def __init__(
        self,
        reference: ReferenceData,
        distance_provider: DistanceProvider | None = None,
        executor: Executor | None = None,
        registry: RuleRegistry | None = None,
    ) -> None:
        self._reference = reference
        self._distance = distance_provider or GreatCircleDistanceProvider(reference)
        self._executor = executor
        self._registry = registry
        self._withholding = PPMWithholdingCalculator()

    @property
    def reference(self) -> ReferenceData:
        return self._reference

    def normalize(self, raw: Mapping[str, Any] | Claim) -> Claim:
        """Normalize a draft payload and fill a missing distance."""
        claim = normalize_claim(raw, self._reference)
        if claim.distance_miles != 0:
            return claim

        miles = self._distance.miles(claim.origin_locality, claim.destination_locality)
        if miles is None:
            return claim
        _logger.info(
            "claim_distance_filled",
            extra={
                "claim_id": claim.claim_id,
                "origin": claim.origin_locality,
                "destination": claim.destination_locality,
                "miles": miles,
                "distance_source": self._distance.name,
            },
        )
        return replace(claim, distance_miles=miles, distance_source=self._distance.name)

    def calculate(self, raw: Mapping[str, Any] | Claim) -> CalculationResult:
        claim = self.normalize(raw)
        with self._bind(claim):
            return calculate_entitlements(
                claim=claim, reference=self._reference, executor=self._executor
            )

    def validate(
        self,
        raw: Mapping[str, Any] | Claim,
        calculation: CalculationResult | None = None,
    ) -> ValidationSummary:
        claim = self.normalize(raw)
        with self._bind(claim):
            return validate_claim(
                claim=claim,
                calculation=calculation,
                reference=self._reference,
                registry=self._registry,
            )

    def ppm_net_payout(
        self,
        claim: Claim,
        calculation: CalculationResult,
        *,
        federal_rate: Decimal | None = None,
        state_rate: Decimal | None = None,
        allowed_expenses: AllowedExpenses | None = None,
        ytd_fica_wages_cents: int = 0,
    ) -> PPMNetPayout | None:
        """Net payout for the claim's PPM line, or None when there is none.

        Rates not supplied come from the reference set's withholding
        policy; the state rate is looked up by destination state.
        """
        gross = calculation.ppm.amount_cents
        if not claim.travel_method.involves_ppm or gross <= 0:
            return None

        policy = self._reference.withholding_policy
        with self._bind(claim):
            return self._withholding.calculate(
                gross_cents=gross,
                federal_rate=policy.federal_rate if federal_rate is None else federal_rate,
                state_rate=(
                    policy.state_rate_for(claim.destination_state)
                    if state_rate is None
                    else state_rate
                ),
                fica_rate=policy.fica_rate,
                medicare_rate=policy.medicare_rate,
                allowed_expenses=allowed_expenses,
                ytd_fica_wages_cents=ytd_fica_wages_cents,
                fica_wage_base_cents=to_cents(policy.fica_wage_base),
                state_label=claim.destination_state,
                disclaimer=policy.disclaimer,
            )

    def estimate(
        self,
        raw: Mapping[str, Any] | Claim,
        *,
        allowed_expenses: AllowedExpenses | None = None,
        ytd_fica_wages_cents: int = 0,
    ) -> ClaimEstimate:
        """Normalize, calculate, validate and compute the PPM payout.

        A claim whose dates or quantities make it uncalculable is validated
        without a calculation; the returned estimate has ``calculation``
        None and is never ready to submit.
        """
        claim = self.normalize(raw)
        with self._bind(claim):
            try:
                ensure_calculable(claim)
            except InvalidClaimInputError as exc:
                validation = validate_claim(
                    claim=claim,
                    calculation=None,
                    reference=self._reference,
                    registry=self._registry,
                )
                _logger.warning(
                    "claim_estimate_not_calculable",
                    extra={
                        "field": exc.field,
                        "validation_errors": validation.errors,
                        "validation_score": validation.overall_score,
                    },
                )
                return ClaimEstimate(claim=claim, calculation=None, validation=validation)

            calculation = calculate_entitlements(
                claim=claim, reference=self._reference, executor=self._executor
            )
            validation = validate_claim(
                claim=claim,
                calculation=calculation,
                reference=self._reference,
                registry=self._registry,
            )
            payout = self.ppm_net_payout(
                claim,
                calculation,
                allowed_expenses=allowed_expenses,
                ytd_fica_wages_cents=ytd_fica_wages_cents,
            )
            _logger.info(
                "claim_estimate_completed",
                extra={
                    "total_cents": calculation.total_cents,
                    "overall_confidence": calculation.confidence.overall,
                    "validation_score": validation.overall_score,
                    "ready_to_submit": validation.ready_to_submit,
                },
            )
        return ClaimEstimate(
            claim=claim,
            calculation=calculation,
            validation=validation,
            ppm_payout=payout,
        )

    def _bind(self, claim: Claim):
        return LogContext.bind(
            claim_id=claim.claim_id,
            reference_set=self._reference.set_id,
            jtr_version=self._reference.jtr_version or None,
        )
