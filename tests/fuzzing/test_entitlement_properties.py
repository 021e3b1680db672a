"""
Property-based tests for the entitlement and validation engines.

Invariants checked over generated claims:
- All five lines are always present; total is the sum of the lines
- Overall confidence is the minimum line confidence
- DLA never decreases with seniority
- MALT tiers partition the distance and never decrease with it
- Identical snapshots give byte-identical output
- Validation always evaluates every rule; score stays in 0-100
- Estimates report uncalculable claims through validation instead of raising
- PPM net + withholding == gross
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from pcs_engines.entitlements import calculate_dla, calculate_entitlements, malt_tier_miles
from pcs_engines.ppm_withholding import AllowedExpenses, PPMWithholdingCalculator
from pcs_engines.validation import RuleCode, validate_claim
from pcs_kernel.domain.claim import normalize_claim
from pcs_kernel.domain.paygrades import BAND_SENIORITY
from pcs_kernel.domain.reference import EntitlementPolicy
from pcs_services import PCSEstimateService

pytestmark = pytest.mark.slow

_SETTINGS = settings(
    max_examples=150,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)

_LOCALITIES = [
    "FT_LIBERTY_NC",
    "JBLM_WA",
    "FT_CAVAZOS_TX",
    "CAMP_PENDLETON_CA",
    "JB_PEARL_HARBOR_HICKAM_HI",
    "RAMSTEIN_DE",
    "CAMP_HUMPHREYS_KR",
    "NOT_A_BASE",
]

_PAYGRADES = ["E1", "E4", "E5", "E7", "E9", "W2", "W4", "O1", "O3", "O5", "O7", "O10", "X9", ""]


@st.composite
def claim_payloads(draw, *, calculable: bool = True) -> dict:
    departure = draw(st.dates(min_value=date(2024, 6, 1), max_value=date(2025, 12, 31)))
    days = draw(st.integers(min_value=1 if calculable else -5, max_value=30))
    low = 0 if calculable else -3
    return {
        "claim_id": "prop-claim",
        "claim_name": draw(st.sampled_from(["PCS move", None])),
        "paygrade": draw(st.sampled_from(_PAYGRADES)),
        "dependents_count": draw(st.integers(min_value=low, max_value=5)),
        "origin_locality": draw(st.sampled_from(_LOCALITIES)),
        "destination_locality": draw(st.sampled_from(_LOCALITIES)),
        "orders_date": (departure - timedelta(days=draw(st.integers(-10, 90)))).isoformat(),
        "departure_date": departure.isoformat(),
        "arrival_date": (departure + timedelta(days=days)).isoformat(),
        "tle_origin_nights": draw(st.integers(min_value=low, max_value=20)),
        "tle_destination_nights": draw(st.integers(min_value=low, max_value=20)),
        "distance_miles": str(draw(st.integers(min_value=low, max_value=7000))),
        "actual_weight_lb": draw(st.integers(min_value=low, max_value=20000)),
        "official_gcc": draw(st.sampled_from([None, "0", "2500.50", "10400.00"])),
        "travel_method": draw(st.sampled_from(["ppm", "government", "mixed"])),
        "per_diem_classification": draw(st.sampled_from(["travel", "extended"])),
    }


class TestCalculationInvariants:
    """Structural laws of every calculation."""

    @given(payload=claim_payloads())
    @_SETTINGS
    def test_lines_total_and_confidence(self, reference, payload):
        claim = normalize_claim(payload, reference)

        result = calculate_entitlements(claim=claim, reference=reference)

        assert len(result.lines) == 5
        assert result.total_cents == sum(line.amount_cents for line in result.lines)
        assert all(line.amount_cents >= 0 for line in result.lines)
        assert result.confidence.overall == min(line.confidence for line in result.lines)

    @given(payload=claim_payloads())
    @_SETTINGS
    def test_deterministic(self, reference, payload):
        claim = normalize_claim(payload, reference)

        first = calculate_entitlements(claim=claim, reference=reference)
        second = calculate_entitlements(claim=claim, reference=reference)

        assert first.to_json() == second.to_json()


class TestDlaMonotonicity:
    """Higher paygrade bands never receive less DLA."""

    @given(
        dependents=st.integers(min_value=0, max_value=4),
        destination=st.sampled_from(_LOCALITIES),
    )
    @_SETTINGS
    def test_non_decreasing_with_seniority(self, reference, dependents, destination):
        amounts = []
        for band in BAND_SENIORITY:
            grade = reference.paygrades.grades_in(band)[0]
            claim = normalize_claim(
                {
                    "claim_id": "dla",
                    "paygrade": grade,
                    "dependents_count": dependents,
                    "destination_locality": destination,
                    "departure_date": "2025-06-01",
                    "arrival_date": "2025-06-05",
                },
                reference,
            )
            amounts.append(calculate_dla(claim=claim, reference=reference).amount_cents)

        assert amounts == sorted(amounts)


class TestMaltTiers:
    """Tier miles partition the distance."""

    @given(
        a=st.integers(min_value=0, max_value=10000),
        b=st.integers(min_value=0, max_value=10000),
    )
    @_SETTINGS
    def test_partition_and_monotonic(self, a, b):
        limits = EntitlementPolicy().malt_tier_limits
        shorter, longer = sorted((Decimal(a), Decimal(b)))

        tiers_short = malt_tier_miles(shorter, limits)
        tiers_long = malt_tier_miles(longer, limits)

        assert sum(t[3] for t in tiers_short) == shorter
        assert sum(t[3] for t in tiers_long) == longer
        assert len(tiers_short) <= len(tiers_long)


class TestValidationInvariants:
    """Validation runs on any snapshot, including invalid ones."""

    @given(payload=claim_payloads(calculable=False))
    @_SETTINGS
    def test_every_rule_evaluated(self, reference, payload):
        claim = normalize_claim(payload, reference)

        summary = validate_claim(claim=claim, reference=reference)

        assert summary.total_rules == len(RuleCode)
        assert len(summary.results) == summary.total_rules
        assert summary.passed + summary.errors + summary.warnings + summary.infos == summary.total_rules
        assert 0 <= summary.overall_score <= 100
        assert summary.ready_to_submit == (summary.errors == 0)
        assert not any(
            f.details and f.details.get("rule_failed") for f in summary.results
        )

    @given(payload=claim_payloads(calculable=False))
    @_SETTINGS
    def test_estimate_never_raises_on_uncalculable_claims(self, reference, payload):
        estimate = PCSEstimateService(reference).estimate(payload)

        if estimate.calculation is None:
            assert estimate.validation.errors >= 1
            assert not estimate.ready_to_submit
        else:
            assert estimate.ready_to_submit == estimate.validation.ready_to_submit


class TestWithholdingInvariants:
    """Gross splits exactly into withholding and net."""

    @given(
        gross=st.integers(min_value=0, max_value=5_000_000),
        federal=st.decimals(min_value=0, max_value=Decimal("0.5"), places=3),
        state=st.decimals(min_value=0, max_value=Decimal("0.1"), places=4),
        expenses=st.integers(min_value=0, max_value=6_000_000),
        ytd=st.integers(min_value=0, max_value=20_000_000),
    )
    @_SETTINGS
    def test_net_plus_withholding_is_gross(self, gross, federal, state, expenses, ytd):
        payout = PPMWithholdingCalculator().calculate(
            gross_cents=gross,
            federal_rate=federal,
            state_rate=state,
            allowed_expenses=AllowedExpenses(fuel_cents=expenses),
            ytd_fica_wages_cents=ytd,
        )

        assert payout.net_cents + payout.total_withholding_cents == gross
        assert payout.net_cents >= 0
        assert 0 <= payout.taxable_cents <= gross
        assert payout.fica.taxable_cents <= payout.taxable_cents
