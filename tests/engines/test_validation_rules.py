"""
Tests for the JTR compliance rules, one scenario per rule.

Each test perturbs the baseline move (which passes every rule) so that
exactly the rule under test fails.
"""

from pcs_engines.entitlements import calculate_entitlements
from pcs_engines.validation import RuleCode, validate_claim
from pcs_kernel.domain.results import Severity


def _failed_codes(summary) -> list[str]:
    return [f.rule_code for f in summary.failed_findings]


def _finding(summary, code: RuleCode):
    (finding,) = summary.findings_for(code.value)
    return finding


class TestBaseline:
    """The baseline move is fully compliant."""

    def test_all_rules_pass(self, reference, make_claim):
        claim = make_claim()
        calculation = calculate_entitlements(claim=claim, reference=reference)

        summary = validate_claim(claim=claim, calculation=calculation, reference=reference)

        assert summary.total_rules == len(RuleCode)
        assert summary.passed == summary.total_rules
        assert summary.overall_score == 100
        assert summary.ready_to_submit

    def test_passing_findings_keep_declared_severity(self, reference, make_claim):
        summary = validate_claim(claim=make_claim(), reference=reference)

        assert _finding(summary, RuleCode.REQ_CLAIM_NAME).severity is Severity.ERROR
        assert _finding(summary, RuleCode.TLE_ORIGIN_NIGHTS_CEILING).severity is Severity.WARNING


class TestRequiredFields:
    """Claim name, orders date and paygrade are required."""

    def test_missing_claim_name(self, reference, make_claim):
        summary = validate_claim(claim=make_claim(claim_name=None), reference=reference)

        assert _failed_codes(summary) == ["REQ_CLAIM_NAME"]
        finding = _finding(summary, RuleCode.REQ_CLAIM_NAME)
        assert finding.severity is Severity.ERROR
        assert finding.suggested_fix
        assert summary.overall_score == 75
        assert not summary.ready_to_submit

    def test_missing_orders_date(self, reference, make_claim):
        summary = validate_claim(claim=make_claim(orders_date=None), reference=reference)

        assert _failed_codes(summary) == ["REQ_ORDERS_DATE"]
        assert _finding(summary, RuleCode.DATE_ORDERS_BEFORE_TRAVEL).details == {"skipped": True}

    def test_unrecognized_paygrade(self, reference, make_claim):
        summary = validate_claim(claim=make_claim(paygrade="X9"), reference=reference)

        assert "REQ_PAYGRADE" in _failed_codes(summary)
        assert _finding(summary, RuleCode.REQ_PAYGRADE).details == {"paygrade": "X9"}

    def test_paygrade_format_checked_without_reference(self, make_claim):
        good = validate_claim(claim=make_claim(paygrade="O10"))
        bad = validate_claim(claim=make_claim(paygrade="O11"))

        assert _finding(good, RuleCode.REQ_PAYGRADE).passed
        assert not _finding(bad, RuleCode.REQ_PAYGRADE).passed


class TestTemporalRules:
    """Arrival after departure; orders before travel."""

    def test_arrival_before_departure(self, reference, make_claim):
        claim = make_claim(departure_date="2025-06-06", arrival_date="2025-06-01")

        summary = validate_claim(claim=claim, reference=reference)

        assert _failed_codes(summary) == ["DATE_ARRIVAL_AFTER_DEPARTURE"]

    def test_travel_before_orders(self, reference, make_claim):
        summary = validate_claim(claim=make_claim(orders_date="2025-06-10"), reference=reference)

        assert _failed_codes(summary) == ["DATE_ORDERS_BEFORE_TRAVEL"]
        assert summary.warnings == 1
        assert summary.overall_score == 90
        assert summary.ready_to_submit


class TestCeilingsAndSanity:
    """TLE ceilings and non-negative quantities."""

    def test_tle_origin_over_ceiling(self, reference, make_claim):
        summary = validate_claim(claim=make_claim(tle_origin_nights=14), reference=reference)

        assert _failed_codes(summary) == ["TLE_ORIGIN_NIGHTS_CEILING"]
        finding = _finding(summary, RuleCode.TLE_ORIGIN_NIGHTS_CEILING)
        assert finding.details == {"claimed": 14, "maximum": 10}
        assert finding.citation == "JTR 054205"

    def test_tle_destination_over_ceiling(self, reference, make_claim):
        summary = validate_claim(
            claim=make_claim(tle_destination_nights=11), reference=reference
        )

        assert _failed_codes(summary) == ["TLE_DESTINATION_NIGHTS_CEILING"]

    def test_exactly_at_ceiling_passes(self, reference, make_claim):
        summary = validate_claim(
            claim=make_claim(tle_origin_nights=10, tle_destination_nights=10),
            reference=reference,
        )

        assert summary.passed == summary.total_rules

    def test_negative_quantity(self, reference, make_claim):
        summary = validate_claim(claim=make_claim(tle_origin_nights=-2), reference=reference)

        assert _failed_codes(summary) == ["INPUT_NON_NEGATIVE"]
        assert _finding(summary, RuleCode.INPUT_NON_NEGATIVE).details == {
            "fields": {"tle_origin_nights": "-2"}
        }


class TestDistanceRules:
    """Distance plausibility and the DLA minimum distance."""

    def test_distance_too_short_for_bases(self, reference, make_claim):
        summary = validate_claim(claim=make_claim(distance_miles="1000"), reference=reference)

        assert _failed_codes(summary) == ["DISTANCE_PLAUSIBILITY"]

    def test_distance_too_long_for_bases(self, reference, make_claim):
        summary = validate_claim(claim=make_claim(distance_miles="6000"), reference=reference)

        assert _failed_codes(summary) == ["DISTANCE_PLAUSIBILITY"]

    def test_plausibility_skipped_for_unknown_localities(self, reference, make_claim):
        claim = make_claim(origin_locality="FT_A", destination_locality="FT_B")

        summary = validate_claim(claim=claim, reference=reference)

        finding = _finding(summary, RuleCode.DISTANCE_PLAUSIBILITY)
        assert finding.passed
        assert finding.details == {"skipped": True}

    def test_local_move_under_dla_minimum(self, reference, make_claim):
        claim = make_claim(
            origin_locality="FT_A", destination_locality="FT_B", distance_miles="30"
        )

        summary = validate_claim(claim=claim, reference=reference)

        assert _failed_codes(summary) == ["DLA_MINIMUM_DISTANCE"]


class TestDlaStacking:
    """OCONUS with dependents is flagged as information."""

    def test_oconus_with_dependents_is_info(self, reference, make_claim):
        claim = make_claim(destination_locality="CAMP_HUMPHREYS_KR", distance_miles=None)

        summary = validate_claim(claim=claim, reference=reference)

        assert _failed_codes(summary) == ["DLA_MULTIPLIER_STACKING"]
        finding = _finding(summary, RuleCode.DLA_MULTIPLIER_STACKING)
        assert finding.severity is Severity.INFO
        assert finding.details == {"stacking_policy": "larger_only"}
        assert summary.infos == 1
        assert summary.overall_score == 100
        assert summary.ready_to_submit


class TestPPMRules:
    """PPM weight required and within the allowance."""

    def test_ppm_without_weight(self, reference, make_claim):
        summary = validate_claim(claim=make_claim(actual_weight_lb=None), reference=reference)

        assert _failed_codes(summary) == ["PPM_WEIGHT_REQUIRED"]

    def test_government_move_needs_no_weight(self, reference, make_claim):
        claim = make_claim(travel_method="government", actual_weight_lb=None)

        summary = validate_claim(claim=claim, reference=reference)

        assert summary.passed == summary.total_rules

    def test_weight_over_allowance(self, reference, make_claim):
        summary = validate_claim(claim=make_claim(dependents_count=0), reference=reference)

        assert _failed_codes(summary) == ["PPM_WEIGHT_ALLOWANCE"]
        assert _finding(summary, RuleCode.PPM_WEIGHT_ALLOWANCE).details == {
            "weight": 8000,
            "allowance": 7000,
            "overage": 1000,
        }


class TestConfidenceFloor:
    """Low-confidence calculations are flagged."""

    def test_skipped_without_calculation(self, reference, make_claim):
        summary = validate_claim(claim=make_claim(), reference=reference)

        assert _finding(summary, RuleCode.CALC_CONFIDENCE_FLOOR).details == {"skipped": True}

    def test_fallback_confidence_meets_floor(self, reference, make_claim):
        claim = make_claim(destination_locality="FT_B", origin_locality="FT_A")
        calculation = calculate_entitlements(claim=claim, reference=reference)
        assert calculation.confidence.overall == 60

        summary = validate_claim(claim=claim, calculation=calculation, reference=reference)

        assert _finding(summary, RuleCode.CALC_CONFIDENCE_FLOOR).passed

    def test_zero_confidence_flagged(self, reference, make_claim):
        claim = make_claim(paygrade="X9")
        calculation = calculate_entitlements(claim=claim, reference=reference)

        summary = validate_claim(claim=claim, calculation=calculation, reference=reference)

        assert not _finding(summary, RuleCode.CALC_CONFIDENCE_FLOOR).passed
        assert summary.errors == 1
        assert summary.warnings == 1
        assert summary.overall_score == 65

    def test_estimated_gcc_below_floor_is_warning(self, reference, make_claim):
        claim = make_claim(official_gcc=None)
        calculation = calculate_entitlements(claim=claim, reference=reference)
        assert calculation.confidence.overall == 50

        summary = validate_claim(claim=claim, calculation=calculation, reference=reference)

        finding = _finding(summary, RuleCode.CALC_CONFIDENCE_FLOOR)
        assert not finding.passed
        assert finding.severity is Severity.WARNING
        assert "PPM" in finding.message
        assert summary.ready_to_submit
        assert summary.overall_score == 90
