"""
Tests for cross-table validation of reference sets.

Each test breaks one table of an in-memory copy of the FY2025 set and
checks that validation names the problem.
"""

import copy
from pathlib import Path

import pytest

from pcs_config.loader import build_reference_data, load_raw_set
from pcs_config.validator import validate_reference_data

FY2025_DIR = Path(__file__).resolve().parents[2] / "pcs_config" / "sets" / "fy2025"


@pytest.fixture(scope="module")
def pristine_raw():
    return load_raw_set(FY2025_DIR)


@pytest.fixture
def raw(pristine_raw):
    return copy.deepcopy(pristine_raw)


def _table(raw: dict, entitlement: str) -> dict:
    (table,) = [t for t in raw["rates"]["tables"] if t["entitlement"] == entitlement]
    return table


def _validate(raw: dict):
    return validate_reference_data(build_reference_data(raw))


class TestPackagedSetIsValid:
    def test_no_errors(self, raw):
        result = _validate(raw)

        assert result.is_valid, result.errors


class TestCoverage:
    """Every entitlement and band must have a rate."""

    def test_missing_entitlement(self, raw):
        raw["rates"]["tables"] = [t for t in raw["rates"]["tables"] if t["entitlement"] != "malt"]

        result = _validate(raw)

        assert "No rates defined for malt" in result.errors
        assert "malt: no rate for tier_1" in result.errors

    def test_missing_national_default(self, raw):
        table = _table(raw, "tle")
        table["rows"] = [r for r in table["rows"] if "locality" in r]

        result = _validate(raw)

        assert "tle: missing national default rate" in result.errors

    def test_missing_dla_band(self, raw):
        table = _table(raw, "dla")
        table["rows"] = [r for r in table["rows"] if r["paygrade_band"] != "O7+"]

        result = _validate(raw)

        assert "dla: no base amount for paygrade band O7+" in result.errors

    def test_missing_ppm_band_rate(self, raw):
        table = _table(raw, "ppm")
        table["rows"] = [r for r in table["rows"] if r["band"] != "cross_country"]

        result = _validate(raw)

        assert "ppm: no carrier rate for distance band 'cross_country'" in result.errors

    def test_undeclared_ppm_band_is_warning(self, raw):
        _table(raw, "ppm")["rows"].append({"band": "intercontinental", "amount": "2.00"})

        result = _validate(raw)

        assert result.is_valid
        assert "ppm: carrier rate for undeclared distance band 'intercontinental'" in result.warnings


class TestConsistency:
    """Monotonic DLA, no overlaps, declared localities."""

    def test_dla_decreasing_with_seniority(self, raw):
        for row in _table(raw, "dla")["rows"]:
            if row["paygrade_band"] == "E7-E9":
                row["amount"] = "1000.00"

        result = _validate(raw)

        assert not result.is_valid
        assert any("must not decrease" in e and "E7-E9" in e for e in result.errors)

    def test_overlapping_rows(self, raw):
        _table(raw, "malt")["rows"].append({"band": "tier_1", "amount": "0.23"})

        result = _validate(raw)

        assert any(e.startswith("Overlapping effective ranges for ('malt'") for e in result.errors)

    def test_consecutive_years_do_not_overlap(self, raw):
        _table(raw, "malt")["rows"].append(
            {
                "band": "tier_1",
                "amount": "0.21",
                "effective_from": "2023-10-01",
                "effective_to": "2024-09-30",
            }
        )

        result = _validate(raw)

        assert result.is_valid
        assert any("starts outside set fy2025 range" in w for w in result.warnings)

    def test_undeclared_locality(self, raw):
        _table(raw, "perDiem")["rows"].append({"locality": "NOWHERE_XX", "amount": "100.00"})

        result = _validate(raw)

        assert "perDiem: rate references undeclared locality NOWHERE_XX" in result.errors

    def test_locality_without_coordinates_is_warning(self, raw):
        for entry in raw["localities"]["localities"]:
            if entry["code"] == "FT_MOORE_GA":
                del entry["latitude"]
                del entry["longitude"]

        result = _validate(raw)

        assert result.is_valid
        assert "Locality FT_MOORE_GA has no coordinates; distance checks skipped" in result.warnings

    def test_grade_without_allowance_is_warning(self, raw):
        del raw["weight_allowances"]["allowances"]["W5"]

        result = _validate(raw)

        assert result.is_valid
        assert "Paygrade W5 has no weight allowance" in result.warnings
