"""
Tests for the estimate_claim command-line script.

Runs ``main()`` in-process with a patched argv and checks the JSON on
stdout, the error line on stderr and the exit code.
"""

import argparse
import io
import json
import sys

import pytest

from scripts.estimate_claim import dollars, main


def _write_claim(tmp_path, payload: dict):
    path = tmp_path / "claim.json"
    path.write_text(json.dumps(payload))
    return path


def _run(monkeypatch, *args) -> int:
    monkeypatch.setattr(sys, "argv", ["estimate_claim.py", *map(str, args)])
    return main()


class TestEstimateClaimCli:
    """End-to-end runs against the packaged reference set."""

    def test_ready_claim_exits_zero(self, monkeypatch, capsys, tmp_path, claim_payload):
        exit_code = _run(monkeypatch, _write_claim(tmp_path, claim_payload()))

        out = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert out["claimId"] == "claim-0001"
        assert out["calculation"]["total"] == 1508475
        assert out["calculation"]["referenceSet"] == "fy2025"
        assert out["validation"]["overall_score"] == 100
        assert out["ppmPayout"]["net"] == 695058

    def test_claim_with_errors_exits_two(self, monkeypatch, capsys, tmp_path, claim_payload):
        exit_code = _run(monkeypatch, _write_claim(tmp_path, claim_payload(claim_name=None)))

        out = json.loads(capsys.readouterr().out)
        assert exit_code == 2
        assert out["validation"]["ready_to_submit"] is False

    def test_no_payout(self, monkeypatch, capsys, tmp_path, claim_payload):
        _run(monkeypatch, _write_claim(tmp_path, claim_payload()), "--no-payout")

        assert json.loads(capsys.readouterr().out)["ppmPayout"] is None

    def test_expenses_reduce_taxable(self, monkeypatch, capsys, tmp_path, claim_payload):
        _run(monkeypatch, _write_claim(tmp_path, claim_payload()), "--fuel", "600", "--tolls", "280")

        assert json.loads(capsys.readouterr().out)["ppmPayout"]["taxable"] == 900000

    def test_workers_give_same_estimate(self, monkeypatch, capsys, tmp_path, claim_payload):
        path = _write_claim(tmp_path, claim_payload())
        _run(monkeypatch, path)
        sequential = capsys.readouterr().out
        _run(monkeypatch, path, "--workers", "5")

        assert capsys.readouterr().out == sequential

    def test_stdin(self, monkeypatch, capsys, claim_payload):
        monkeypatch.setattr(sys, "stdin", io.StringIO(json.dumps(claim_payload())))

        exit_code = _run(monkeypatch, "-", "--indent", "0")

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "\n" not in out.strip()

    def test_explicit_set_id(self, monkeypatch, capsys, tmp_path, claim_payload):
        path = _write_claim(
            tmp_path,
            claim_payload(
                departure_date="2025-10-05", arrival_date="2025-10-09", orders_date="2025-10-01"
            ),
        )

        exit_code = _run(monkeypatch, path, "--set-id", "fy2025")

        out = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert out["calculation"]["confidence"]["overall"] == 80

    def test_set_chosen_by_orders_date(self, monkeypatch, capsys, tmp_path, claim_payload):
        path = _write_claim(
            tmp_path,
            claim_payload(
                departure_date="2025-10-03", arrival_date="2025-10-08", orders_date="2025-09-01"
            ),
        )

        exit_code = _run(monkeypatch, path)

        out = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert out["calculation"]["referenceSet"] == "fy2025"
        assert out["calculation"]["confidence"]["overall"] == 100
        assert out["calculation"]["jtrRuleVersion"] == "JTR 2025-01"

    def test_uncalculable_claim_exits_two(self, monkeypatch, capsys, tmp_path, claim_payload):
        exit_code = _run(monkeypatch, _write_claim(tmp_path, claim_payload(arrival_date="2025-05-30")))

        out = json.loads(capsys.readouterr().out)
        assert exit_code == 2
        assert out["calculation"] is None
        assert out["validation"]["errors"] == 1

    def test_fuel_receipts_from_claim(self, monkeypatch, capsys, tmp_path, claim_payload):
        path = _write_claim(tmp_path, claim_payload(fuel_receipts="600.00"))

        _run(monkeypatch, path, "--tolls", "280")

        assert json.loads(capsys.readouterr().out)["ppmPayout"]["taxable"] == 900000


class TestEstimateClaimErrors:
    """Failures print one error line and exit 1."""

    def test_unreadable_claim_field(self, monkeypatch, capsys, tmp_path, claim_payload):
        exit_code = _run(monkeypatch, _write_claim(tmp_path, claim_payload(departure_date="June 1")))

        err = capsys.readouterr().err
        assert exit_code == 1
        assert "ERROR [INVALID_CLAIM_INPUT]" in err

    def test_no_reference_set_for_date(self, monkeypatch, capsys, tmp_path, claim_payload):
        path = _write_claim(
            tmp_path,
            claim_payload(
                departure_date="2027-06-01", arrival_date="2027-06-06", orders_date="2027-04-15"
            ),
        )

        exit_code = _run(monkeypatch, path)

        assert exit_code == 1
        assert "ERROR [REFERENCE_SET_NOT_FOUND]" in capsys.readouterr().err

    def test_unreadable_file(self, monkeypatch, capsys, tmp_path):
        exit_code = _run(monkeypatch, tmp_path / "missing.json")

        assert exit_code == 1
        assert "cannot read claim" in capsys.readouterr().err

    def test_malformed_json(self, monkeypatch, capsys, tmp_path):
        path = tmp_path / "claim.json"
        path.write_text("{not json")

        assert _run(monkeypatch, path) == 1
        assert "cannot read claim" in capsys.readouterr().err


class TestDollarsArgument:
    """Dollar amounts on the command line become cents."""

    def test_rounds_half_up(self):
        assert dollars("12.345") == 1235

    def test_whole_dollars(self):
        assert dollars("880") == 88000

    @pytest.mark.parametrize("bad", ["-5", "ten"])
    def test_rejected(self, bad):
        with pytest.raises(argparse.ArgumentTypeError):
            dollars(bad)
