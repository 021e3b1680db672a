"""
Tests for the engine tracer (PCS_ENGINE_TRACE).
"""

from datetime import date
from decimal import Decimal

from pcs_engines.tracer import compute_input_fingerprint, traced_engine
from pcs_kernel.domain.claim import Claim


def _claim(**overrides) -> Claim:
    values = dict(
        claim_id="c-1",
        departure_date=date(2025, 6, 1),
        arrival_date=date(2025, 6, 4),
        paygrade="E5",
        distance_miles=Decimal("812"),
    )
    values.update(overrides)
    return Claim(**values)


class TestInputFingerprint:
    """Fingerprints are deterministic and sensitive to inputs."""

    def test_same_inputs_same_fingerprint(self):
        a = compute_input_fingerprint(("claim",), {"claim": _claim()})
        b = compute_input_fingerprint(("claim",), {"claim": _claim()})

        assert a == b
        assert len(a) == 16

    def test_changed_input_changes_fingerprint(self):
        a = compute_input_fingerprint(("claim",), {"claim": _claim()})
        b = compute_input_fingerprint(("claim",), {"claim": _claim(distance_miles=Decimal("813"))})

        assert a != b

    def test_dict_key_order_irrelevant(self):
        a = compute_input_fingerprint(("params",), {"params": {"x": 1, "y": 2}})
        b = compute_input_fingerprint(("params",), {"params": {"y": 2, "x": 1}})

        assert a == b

    def test_reference_identified_by_checksum(self, reference):
        a = compute_input_fingerprint(("reference",), {"reference": reference})
        b = compute_input_fingerprint(("reference",), {"reference": reference})

        assert a == b

    def test_missing_field_recorded_as_null(self):
        assert compute_input_fingerprint(("absent",), {}) == compute_input_fingerprint(
            ("absent",), {"absent": None}
        )


class TestTracedEngine:
    """The decorator logs one trace per call and returns the result."""

    def test_trace_emitted(self, captured_logs):
        @traced_engine("sample", "2.1", fingerprint_fields=("value",))
        def sample(*, value):
            return value * 2

        assert sample(value=21) == 42

        traces = [r for r in captured_logs() if r["message"] == "PCS_ENGINE_TRACE"]
        assert len(traces) == 1
        assert traces[0]["engine_name"] == "sample"
        assert traces[0]["engine_version"] == "2.1"
        assert traces[0]["input_fingerprint"]
        assert traces[0]["duration_ms"] >= 0

    def test_wrapped_function_metadata_preserved(self):
        @traced_engine("sample", "1.0")
        def documented():
            """Docstring."""

        assert documented.__name__ == "documented"
        assert documented.__doc__ == "Docstring."
