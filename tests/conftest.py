"""
Pytest fixtures for the PCS entitlement engine test suite.

Provides:
- Structured logging configuration and a JSON log capture fixture
- The packaged FY2025 reference set (loaded once per session)
- A claim factory with a realistic E-5 PPM move as its baseline
"""

import json
import logging
from io import StringIO

import pytest

from pcs_config import get_reference_data
from pcs_kernel.domain.claim import normalize_claim
from pcs_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture pcs_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, reference):
            calculate_entitlements(claim=..., reference=reference)
            logs = captured_logs()
            assert any(r["message"] == "entitlement_calculation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("pcs_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Reference data and claims
# =============================================================================


@pytest.fixture(scope="session")
def reference():
    """The packaged FY2025 reference set."""
    return get_reference_data(set_id="fy2025")


BASE_CLAIM = {
    "claim_id": "claim-0001",
    "claim_name": "PCS Fort Liberty to JBLM 2025",
    "paygrade": "E-5",
    "dependents_count": 2,
    "origin_locality": "FT_LIBERTY_NC",
    "destination_locality": "JBLM_WA",
    "orders_date": "2025-04-15",
    "departure_date": "2025-06-01",
    "arrival_date": "2025-06-06",
    "tle_origin_nights": 3,
    "tle_destination_nights": 5,
    "distance_miles": "2850",
    "actual_weight_lb": 8000,
    "official_gcc": "10400.00",
    "travel_method": "ppm",
}


@pytest.fixture
def claim_payload():
    """Factory for draft payloads: the baseline move with overrides applied."""

    def _make(**overrides) -> dict:
        payload = dict(BASE_CLAIM)
        payload.update(overrides)
        return {k: v for k, v in payload.items() if v is not None}

    return _make


@pytest.fixture
def make_claim(reference, claim_payload):
    """Factory for normalized claims against the FY2025 reference set."""

    def _make(**overrides):
        return normalize_claim(claim_payload(**overrides), reference)

    return _make
