"""
Concurrency tests for the entitlement engine.

Verifies:
- Line evaluation on an executor matches sequential evaluation exactly
- Many claims estimated on a thread pool match their sequential results
- Log context stays claim-scoped across threads and executor tasks
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from pcs_engines.entitlements import calculate_entitlements
from pcs_kernel.domain.claim import normalize_claim
from pcs_kernel.logging_config import LogContext
from pcs_services import PCSEstimateService

_VARIANTS = [
    {},
    {"paygrade": "O4", "dependents_count": 0},
    {"destination_locality": "CAMP_HUMPHREYS_KR", "distance_miles": "7000"},
    {"per_diem_classification": "extended", "tle_origin_nights": 14},
    {"travel_method": "government", "actual_weight_lb": None},
    {"paygrade": "X9"},
    {"departure_date": "2025-11-01", "arrival_date": "2025-11-04", "orders_date": "2025-10-01"},
    {"destination_locality": "NOWHERE", "distance_miles": "30"},
]


def _payloads(claim_payload) -> list[dict]:
    return [
        claim_payload(claim_id=f"claim-{i:04d}", **variant)
        for i, variant in enumerate(_VARIANTS * 4)
    ]


class TestExecutorEquivalence:
    """An executor changes scheduling, never results."""

    @pytest.mark.parametrize("workers", [1, 2, 5])
    def test_line_executor_matches_sequential(self, reference, make_claim, workers):
        claim = make_claim()
        sequential = calculate_entitlements(claim=claim, reference=reference)

        with ThreadPoolExecutor(max_workers=workers) as executor:
            parallel = calculate_entitlements(claim=claim, reference=reference, executor=executor)

        assert parallel.to_json() == sequential.to_json()

    def test_many_claims_on_thread_pool(self, reference, claim_payload):
        service = PCSEstimateService(reference)
        payloads = _payloads(claim_payload)
        expected = [service.estimate(p).to_dict() for p in payloads]

        with ThreadPoolExecutor(max_workers=8) as pool:
            actual = [e.to_dict() for e in pool.map(service.estimate, payloads)]

        assert actual == expected

    def test_shared_line_executor_across_threads(self, reference, claim_payload):
        payloads = _payloads(claim_payload)
        claims = [normalize_claim(p, reference) for p in payloads]
        expected = [calculate_entitlements(claim=c, reference=reference).to_json() for c in claims]

        with ThreadPoolExecutor(max_workers=4) as line_pool, ThreadPoolExecutor(max_workers=4) as pool:
            actual = list(
                pool.map(
                    lambda c: calculate_entitlements(
                        claim=c, reference=reference, executor=line_pool
                    ).to_json(),
                    claims,
                )
            )

        assert actual == expected


class TestLogContextIsolation:
    """Each thread's logs carry only its own claim id."""

    def test_executor_tasks_inherit_context(self, reference, make_claim, captured_logs):
        claim = make_claim(claim_id="ctx-claim")

        with ThreadPoolExecutor(max_workers=5) as executor:
            with LogContext.bind(claim_id="ctx-claim", reference_set=reference.set_id):
                calculate_entitlements(claim=claim, reference=reference, executor=executor)

        line_traces = [
            r for r in captured_logs()
            if r["message"] == "PCS_ENGINE_TRACE"
            and r["engine_name"] in ("dla", "tle", "malt", "per_diem", "ppm")
        ]
        assert len(line_traces) == 5
        assert {r.get("claim_id") for r in line_traces} == {"ctx-claim"}

    def test_threads_do_not_leak_context(self, reference, claim_payload, captured_logs):
        service = PCSEstimateService(reference)
        barrier = threading.Barrier(4)
        errors: list[BaseException] = []

        def _run(index: int) -> None:
            try:
                barrier.wait(timeout=10)
                service.estimate(claim_payload(claim_id=f"thread-{index}"))
            except BaseException as exc:
                errors.append(exc)

        threads = [threading.Thread(target=_run, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not errors
        completed = [r for r in captured_logs() if r["message"] == "claim_estimate_completed"]
        assert sorted(r["claim_id"] for r in completed) == [f"thread-{i}" for i in range(4)]
        assert LogContext.get_all() == {}
