#!/usr/bin/env python3
"""
Estimate a PCS claim from a JSON draft and print the result as JSON.

Usage:
    python3 scripts/estimate_claim.py claim.json
    python3 scripts/estimate_claim.py claim.json --set-id fy2025 --workers 5
    python3 scripts/estimate_claim.py claim.json --fuel 180.25 --tolls 32
    cat claim.json | python3 scripts/estimate_claim.py -

The reference set is chosen by the claim's orders date (its departure
date when no orders date is given) unless --set-id is given. Fuel receipts
recorded on the claim are used when --fuel is not given. Structured logs
go to stderr; the estimate goes to stdout.
"""

import argparse
import json
import sys
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal, InvalidOperation
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from pcs_config import get_reference_data
from pcs_engines.ppm_withholding import AllowedExpenses
from pcs_kernel.domain.claim import normalize_claim
from pcs_kernel.domain.values import to_cents
from pcs_kernel.exceptions import PCSEngineError
from pcs_kernel.logging_config import configure_logging
from pcs_services import PCSEstimateService


def dollars(text: str) -> int:
    """argparse type: dollar string -> integer cents."""
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a dollar amount: {text!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {text!r}")
    return to_cents(value)


def read_claim(source: str) -> dict:
    if source == "-":
        return json.load(sys.stdin)
    with open(source) as f:
        return json.load(f)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Estimate PCS entitlements, JTR compliance and PPM net payout.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "examples:\n"
            "  python3 scripts/estimate_claim.py claim.json\n"
            "  python3 scripts/estimate_claim.py claim.json --no-payout --indent 0\n"
        ),
    )
    parser.add_argument("claim", help="Path to the claim JSON file, or - for stdin")
    parser.add_argument("--set-id", type=str, default=None, help="Reference set identifier")
    parser.add_argument(
        "--config-dir", type=Path, default=None,
        help="Directory of reference sets (default: pcs_config/sets)",
    )
    parser.add_argument(
        "--workers", type=int, default=0,
        help="Evaluate entitlement lines on a thread pool of this size",
    )
    parser.add_argument("--no-payout", action="store_true", help="Skip the PPM net payout")
    parser.add_argument("--moving-costs", type=dollars, default=0, help="PPM moving costs ($)")
    parser.add_argument(
        "--fuel", type=dollars, default=0,
        help="PPM fuel receipts ($); defaults to the claim's fuel_receipts",
    )
    parser.add_argument("--labor", type=dollars, default=0, help="PPM labor receipts ($)")
    parser.add_argument("--tolls", type=dollars, default=0, help="PPM tolls ($)")
    parser.add_argument(
        "--ytd-fica-wages", type=dollars, default=0,
        help="Wages already subject to Social Security this year ($)",
    )
    parser.add_argument("--indent", type=int, default=2, help="JSON indent (0 for compact)")
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Structured log level on stderr (default: WARNING)",
    )

    args = parser.parse_args()
    configure_logging(level=args.log_level)

    try:
        raw = read_claim(args.claim)
    except (OSError, json.JSONDecodeError) as exc:
        print(f"ERROR: cannot read claim: {exc}", file=sys.stderr)
        return 1

    executor = ThreadPoolExecutor(max_workers=args.workers) if args.workers > 0 else None
    try:
        # Parse once without reference data to learn the entitlement date.
        draft = normalize_claim(raw)
        reference = get_reference_data(
            as_of=None if args.set_id else draft.entitlement_date,
            set_id=args.set_id,
            config_dir=args.config_dir,
        )
        service = PCSEstimateService(reference, executor=executor)
        expenses = AllowedExpenses(
            moving_costs_cents=args.moving_costs,
            fuel_cents=args.fuel or draft.fuel_receipts_cents,
            labor_cents=args.labor,
            tolls_cents=args.tolls,
        )
        estimate = service.estimate(
            raw,
            allowed_expenses=expenses,
            ytd_fica_wages_cents=args.ytd_fica_wages,
        )
    except PCSEngineError as exc:
        print(f"ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1
    finally:
        if executor is not None:
            executor.shutdown()

    payload = estimate.to_dict()
    if args.no_payout:
        payload["ppmPayout"] = None
    print(json.dumps(payload, indent=args.indent or None, sort_keys=True))
    return 0 if estimate.ready_to_submit else 2


if __name__ == "__main__":
    sys.exit(main())
