#!/usr/bin/env python3
"""
Approve a reference set by writing its checksum to APPROVED_FINGERPRINT.

Usage:
    python scripts/approve_reference_set.py [reference_set_directory]

If no directory is given, defaults to pcs_config/sets/fy2025/

The script:
  1. Loads every YAML file of the set
  2. Validates cross-table consistency
  3. Writes the set checksum to APPROVED_FINGERPRINT

Editing any rate file without re-running approval causes
get_reference_data() to raise ReferenceIntegrityError.
"""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from pcs_config.integrity import PINFILE_NAME
from pcs_config.loader import load_reference_set
from pcs_config.validator import validate_reference_data


def approve(set_dir: Path) -> str:
    """Load, validate and write the pin file. Returns the checksum written."""
    print(f"Loading reference set from: {set_dir}")
    reference = load_reference_set(set_dir)
    print(f"  set_id:    {reference.set_id}")
    print(f"  version:   {reference.version}")
    print(f"  effective: {reference.effective_from} .. {reference.effective_to or 'open'}")
    print(f"  rates:     {len(reference.rates)}")

    print("Validating...")
    result = validate_reference_data(reference)
    if not result.is_valid:
        print("VALIDATION FAILED:")
        for err in result.errors:
            print(f"  ERROR: {err}")
        sys.exit(1)
    for w in result.warnings:
        print(f"  WARNING: {w}")

    pin_path = set_dir / PINFILE_NAME
    pin_path.write_text(reference.checksum + "\n")
    print(f"  checksum: {reference.checksum}")
    print(f"Wrote {pin_path}")
    return reference.checksum


def main():
    if len(sys.argv) > 1:
        target = Path(sys.argv[1])
    else:
        target = ROOT / "pcs_config" / "sets" / "fy2025"

    if not target.is_dir():
        print(f"Error: directory not found: {target}", file=sys.stderr)
        sys.exit(1)

    approve(target)
    print("Done. Reference set is now pinned.")


if __name__ == "__main__":
    main()
