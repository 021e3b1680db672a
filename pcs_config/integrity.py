"""
Reference Data Integrity -- checksum pinning for approved rate years.

When a reference set directory contains an APPROVED_FINGERPRINT file, the
checksum computed over the set's YAML content must match the pinned value.
This prevents unreviewed edits to published rate tables.

The pin file is a single line: the SHA-256 hex string produced by
``pcs_config.loader.compute_checksum`` for the set.

If no APPROVED_FINGERPRINT file exists, the check is skipped
(draft/dev workflow).
"""

from __future__ import annotations

from pathlib import Path

from pcs_kernel.exceptions import ReferenceIntegrityError

PINFILE_NAME = "APPROVED_FINGERPRINT"


def read_pinned_checksum(set_dir: Path) -> str | None:
    """Read the APPROVED_FINGERPRINT file from a reference set directory.

    Returns:
        The pinned SHA-256 hex string, or None if no pin file exists.
    """
    pin_path = set_dir / PINFILE_NAME
    if not pin_path.is_file():
        return None
    return pin_path.read_text().strip()


def verify_checksum_pin(set_id: str, checksum: str, set_dir: Path) -> None:
    """Verify that the computed checksum matches the pin file.

    No-op if no APPROVED_FINGERPRINT file exists.

    Raises:
        ReferenceIntegrityError: If pin exists and checksum does not match.
    """
    pinned = read_pinned_checksum(set_dir)
    if pinned is None:
        return

    if checksum != pinned:
        raise ReferenceIntegrityError(
            set_id=set_id,
            expected=pinned,
            actual=checksum,
            pin_path=str(set_dir / PINFILE_NAME),
        )
