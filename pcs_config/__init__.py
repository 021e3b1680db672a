"""
pcs_config -- single public entrypoint for PCS reference data.

Responsibility:
    Provides the ONLY way to obtain reference data at runtime through
    ``get_reference_data()``.  No other component reads rate files or
    environment variables.  Returns a frozen ``ReferenceData`` -- the sole
    runtime artifact.  YAML loading is internal tooling.

Architecture position:
    Configuration -- YAML-driven rate tables, load-time validation.
    This package sits above ``pcs_kernel`` and below ``pcs_services``.
    Neither the kernel nor the engines may import from ``pcs_config``.

Invariants enforced:
    - Single entrypoint: all runtime reference data flows through
      ``get_reference_data()``.
    - Load-time validation: the set must pass cross-table validation
      before it is returned.
    - Checksum pinning: when an APPROVED_FINGERPRINT file exists, the
      computed checksum must match the pinned value.
    - Deterministic loading: the same YAML always produces the same
      ``ReferenceData`` and checksum.

Failure modes:
    - ``ReferenceSetNotFoundError`` -- no set matches the requested id or
      covers the requested date.
    - ``ReferenceDataValidationError`` -- the set failed validation.
    - ``ReferenceIntegrityError`` -- checksum mismatch against an
      approved pin file.

Audit relevance:
    Every successful ``get_reference_data()`` call emits a
    ``PCS_REFERENCE_TRACE`` log entry containing the set id, version,
    checksum, effective range and table sizes.  This trace ties every
    estimate back to the exact rate tables that produced it.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

from pcs_config.integrity import verify_checksum_pin
from pcs_config.loader import (
    SET_FILE,
    load_reference_set,
    parse_date,
    parse_optional_date,
    read_set_header,
)
from pcs_config.validator import ReferenceValidationResult, validate_reference_data
from pcs_kernel.domain.reference import ReferenceData
from pcs_kernel.exceptions import ReferenceDataValidationError, ReferenceSetNotFoundError
from pcs_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default reference sets directory
_DEFAULT_SETS_DIR = Path(__file__).parent / "sets"


def get_reference_data(
    as_of: date | None = None,
    set_id: str | None = None,
    config_dir: Path | None = None,
) -> ReferenceData:
    """The ONLY public reference data entrypoint.

    Selection:
        - ``set_id`` given: the set with that id (or directory name).
        - otherwise ``as_of`` given: the set whose effective range covers
          the date; the latest-starting one if several do.
        - neither: the latest-starting set.

    Args:
        as_of: Date the reference set must cover.
        set_id: Explicit reference set identifier.
        config_dir: Override path to the sets directory.
            Defaults to pcs_config/sets/.

    Returns:
        ReferenceData that has passed validation and pin verification.

    Raises:
        ReferenceSetNotFoundError: If no set matches.
        ReferenceDataValidationError: If validation reports errors.
        ReferenceIntegrityError: If APPROVED_FINGERPRINT exists and does
            not match the computed checksum.
    """
    sets_dir = config_dir or _DEFAULT_SETS_DIR
    set_dir = _find_matching_set(sets_dir, as_of, set_id)

    reference = load_reference_set(set_dir)

    validation = validate_reference_data(reference)
    if not validation.is_valid:
        raise ReferenceDataValidationError(reference.set_id, validation.errors)
    for warning in validation.warnings:
        _logger.warning(
            "reference_data_warning",
            extra={"set_id": reference.set_id, "warning": warning},
        )

    verify_checksum_pin(reference.set_id, reference.checksum, set_dir)

    _logger.info(
        "PCS_REFERENCE_TRACE",
        extra={
            "trace_type": "PCS_REFERENCE_TRACE",
            "set_id": reference.set_id,
            "set_version": reference.version,
            "jtr_version": reference.jtr_version,
            "checksum": reference.checksum,
            "effective_from": reference.effective_from,
            "effective_to": reference.effective_to,
            "rate_count": len(reference.rates),
            "locality_count": len(reference.localities),
            "warning_count": len(validation.warnings),
        },
    )

    return reference


def available_sets(config_dir: Path | None = None) -> list[dict]:
    """List the identity headers of every set in the sets directory."""
    sets_dir = config_dir or _DEFAULT_SETS_DIR
    return [header for header, _ in _scan_sets(sets_dir)]


def _scan_sets(sets_dir: Path) -> list[tuple[dict, Path]]:
    if not sets_dir.is_dir():
        raise ReferenceSetNotFoundError("any reference set", str(sets_dir))
    found = []
    for subdir in sorted(sets_dir.iterdir()):
        if subdir.is_dir() and (subdir / SET_FILE).exists():
            found.append((read_set_header(subdir), subdir))
    return found


def _covers(header: dict, as_of: date) -> bool:
    start = parse_date(header["effective_from"])
    end = parse_optional_date(header.get("effective_to"))
    return start <= as_of and (end is None or as_of <= end)


def _find_matching_set(sets_dir: Path, as_of: date | None, set_id: str | None) -> Path:
    """Find the set directory for an id or date.

    Raises:
        ReferenceSetNotFoundError: If nothing matches.
    """
    candidates = _scan_sets(sets_dir)

    if set_id is not None:
        for header, subdir in candidates:
            if header.get("set_id") == set_id or subdir.name == set_id:
                return subdir
        raise ReferenceSetNotFoundError(f"set_id={set_id!r}", str(sets_dir))

    if as_of is not None:
        candidates = [(h, d) for h, d in candidates if _covers(h, as_of)]

    if not candidates:
        raise ReferenceSetNotFoundError(
            f"as_of={as_of}" if as_of is not None else "any reference set", str(sets_dir)
        )

    _, subdir = max(candidates, key=lambda pair: parse_date(pair[0]["effective_from"]))
    return subdir


__all__ = [
    "ReferenceValidationResult",
    "available_sets",
    "get_reference_data",
    "load_reference_set",
    "validate_reference_data",
]
