"""Core subpackage for PontoFlex receipt primitives.

Exports all from receipt.py, schemas.py, and constants.py.
"""
from .receipt import dual_hash, emit_receipt, utc_now_iso, StopRule
from .schemas import (
    RECEIPT_SCHEMAS,
    REQUIRED_FIELDS,
    PENDING_SCHEMA,
    validate_receipt,
    validate_pending,
)
from .constants import (
    PENDING_SYNC_KEY,
    DEAD_LETTER_KEY,
    REGISTRATIONS_TABLE,
    EARTH_RADIUS_M,
    DEFAULT_GEOFENCE_RADIUS_M,
)

__all__ = [
    # Receipt primitives
    "dual_hash",
    "emit_receipt",
    "utc_now_iso",
    "StopRule",
    # Schemas
    "RECEIPT_SCHEMAS",
    "REQUIRED_FIELDS",
    "PENDING_SCHEMA",
    "validate_receipt",
    "validate_pending",
    # Constants
    "PENDING_SYNC_KEY",
    "DEAD_LETTER_KEY",
    "REGISTRATIONS_TABLE",
    "EARTH_RADIUS_M",
    "DEFAULT_GEOFENCE_RADIUS_M",
]
