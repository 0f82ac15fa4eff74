"""Core receipt primitives shared by every PontoFlex module.

Functions:
    dual_hash: SHA256:BLAKE3 dual-hash format
    emit_receipt: Emit receipt with required fields to the receipts logger
    StopRule: Exception for stoprule triggers
"""
import hashlib
import json
import logging
from datetime import datetime, timezone

import blake3

receipt_logger = logging.getLogger("pontoflex.receipts")


class StopRule(Exception):
    """Raised when stoprule triggers. Never catch silently."""
    pass


def utc_now_iso() -> str:
    """Current UTC time in ISO format with Z suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def dual_hash(data: bytes | str | dict) -> str:
    """Compute dual hash in format 'sha256hex:blake3hex'.

    Pure function with no side effects.

    Args:
        data: Bytes, string, or dict to hash

    Returns:
        String in format 'sha256hex:blake3hex' (both 64 hex chars)
    """
    if isinstance(data, dict):
        data = json.dumps(data, sort_keys=True, separators=(",", ":"))
    if isinstance(data, str):
        data = data.encode("utf-8")

    sha256_hex = hashlib.sha256(data).hexdigest()
    blake3_hex = blake3.blake3(data).hexdigest()

    return f"{sha256_hex}:{blake3_hex}"


def emit_receipt(receipt_type: str, data: dict, tenant_id: str = "default") -> dict:
    """Emit a receipt with standard required fields.

    Writes one JSON line to the ``pontoflex.receipts`` logger at INFO.

    Args:
        receipt_type: Type of receipt (see RECEIPT_SCHEMAS)
        data: Receipt payload data
        tenant_id: Tenant identifier, normally the company id

    Returns:
        Complete receipt dict with receipt_type, ts, tenant_id, payload_hash
    """
    tenant_id = data.get("tenant_id", tenant_id)

    payload_bytes = json.dumps(data, sort_keys=True, default=str).encode("utf-8")
    payload_hash = dual_hash(payload_bytes)

    receipt = {
        "receipt_type": receipt_type,
        "ts": utc_now_iso(),
        "tenant_id": tenant_id,
        "payload_hash": payload_hash,
        **data
    }

    receipt_logger.info(json.dumps(receipt, sort_keys=True, default=str))

    return receipt
