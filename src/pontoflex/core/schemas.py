"""Receipt and stored-record schema definitions.

Constants:
    RECEIPT_SCHEMAS: Schema dicts keyed by receipt_type
    REQUIRED_FIELDS: Fields required in all receipts
    PENDING_SCHEMA: Shape of one serialized pending registration

Functions:
    validate_receipt: Validate receipt against schema
    validate_pending: Validate a stored pending registration dict
"""
from datetime import datetime

from .constants import AUTH_METHOD_VALUES, REFERENCE_DATE_FORMAT, REFERENCE_TIME_FORMAT
from .receipt import StopRule


# Required fields for all receipt types
REQUIRED_FIELDS = ["receipt_type", "ts", "tenant_id", "payload_hash"]

_OPT_FLOAT = (int, float, type(None))
_OPT_STR = (str, type(None))


RECEIPT_SCHEMAS = {
    "offline_enqueue": {
        "offline_id": str,
        "employee_id": str,
        "reference_date": str,
        "reference_time": str,
        "queue_size": int,
    },
    "offline_sync": {
        "batch_id": str,
        "attempted": int,
        "synced_count": int,
        "retained_count": int,
        "dead_count": int,
    },
    "offline_sync_item_failed": {
        "offline_id": str,
        "error_kind": str,
        "error_message": str,
        "attempts": int,
    },
    "offline_dead_letter": {
        "offline_id": str,
        "error_kind": str,
        "error_message": str,
    },
    "queue_cleared": {
        "cleared_count": int,
    },
    "registration": {
        "employee_id": str,
        "status": str,
    },
}


PENDING_SCHEMA = {
    "offline_id": str,
    "employee_id": str,
    "company_id": str,
    "reference_date": str,
    "reference_time": str,
    "auth_method": str,
    "latitude": _OPT_FLOAT,
    "longitude": _OPT_FLOAT,
    "photo_url": _OPT_STR,
    "queued_at": _OPT_STR,
    "attempts": (int, type(None)),
    "last_error": _OPT_STR,
}


def validate_receipt(receipt: dict) -> bool:
    """Validate receipt has required fields and matches schema.

    Args:
        receipt: Receipt dict to validate

    Returns:
        True if valid

    Raises:
        StopRule: If validation fails (missing field or unknown receipt_type)
    """
    if not isinstance(receipt, dict):
        raise StopRule("Receipt must be a dict")

    for field in REQUIRED_FIELDS:
        if field not in receipt:
            raise StopRule(f"Missing required field: {field}")

    receipt_type = receipt["receipt_type"]
    if receipt_type not in RECEIPT_SCHEMAS:
        raise StopRule(f"Unknown receipt_type: {receipt_type}")

    for field, expected in RECEIPT_SCHEMAS[receipt_type].items():
        if field not in receipt:
            raise StopRule(f"{receipt_type} receipt missing field: {field}")
        if not isinstance(receipt[field], expected):
            raise StopRule(f"{receipt_type}.{field} has wrong type")

    return True


def validate_pending(data) -> bool:
    """Check a stored pending registration dict against PENDING_SCHEMA.

    Missing optional fields are accepted. auth_method must be a known
    AuthMethod value and the stamps must parse. Returns False instead of
    raising because a bad entry in local storage is skipped, not fatal.
    """
    if not isinstance(data, dict):
        return False

    for field, expected in PENDING_SCHEMA.items():
        value = data.get(field)
        if value is None and isinstance(expected, tuple) and type(None) in expected:
            continue
        if not isinstance(value, expected):
            return False

    if data["auth_method"] not in AUTH_METHOD_VALUES:
        return False

    try:
        datetime.strptime(data["reference_date"], REFERENCE_DATE_FORMAT)
        datetime.strptime(data["reference_time"], REFERENCE_TIME_FORMAT)
        if data.get("queued_at") is not None:
            datetime.fromisoformat(data["queued_at"])
    except ValueError:
        return False

    return True
