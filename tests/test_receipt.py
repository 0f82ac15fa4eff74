"""Tests for receipt primitives and schemas."""
import json

import pytest

from pontoflex.core.receipt import StopRule, dual_hash, emit_receipt
from pontoflex.core.schemas import validate_pending, validate_receipt


class TestDualHash:

    def test_format(self):
        sha, b3 = dual_hash("ponto").split(":")
        assert len(sha) == 64
        assert len(b3) == 64
        assert sha != b3

    def test_dict_hash_ignores_key_order(self):
        assert dual_hash({"a": 1, "b": 2}) == dual_hash({"b": 2, "a": 1})

    def test_str_and_bytes_agree(self):
        assert dual_hash("x") == dual_hash(b"x")


class TestEmitReceipt:

    def test_required_fields(self):
        receipt = emit_receipt("queue_cleared", {"cleared_count": 3, "tenant_id": "company-1"})

        assert receipt["receipt_type"] == "queue_cleared"
        assert receipt["tenant_id"] == "company-1"
        assert receipt["ts"].endswith("Z")
        assert ":" in receipt["payload_hash"]
        assert validate_receipt(receipt)

    def test_logged_as_json_line(self, caplog):
        with caplog.at_level("INFO", logger="pontoflex.receipts"):
            emit_receipt("queue_cleared", {"cleared_count": 0})

        logged = json.loads(caplog.records[-1].getMessage())
        assert logged["receipt_type"] == "queue_cleared"
        assert logged["tenant_id"] == "default"


class TestValidateReceipt:

    def test_unknown_type_stops(self):
        receipt = emit_receipt("mystery", {})
        with pytest.raises(StopRule):
            validate_receipt(receipt)

    def test_missing_payload_field_stops(self):
        receipt = emit_receipt("offline_dead_letter", {"offline_id": "x"})
        with pytest.raises(StopRule):
            validate_receipt(receipt)

    def test_not_a_dict_stops(self):
        with pytest.raises(StopRule):
            validate_receipt(["receipt"])


class TestValidatePending:

    def test_minimal_entry(self):
        assert validate_pending({
            "offline_id": "x",
            "employee_id": "e",
            "company_id": "c",
            "reference_date": "2026-03-02",
            "reference_time": "08:00:00",
            "auth_method": "password",
        })

    def test_wrong_type_rejected(self):
        assert not validate_pending({
            "offline_id": "x",
            "employee_id": "e",
            "company_id": "c",
            "reference_date": "2026-03-02",
            "reference_time": "08:00:00",
            "auth_method": "password",
            "latitude": "north",
        })

    def test_non_dict_rejected(self):
        assert not validate_pending(None)

    def test_unknown_auth_method_rejected(self):
        assert not validate_pending({
            "offline_id": "x",
            "employee_id": "e",
            "company_id": "c",
            "reference_date": "2026-03-02",
            "reference_time": "08:00:00",
            "auth_method": "face",
        })

    def test_known_auth_methods_match_enum(self):
        from pontoflex.core.constants import AUTH_METHOD_VALUES
        from pontoflex.offline import AuthMethod
        assert set(AUTH_METHOD_VALUES) == {m.value for m in AuthMethod}
