"""
Tests for core module.
"""

import pytest
from examchain.core import (
    ConflictError,
    ExamChainError,
    LedgerUnavailable,
    NotFoundError,
    PersistenceError,
    TENANT_ID,
    ValidationError,
    dual_hash,
    emit_receipt,
    fingerprint,
    load_receipts,
    merkle,
    require,
    validate_receipt,
)


class TestFingerprint:
    """Tests for fingerprint function."""

    def test_fingerprint_fixed_width_lowercase_hex(self):
        """Test fingerprint is 64 lowercase hex chars."""
        result = fingerprint("paper")
        assert len(result) == 64
        assert result == result.lower()
        int(result, 16)

    def test_fingerprint_known_value(self):
        """Test fingerprint matches SHA256."""
        assert fingerprint(b"abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"

    def test_fingerprint_str_and_bytes_agree(self):
        """Test str input is UTF-8 encoded."""
        assert fingerprint("set A") == fingerprint("set A".encode("utf-8"))

    def test_fingerprint_deterministic(self):
        """Test that fingerprint is deterministic."""
        assert fingerprint("x") == fingerprint("x")
        assert fingerprint("x") != fingerprint("y")


class TestDualHash:
    """Tests for dual_hash function."""

    def test_dual_hash_format(self):
        """Test dual_hash produces sha256:blake3."""
        parts = dual_hash("test").split(":")
        assert len(parts) == 2
        assert len(parts[0]) == 64
        assert len(parts[1]) == 64
        assert parts[0] == fingerprint("test")

    def test_dual_hash_deterministic(self):
        """Test that dual_hash is deterministic."""
        assert dual_hash("test") == dual_hash(b"test")


class TestEmitReceipt:
    """Tests for emit_receipt function."""

    def test_emit_receipt_basic(self):
        """Test basic receipt emission."""
        receipt = emit_receipt("test", {"key": "value"})

        assert receipt["receipt_type"] == "test"
        assert receipt["tenant_id"] == TENANT_ID
        assert "ts" in receipt
        assert receipt["key"] == "value"

    def test_emit_receipt_appends_to_ledger(self, temp_ledger):
        """Test receipts land in the ledger file in order."""
        emit_receipt("first", {"n": 1})
        emit_receipt("second", {"n": 2})

        receipts = load_receipts(temp_ledger)
        assert [r["receipt_type"] for r in receipts] == ["first", "second"]

    def test_emit_receipt_custom_tenant(self):
        """Test receipt with custom tenant."""
        receipt = emit_receipt("test", {"key": "value"}, tenant_id="custom")
        assert receipt["tenant_id"] == "custom"

    def test_load_receipts_missing_file(self, tmp_path):
        """Test loading a ledger that does not exist."""
        assert load_receipts(str(tmp_path / "absent.jsonl")) == []


class TestMerkle:
    """Tests for merkle function."""

    def test_merkle_empty(self):
        assert merkle([]) == dual_hash("")

    def test_merkle_order_matters(self):
        assert merkle(["a", "b"]) != merkle(["b", "a"])

    def test_merkle_odd_count(self):
        """Test odd counts duplicate the last hash."""
        assert merkle(["a", "b", "c"]) == merkle(["a", "b", "c", "c"])


class TestErrors:
    """Tests for the typed error hierarchy."""

    def test_all_errors_share_base(self):
        for cls in (ValidationError, ConflictError, NotFoundError, LedgerUnavailable, PersistenceError):
            assert issubclass(cls, ExamChainError)

    def test_retryable_flags(self):
        assert LedgerUnavailable("down").retryable is True
        assert ValidationError("bad").retryable is False
        assert PersistenceError("disk").retryable is False
        assert PersistenceError("disk", retryable=True).retryable is True

    def test_error_context(self):
        exc = ConflictError("exists", {"vacancy_id": "V1"})
        assert exc.message == "exists"
        assert exc.context == {"vacancy_id": "V1"}
        assert str(exc) == "exists"

    def test_require(self):
        assert require("  V1 ", "vacancy_id") == "V1"
        for value in (None, "", "   "):
            with pytest.raises(ValidationError):
                require(value, "vacancy_id")


class TestValidateReceipt:
    """Tests for validate_receipt function."""

    def test_validate_valid_receipt(self):
        receipt = emit_receipt("test", {"key": "value"})
        assert validate_receipt(receipt) == (True, "valid")

    def test_validate_missing_field(self):
        valid, reason = validate_receipt({"receipt_type": "test"})
        assert valid is False
        assert "Missing" in reason

    def test_validate_invalid_tenant(self):
        receipt = {
            "receipt_type": "test",
            "ts": "2024-01-01T00:00:00Z",
            "tenant_id": "wrong",
            "payload_hash": "a" * 64 + ":" + "b" * 64
        }
        valid, reason = validate_receipt(receipt)
        assert valid is False
        assert "tenant_id" in reason
