"""
Tests for ingestion record validation.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from fraudlink.exceptions import RecordValidationError
from fraudlink.graph.schema import TransactionStatus, TransactionType
from fraudlink.schemas.records import (
    validate_transaction_record,
    validate_user_record,
)


class TestUserRecord:
    """Tests for user record validation."""

    def test_valid_user(self):
        record = validate_user_record({
            "id": "u1",
            "name": " Ann Smith ",
            "email": "ann@example.com",
            "phone": "",
        })

        assert record.name == "Ann Smith"
        assert record.phone is None
        user = record.to_entity()
        assert user.email_domain == "example.com"

    @pytest.mark.parametrize("missing", ["id", "name", "email"])
    def test_required_fields(self, missing):
        data = {"id": "u1", "name": "Ann", "email": "ann@example.com"}
        del data[missing]

        with pytest.raises(RecordValidationError) as exc_info:
            validate_user_record(data)

        assert exc_info.value.errors
        assert exc_info.value.errors[0]["loc"] == (missing,)

    def test_invalid_email(self):
        with pytest.raises(RecordValidationError):
            validate_user_record({"id": "u1", "name": "Ann", "email": "not-an-email"})

    def test_numeric_id_coerced(self):
        record = validate_user_record({"id": 42, "name": "Ann", "email": "a@b.c"})
        assert record.id == "42"


class TestTransactionRecord:
    """Tests for transaction record validation."""

    def test_camel_case_payload(self):
        record = validate_transaction_record({
            "id": "t1",
            "originUserId": "u1",
            "destinationUserId": "u2",
            "amount": "1250.50",
            "type": "TRANSFER",
            "status": "COMPLETED",
            "ipAddress": "10.0.0.1",
            "deviceId": "mobile-1",
            "timestamp": "2024-03-01T12:00:00",
        })

        assert record.origin_user_id == "u1"
        assert record.recipient_user_id == "u2"
        assert record.amount == Decimal("1250.50")
        assert record.type == TransactionType.TRANSFER
        assert record.status == TransactionStatus.COMPLETED
        assert record.timestamp == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

        tx = record.to_entity()
        assert tx.amount == 1250.5
        assert tx.ip_address == "10.0.0.1"

    def test_defaults(self):
        record = validate_transaction_record({
            "id": "t1", "origin_user_id": "u1", "amount": 10, "type": "deposit",
        })

        assert record.currency == "USD"
        assert record.status == TransactionStatus.COMPLETED
        assert record.metadata == {}
        assert record.timestamp.tzinfo is not None

    @pytest.mark.parametrize("amount", [-1, "abc", None, "1e400", "Infinity", "NaN"])
    def test_bad_amount_rejected(self, amount):
        with pytest.raises(RecordValidationError):
            validate_transaction_record({
                "id": "t1", "originUserId": "u1", "amount": amount, "type": "payment",
            })

    def test_unknown_type_rejected(self):
        with pytest.raises(RecordValidationError):
            validate_transaction_record({
                "id": "t1", "originUserId": "u1", "amount": 5, "type": "refund",
            })

    def test_unknown_status_rejected(self):
        with pytest.raises(RecordValidationError):
            validate_transaction_record({
                "id": "t1", "originUserId": "u1", "amount": 5, "type": "payment",
                "status": "reversed",
            })

    def test_metadata_json_string(self):
        record = validate_transaction_record({
            "id": "t1", "originUserId": "u1", "amount": 5, "type": "payment",
            "metadata": '{"merchant": "acme"}',
        })
        assert record.metadata == {"merchant": "acme"}

    def test_missing_origin(self):
        with pytest.raises(RecordValidationError):
            validate_transaction_record({"id": "t1", "amount": 5, "type": "payment"})
