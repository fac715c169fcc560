"""
Pydantic schemas for records entering the fraud graph.

- UserRecord: people holding accounts
- TransactionRecord: money movements and purchases between them
"""

from fraudlink.schemas.records import (
    TransactionRecord,
    UserRecord,
    validate_transaction_record,
    validate_user_record,
)

__all__ = [
    "TransactionRecord",
    "UserRecord",
    "validate_transaction_record",
    "validate_user_record",
]
