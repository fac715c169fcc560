"""
Ingestion record schemas.

Users and transactions arrive as loose JSON (camelCase from the risk
provider, snake_case from internal callers). These models validate and
normalize them before anything touches the graph store.
"""

import json
import math
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from fraudlink.exceptions import RecordValidationError
from fraudlink.graph.schema import (
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
    utcnow,
)


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class UserRecord(BaseModel):
    """Schema for ingesting a user."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = None

    @field_validator("id", "name", mode="before")
    @classmethod
    def strip_required(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            v = str(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip()
        if "@" not in v:
            raise ValueError("email must contain '@'")
        return v

    @field_validator("phone", "address", "country", mode="before")
    @classmethod
    def blank_optional(cls, v: Any) -> Any:
        return _blank_to_none(v)

    def to_entity(self) -> User:
        return User(
            id=self.id,
            name=self.name,
            email=self.email,
            phone=self.phone,
            address=self.address,
            country=self.country,
        )


class TransactionRecord(BaseModel):
    """
    Schema for ingesting a transaction.

    Type and status are accepted case-insensitively; amount must be a
    non-negative number (strings are parsed).
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1)
    origin_user_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("origin_user_id", "originUserId", "userId", "user_id"),
    )
    recipient_user_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "recipient_user_id", "recipientUserId", "destinationUserId", "destination_user_id"
        ),
    )
    amount: Decimal = Field(ge=0)
    currency: str = "USD"
    type: TransactionType
    status: TransactionStatus = TransactionStatus.COMPLETED
    ip_address: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ip_address", "ipAddress")
    )
    device_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("device_id", "deviceId")
    )
    timestamp: datetime = Field(default_factory=utcnow)
    description: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", "origin_user_id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator("recipient_user_id", "ip_address", "device_id", mode="before")
    @classmethod
    def blank_optional(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        return _blank_to_none(v)

    @field_validator("amount")
    @classmethod
    def finite_amount(cls, v: Decimal) -> Decimal:
        if not math.isfinite(float(v)):
            raise ValueError("amount is out of range")
        return v

    @field_validator("type", "status", mode="before")
    @classmethod
    def lowercase_enum(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v: Any) -> Any:
        if v is None:
            return "USD"
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("timestamp")
    @classmethod
    def make_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("metadata", mode="before")
    @classmethod
    def decode_metadata(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, str):
            if not v.strip():
                return {}
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                raise ValueError("metadata must be a JSON object")
        return v

    def to_entity(self) -> Transaction:
        return Transaction(
            id=self.id,
            origin_user_id=self.origin_user_id,
            recipient_user_id=self.recipient_user_id,
            amount=float(self.amount),
            currency=self.currency,
            type=self.type,
            status=self.status,
            ip_address=self.ip_address,
            device_id=self.device_id,
            timestamp=self.timestamp,
            description=self.description,
            metadata=self.metadata,
        )


def _summarize(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", ""))
    return "; ".join(parts)


def validate_user_record(data: dict[str, Any]) -> UserRecord:
    """Validate a raw user payload or raise RecordValidationError."""
    try:
        return UserRecord.model_validate(data)
    except ValidationError as e:
        raise RecordValidationError(
            f"Invalid user record: {_summarize(e)}",
            errors=e.errors(include_url=False),
        ) from e


def validate_transaction_record(data: dict[str, Any]) -> TransactionRecord:
    """Validate a raw transaction payload or raise RecordValidationError."""
    try:
        return TransactionRecord.model_validate(data)
    except ValidationError as e:
        raise RecordValidationError(
            f"Invalid transaction record: {_summarize(e)}",
            errors=e.errors(include_url=False),
        ) from e
