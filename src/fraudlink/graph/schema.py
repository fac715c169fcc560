"""
Fraud Graph Node Types.

Defines the entity types of the fraud relationship graph: the primary
User and Transaction records plus the shared-attribute entities that are
derived from them during detection.
"""

import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Optional


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class EntityKind(str, Enum):
    """Node labels in the fraud graph."""

    USER = "User"
    TRANSACTION = "Transaction"
    DEVICE = "Device"
    IP_ADDRESS = "IPAddress"
    EMAIL_DOMAIN = "EmailDomain"
    PHONE_PREFIX = "PhonePrefix"
    ADDRESS = "Address"

    @classmethod
    def parse(cls, value: "str | EntityKind") -> "EntityKind":
        """Resolve a kind from its label or name, case-insensitively."""
        if isinstance(value, EntityKind):
            return value
        wanted = str(value).strip().lower().replace("_", "")
        for kind in cls:
            if wanted in (kind.value.lower(), kind.name.lower().replace("_", "")):
                return kind
        raise ValueError(f"Unknown entity kind: {value}")

    @property
    def category(self) -> str:
        """Coarse kind used in query results: user, transaction or other."""
        if self is EntityKind.USER:
            return "user"
        if self is EntityKind.TRANSACTION:
            return "transaction"
        return "other"

    @property
    def is_derived(self) -> bool:
        """Shared-attribute entities are materialized by detection."""
        return self not in (EntityKind.USER, EntityKind.TRANSACTION)


class TransactionType(str, Enum):
    WITHDRAWAL = "withdrawal"
    PURCHASE = "purchase"
    DEPOSIT = "deposit"
    PAYMENT = "payment"
    TRANSFER = "transfer"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


MONEY_MOVEMENT_TYPES = frozenset({TransactionType.TRANSFER, TransactionType.PAYMENT})

COMMON_EMAIL_DOMAINS = frozenset({"gmail.com", "yahoo.com", "hotmail.com", "outlook.com"})


# Normalization of raw attributes into shared-entity keys

def email_domain(email: Optional[str]) -> Optional[str]:
    """Domain part of an email address, lower-cased."""
    if not email or "@" not in email:
        return None
    domain = email.rsplit("@", 1)[1].strip().lower()
    return domain or None


def phone_prefix(phone: Optional[str]) -> Optional[str]:
    """First three characters of a phone number."""
    if not phone:
        return None
    phone = phone.strip()
    return phone[:3] if phone else None


def normalize_address(address: Optional[str]) -> Optional[str]:
    """Collapse whitespace, lower-case, and join words with underscores."""
    if not address:
        return None
    collapsed = re.sub(r"\s+", " ", address).strip().lower()
    return collapsed.replace(" ", "_") if collapsed else None


def classify_device(device_id: str) -> str:
    """Device class from the device identifier."""
    lowered = device_id.lower()
    for device_type in ("mobile", "desktop", "tablet"):
        if device_type in lowered:
            return device_type
    return "unknown"


def is_private_ip(ip_address: str) -> bool:
    return ip_address.startswith("192.168") or ip_address.startswith("10.")


def ip_country(ip_address: str) -> str:
    if ip_address.startswith("192.168"):
        return "Local"
    if ip_address.startswith("10."):
        return "Private"
    return "Unknown"


def node_properties(node: Any) -> dict[str, Any]:
    """Flatten a node dataclass into store properties."""
    data = asdict(node)
    for key, value in list(data.items()):
        if isinstance(value, Enum):
            data[key] = value.value
    data["_type"] = node.KIND.value
    return data


@dataclass
class User:
    """
    User node in the fraud graph.

    Email, phone and address may be missing or shared with other users.
    Shared values are the primary fraud-ring signal.
    """
    KIND: ClassVar[EntityKind] = EntityKind.USER

    id: str = ""
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = None

    # Metadata
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def email_domain(self) -> Optional[str]:
        return email_domain(self.email)

    @property
    def phone_prefix(self) -> Optional[str]:
        return phone_prefix(self.phone)

    @property
    def address_key(self) -> Optional[str]:
        return normalize_address(self.address)

    @property
    def name_tokens(self) -> set[str]:
        """Case-folded words of the user's name."""
        return set(self.name.casefold().split()) if self.name else set()


@dataclass
class Transaction:
    """
    Transaction node in the fraud graph.

    The origin user must exist; the recipient is optional and may point
    at a user that is not (yet) in the store.
    """
    KIND: ClassVar[EntityKind] = EntityKind.TRANSACTION

    id: str = ""
    origin_user_id: str = ""
    recipient_user_id: Optional[str] = None
    amount: float = 0.0
    currency: str = "USD"
    type: TransactionType = TransactionType.TRANSFER
    status: TransactionStatus = TransactionStatus.COMPLETED
    ip_address: Optional[str] = None
    device_id: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)
    description: str = ""
    metadata: dict = field(default_factory=dict)

    # Metadata
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_money_transfer(self) -> bool:
        """Completed transfer or payment, i.e. money moved between users."""
        return (
            self.type in MONEY_MOVEMENT_TYPES
            and self.status == TransactionStatus.COMPLETED
        )


@dataclass
class Device:
    """Device shared across transactions."""
    KIND: ClassVar[EntityKind] = EntityKind.DEVICE

    id: str = ""
    device_type: str = "unknown"  # mobile, desktop, tablet, unknown
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_device_id(cls, device_id: str) -> "Device":
        return cls(id=device_id, device_type=classify_device(device_id))


@dataclass
class IPAddress:
    """IP address observed on transactions."""
    KIND: ClassVar[EntityKind] = EntityKind.IP_ADDRESS

    id: str = ""
    is_private: bool = False
    country: str = "Unknown"
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_address(cls, ip_address: str) -> "IPAddress":
        return cls(
            id=ip_address,
            is_private=is_private_ip(ip_address),
            country=ip_country(ip_address),
        )


@dataclass
class EmailDomain:
    """Email domain used for user clustering."""
    KIND: ClassVar[EntityKind] = EntityKind.EMAIL_DOMAIN

    id: str = ""
    is_common: bool = False
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_domain(cls, domain: str) -> "EmailDomain":
        return cls(id=domain, is_common=domain in COMMON_EMAIL_DOMAINS)


@dataclass
class PhonePrefix:
    """Phone number prefix used for user clustering."""
    KIND: ClassVar[EntityKind] = EntityKind.PHONE_PREFIX

    id: str = ""
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Address:
    """
    Physical address node.

    Keyed by the normalized address string; the raw form is kept for
    display.
    """
    KIND: ClassVar[EntityKind] = EntityKind.ADDRESS

    id: str = ""
    full_address: str = ""
    city: str = ""
    is_residential: bool = True
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_raw(cls, address: str) -> "Address":
        return cls(
            id=normalize_address(address) or "",
            full_address=address.strip(),
            city=address.split(",")[0].strip(),
        )

    @property
    def display_address(self) -> str:
        return self.full_address or self.id.replace("_", " ")
