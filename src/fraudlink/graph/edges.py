"""
Fraud Graph Edge Types.

Defines the closed set of relationship types in the fraud graph and the
typed edges carrying their metadata. Relationship types arriving from
outside (event payloads, callers) are validated against this set before
anything is written.
"""

from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Optional

from fraudlink.exceptions import RecordValidationError
from fraudlink.graph.schema import EntityKind


class RelationshipType(str, Enum):
    """Every relationship type the engine may write."""

    # User -> Transaction
    MADE_TRANSACTION = "MADE_TRANSACTION"
    RECEIVED_TRANSACTION = "RECEIVED_TRANSACTION"

    # User -> User, money movement
    SENT_MONEY_TO = "SENT_MONEY_TO"
    RECEIVED_MONEY_FROM = "RECEIVED_MONEY_FROM"

    # User <-> User, shared attributes
    SHARES_EMAIL = "SHARES_EMAIL"
    SHARES_PHONE = "SHARES_PHONE"
    SHARES_ADDRESS = "SHARES_ADDRESS"

    # Transaction <-> Transaction
    SAME_IP = "SAME_IP"
    SAME_DEVICE = "SAME_DEVICE"
    TEMPORAL_LINK = "TEMPORAL_LINK"
    AMOUNT_PATTERN = "AMOUNT_PATTERN"

    # User <-> User, confidence scored
    FAMILY_MEMBER = "FAMILY_MEMBER"
    BUSINESS_PARTNER = "BUSINESS_PARTNER"

    # User -> shared entity
    HAS_EMAIL = "HAS_EMAIL"
    HAS_PHONE = "HAS_PHONE"
    HAS_ADDRESS = "HAS_ADDRESS"
    USES_DEVICE = "USES_DEVICE"
    USES_IP = "USES_IP"

    # Transaction -> shared entity
    USED_IP = "USED_IP"
    USED_DEVICE = "USED_DEVICE"

    @classmethod
    def parse(cls, value: "str | RelationshipType") -> "RelationshipType":
        """Validate an external relationship type string."""
        if isinstance(value, RelationshipType):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise RecordValidationError(f"Unknown relationship type: {value!r}")

    @property
    def is_symmetric(self) -> bool:
        return self in SYMMETRIC_TYPES

    @property
    def endpoints(self) -> tuple[EntityKind, EntityKind]:
        """(source kind, target kind) this relationship connects."""
        return RELATIONSHIP_ENDPOINTS[self]

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ")


_USER = EntityKind.USER
_TX = EntityKind.TRANSACTION

RELATIONSHIP_ENDPOINTS: dict[RelationshipType, tuple[EntityKind, EntityKind]] = {
    RelationshipType.MADE_TRANSACTION: (_USER, _TX),
    RelationshipType.RECEIVED_TRANSACTION: (_USER, _TX),
    RelationshipType.SENT_MONEY_TO: (_USER, _USER),
    RelationshipType.RECEIVED_MONEY_FROM: (_USER, _USER),
    RelationshipType.SHARES_EMAIL: (_USER, _USER),
    RelationshipType.SHARES_PHONE: (_USER, _USER),
    RelationshipType.SHARES_ADDRESS: (_USER, _USER),
    RelationshipType.SAME_IP: (_TX, _TX),
    RelationshipType.SAME_DEVICE: (_TX, _TX),
    RelationshipType.TEMPORAL_LINK: (_TX, _TX),
    RelationshipType.AMOUNT_PATTERN: (_TX, _TX),
    RelationshipType.FAMILY_MEMBER: (_USER, _USER),
    RelationshipType.BUSINESS_PARTNER: (_USER, _USER),
    RelationshipType.HAS_EMAIL: (_USER, EntityKind.EMAIL_DOMAIN),
    RelationshipType.HAS_PHONE: (_USER, EntityKind.PHONE_PREFIX),
    RelationshipType.HAS_ADDRESS: (_USER, EntityKind.ADDRESS),
    RelationshipType.USES_DEVICE: (_USER, EntityKind.DEVICE),
    RelationshipType.USES_IP: (_USER, EntityKind.IP_ADDRESS),
    RelationshipType.USED_IP: (_TX, EntityKind.IP_ADDRESS),
    RelationshipType.USED_DEVICE: (_TX, EntityKind.DEVICE),
}

SYMMETRIC_TYPES = frozenset({
    RelationshipType.SHARES_EMAIL,
    RelationshipType.SHARES_PHONE,
    RelationshipType.SHARES_ADDRESS,
    RelationshipType.SAME_IP,
    RelationshipType.SAME_DEVICE,
    RelationshipType.TEMPORAL_LINK,
    RelationshipType.AMOUNT_PATTERN,
    RelationshipType.FAMILY_MEMBER,
    RelationshipType.BUSINESS_PARTNER,
})

MONEY_TRANSFER_TYPES = frozenset({
    RelationshipType.SENT_MONEY_TO,
    RelationshipType.RECEIVED_MONEY_FROM,
})

SHARED_ATTRIBUTE_TYPES = frozenset({
    RelationshipType.SHARES_EMAIL,
    RelationshipType.SHARES_PHONE,
    RelationshipType.SHARES_ADDRESS,
})

NETWORK_TYPES = frozenset({RelationshipType.SAME_IP, RelationshipType.SAME_DEVICE})

ASSOCIATION_TYPES = frozenset({
    RelationshipType.FAMILY_MEMBER,
    RelationshipType.BUSINESS_PARTNER,
})


def edge_id(source_id: str, target_id: str, relationship_type: "str | RelationshipType") -> str:
    """
    Deterministic edge identifier.

    Symmetric relationships get the same id whichever endpoint is seen
    first.
    """
    try:
        rel = RelationshipType(relationship_type)
    except ValueError:
        # Unknown types still get a stable, directed id
        return f"{source_id}-{target_id}-{relationship_type}"
    if rel.is_symmetric and source_id > target_id:
        source_id, target_id = target_id, source_id
    return f"{source_id}-{target_id}-{rel.value}"


@dataclass
class Relationship:
    """
    Base edge.

    Symmetric edges are stored in canonical orientation (lower id first),
    so the same pair always maps to the same edge key.
    """
    ALLOWED_TYPES: ClassVar[frozenset] = frozenset(RelationshipType)

    from_id: str = ""
    to_id: str = ""
    type: RelationshipType = RelationshipType.MADE_TRANSACTION

    def __post_init__(self):
        self.type = RelationshipType.parse(self.type)
        if self.type not in self.ALLOWED_TYPES:
            raise RecordValidationError(
                f"{type(self).__name__} cannot carry {self.type.value}"
            )
        if not self.from_id or not self.to_id:
            raise RecordValidationError("Relationship endpoints must be non-empty")
        if self.from_id == self.to_id and self.type.endpoints[0] == self.type.endpoints[1]:
            raise RecordValidationError(
                f"{self.type.value} needs two distinct entities, got {self.from_id}"
            )
        if self.type.is_symmetric and self.from_id > self.to_id:
            self.from_id, self.to_id = self.to_id, self.from_id

    @property
    def id(self) -> str:
        return edge_id(self.from_id, self.to_id, self.type)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.from_id, self.to_id, self.type.value)

    @property
    def is_symmetric(self) -> bool:
        return self.type.is_symmetric

    def properties(self) -> dict[str, Any]:
        """Edge metadata, without endpoints and type."""
        skip = {"from_id", "to_id", "type"}
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in skip
        }


@dataclass
class TransactionEdge(Relationship):
    """User made or received a Transaction."""
    ALLOWED_TYPES: ClassVar[frozenset] = frozenset({
        RelationshipType.MADE_TRANSACTION,
        RelationshipType.RECEIVED_TRANSACTION,
    })

    timestamp: Optional[datetime] = None


@dataclass
class MoneyTransferEdge(Relationship):
    """
    Money moved between two users.

    Carries the latest completed transfer for the ordered pair plus
    running totals.
    """
    ALLOWED_TYPES: ClassVar[frozenset] = MONEY_TRANSFER_TYPES

    amount: float = 0.0
    currency: str = "USD"
    timestamp: Optional[datetime] = None
    transaction_id: str = ""
    transaction_count: int = 1
    total_amount: float = 0.0


@dataclass
class SharedAttributeEdge(Relationship):
    """Two users share an email, phone or address value."""
    ALLOWED_TYPES: ClassVar[frozenset] = SHARED_ATTRIBUTE_TYPES

    attribute: str = ""  # email, phone, address
    value: str = ""


@dataclass
class NetworkEdge(Relationship):
    """Two transactions came from the same IP address or device."""
    ALLOWED_TYPES: ClassVar[frozenset] = NETWORK_TYPES

    value: str = ""  # the shared IP address or device id


@dataclass
class TemporalLinkEdge(Relationship):
    """Two transactions happened close together in time."""
    ALLOWED_TYPES: ClassVar[frozenset] = frozenset({RelationshipType.TEMPORAL_LINK})

    time_difference_seconds: float = 0.0
    confidence: float = 0.0


@dataclass
class AmountPatternEdge(Relationship):
    """Two large transactions with near-identical amounts."""
    ALLOWED_TYPES: ClassVar[frozenset] = frozenset({RelationshipType.AMOUNT_PATTERN})

    amount_difference: float = 0.0
    similarity: float = 0.0


@dataclass
class FamilyMemberEdge(Relationship):
    """Users at the same address with overlapping names."""
    ALLOWED_TYPES: ClassVar[frozenset] = frozenset({RelationshipType.FAMILY_MEMBER})

    relationship: str = "address_name_match"
    confidence: float = 0.8


@dataclass
class BusinessPartnerEdge(Relationship):
    """Users with a sustained volume of transfers between them."""
    ALLOWED_TYPES: ClassVar[frozenset] = frozenset({RelationshipType.BUSINESS_PARTNER})

    transaction_count: int = 0
    confidence: float = 0.5

    @staticmethod
    def confidence_for(transaction_count: int) -> float:
        """Confidence tier for a transfer count."""
        if transaction_count >= 10:
            return 0.9
        if transaction_count >= 7:
            return 0.7
        return 0.5


@dataclass
class AttributeLinkEdge(Relationship):
    """
    User or Transaction linked to a shared-attribute entity.

    first_used and transaction_count are only set for USES_DEVICE and
    USES_IP, which are derived through the user's transactions.
    """
    ALLOWED_TYPES: ClassVar[frozenset] = frozenset({
        RelationshipType.HAS_EMAIL,
        RelationshipType.HAS_PHONE,
        RelationshipType.HAS_ADDRESS,
        RelationshipType.USES_DEVICE,
        RelationshipType.USES_IP,
        RelationshipType.USED_IP,
        RelationshipType.USED_DEVICE,
    })

    first_used: Optional[datetime] = None
    transaction_count: Optional[int] = None


EDGE_CLASSES: dict[RelationshipType, type] = {}
for _edge_cls in (
    TransactionEdge,
    MoneyTransferEdge,
    SharedAttributeEdge,
    NetworkEdge,
    TemporalLinkEdge,
    AmountPatternEdge,
    FamilyMemberEdge,
    BusinessPartnerEdge,
    AttributeLinkEdge,
):
    for _rel in _edge_cls.ALLOWED_TYPES:
        EDGE_CLASSES[_rel] = _edge_cls


def relationship_from_payload(payload: dict[str, Any]) -> Relationship:
    """
    Build a typed edge from an external payload.

    The type must belong to the closed set; unknown metadata keys are
    rejected rather than written.
    """
    data = dict(payload)
    rel_type = RelationshipType.parse(data.pop("type", ""))
    edge_cls = EDGE_CLASSES[rel_type]
    allowed = {f.name for f in fields(edge_cls)}
    unknown = set(data) - allowed
    if unknown:
        raise RecordValidationError(
            f"Unexpected fields for {rel_type.value}: {', '.join(sorted(unknown))}"
        )
    return edge_cls(type=rel_type, **data)
