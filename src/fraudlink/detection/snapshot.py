"""
Point-in-time view of the entities detection runs over.

Rules never talk to the store; they read a GraphSnapshot, so every rule
sees the same state and can be re-run or reordered freely.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from fraudlink.exceptions import EntityNotFoundError
from fraudlink.graph.client import GraphClient
from fraudlink.graph.schema import (
    EntityKind,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
)

logger = logging.getLogger(__name__)


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime) and value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def user_from_record(data: dict[str, Any]) -> User:
    """Rebuild a User from a normalized store record."""
    user = User(
        id=data["id"],
        name=data.get("name") or "",
        email=data.get("email"),
        phone=data.get("phone"),
        address=data.get("address"),
        country=data.get("country"),
    )
    for attr in ("created_at", "updated_at"):
        stamp = _as_datetime(data.get(attr))
        if stamp is not None:
            setattr(user, attr, stamp)
    return user


def transaction_from_record(data: dict[str, Any]) -> Transaction:
    """Rebuild a Transaction from a normalized store record."""
    tx = Transaction(
        id=data["id"],
        origin_user_id=data.get("origin_user_id") or "",
        recipient_user_id=data.get("recipient_user_id"),
        amount=float(data.get("amount") or 0.0),
        currency=data.get("currency") or "USD",
        type=TransactionType(data.get("type", TransactionType.TRANSFER.value)),
        status=TransactionStatus(data.get("status", TransactionStatus.COMPLETED.value)),
        ip_address=data.get("ip_address"),
        device_id=data.get("device_id"),
        description=data.get("description") or "",
        metadata=data.get("metadata") or {},
    )
    for attr in ("timestamp", "created_at", "updated_at"):
        stamp = _as_datetime(data.get(attr))
        if stamp is not None:
            setattr(tx, attr, stamp)
    return tx


@dataclass
class GraphSnapshot:
    """Users and transactions keyed by id, iterated in ascending id order."""

    users: dict[str, User] = field(default_factory=dict)
    transactions: dict[str, Transaction] = field(default_factory=dict)

    @classmethod
    def from_entities(
        cls,
        users: list[User],
        transactions: list[Transaction],
    ) -> "GraphSnapshot":
        return cls(
            users={u.id: u for u in sorted(users, key=lambda u: u.id)},
            transactions={t.id: t for t in sorted(transactions, key=lambda t: t.id)},
        )

    def sorted_users(self) -> list[User]:
        return list(self.users.values())

    def sorted_transactions(self) -> list[Transaction]:
        return list(self.transactions.values())

    def transactions_of(self, user_id: str) -> list[Transaction]:
        """Transactions the user originated or received."""
        return [
            t for t in self.transactions.values()
            if t.origin_user_id == user_id or t.recipient_user_id == user_id
        ]


async def load_snapshot(client: GraphClient) -> GraphSnapshot:
    """Read every User and Transaction from the store."""
    users = [user_from_record(r) for r in await client.list_users()]
    transactions = []
    for record in await client.list_transactions():
        try:
            transactions.append(transaction_from_record(record))
        except (KeyError, ValueError) as e:
            logger.warning(f"Skipping unreadable transaction {record.get('id')}: {e}")
    snapshot = GraphSnapshot.from_entities(users, transactions)
    logger.debug(
        f"Loaded snapshot: {len(snapshot.users)} users, "
        f"{len(snapshot.transactions)} transactions"
    )
    return snapshot


@dataclass(frozen=True)
class DetectionScope:
    """
    Restricts a detection run to pairs touching one subject.

    A global scope (no subject) admits everything. A User scope covers
    the user and every transaction it sent or received; a Transaction
    scope covers the transaction and its origin and recipient users.
    """

    subject_id: Optional[str] = None
    kind: Optional[EntityKind] = None
    user_ids: frozenset = frozenset()
    transaction_ids: frozenset = frozenset()

    @property
    def is_global(self) -> bool:
        return self.subject_id is None

    def includes_user(self, user_id: str) -> bool:
        return self.is_global or user_id in self.user_ids

    def includes_transaction(self, transaction_id: str) -> bool:
        return self.is_global or transaction_id in self.transaction_ids

    def includes_user_pair(self, a: str, b: str) -> bool:
        return self.is_global or a in self.user_ids or b in self.user_ids

    def includes_transaction_pair(self, a: str, b: str) -> bool:
        return self.is_global or a in self.transaction_ids or b in self.transaction_ids

    @classmethod
    def resolve(cls, snapshot: GraphSnapshot, subject_id: Optional[str]) -> "DetectionScope":
        """Build a scope for a user or transaction id found in the snapshot."""
        if subject_id is None:
            return cls()

        if subject_id in snapshot.users:
            tx_ids = frozenset(t.id for t in snapshot.transactions_of(subject_id))
            return cls(
                subject_id=subject_id,
                kind=EntityKind.USER,
                user_ids=frozenset({subject_id}),
                transaction_ids=tx_ids,
            )

        tx = snapshot.transactions.get(subject_id)
        if tx is not None:
            users = {tx.origin_user_id}
            if tx.recipient_user_id:
                users.add(tx.recipient_user_id)
            return cls(
                subject_id=subject_id,
                kind=EntityKind.TRANSACTION,
                user_ids=frozenset(users),
                transaction_ids=frozenset({subject_id}),
            )

        raise EntityNotFoundError("User/Transaction", subject_id)
