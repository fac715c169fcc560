"""
Relationship detection rules.

Each rule derives one family of typed edges from entity state:
- Ownership - who made or received each transaction
- Shared entities - devices, IPs, email domains, phone prefixes, addresses
- Shared attributes - users with the same email, phone or address
- Network proximity - transactions from the same IP or device
- Temporal proximity - transactions close together in time
- Amount patterns - large transactions with near-identical amounts
- Money transfer - completed transfers and payments between users
- Family and business associations

Rules are pure: they read a GraphSnapshot and return the nodes and edges
to upsert. Writing is left to the RelationshipDetector.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from itertools import combinations
from math import comb
from typing import Callable, Iterator, Optional

from fraudlink.config import Settings
from fraudlink.graph.edges import (
    AmountPatternEdge,
    AttributeLinkEdge,
    BusinessPartnerEdge,
    FamilyMemberEdge,
    MoneyTransferEdge,
    NetworkEdge,
    Relationship,
    RelationshipType,
    SharedAttributeEdge,
    TemporalLinkEdge,
    TransactionEdge,
)
from fraudlink.graph.schema import (
    Address,
    Device,
    EmailDomain,
    IPAddress,
    PhonePrefix,
    Transaction,
    User,
)
from fraudlink.detection.snapshot import DetectionScope, GraphSnapshot

logger = logging.getLogger(__name__)


@dataclass
class RuleFailure:
    """A rule, or one pair within a rule, that could not be applied."""

    rule: str
    error: str
    subject: Optional[str] = None  # pair or entity the failure concerns

    def to_dict(self) -> dict:
        return {"rule": self.rule, "subject": self.subject, "error": self.error}


@dataclass
class RuleResult:
    """Output of a single rule run."""

    rule: str
    nodes: list = field(default_factory=list)
    edges: list[Relationship] = field(default_factory=list)
    pairs_examined: int = 0
    pairs_dropped: int = 0
    failures: list[RuleFailure] = field(default_factory=list)

    def skip(self, subject: str, reason: str) -> None:
        """Record and log a pair or entity the rule could not link."""
        logger.warning(f"{self.rule}: skipping {subject}: {reason}")
        self.failures.append(RuleFailure(rule=self.rule, subject=subject, error=reason))


class PairBudget:
    """Per-run cap on materialized pairs; excess pairs are dropped in scan order."""

    def __init__(self, cap: Optional[int] = None):
        self.cap = cap
        self.used = 0
        self.dropped = 0

    @property
    def remaining(self) -> Optional[int]:
        if self.cap is None:
            return None
        return max(self.cap - self.used, 0)

    @property
    def exhausted(self) -> bool:
        return self.cap is not None and self.used >= self.cap

    def take(self) -> bool:
        if self.exhausted:
            self.dropped += 1
            return False
        self.used += 1
        return True


class DetectionRule(ABC):
    """Base class for relationship detection rules."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this rule."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of the rule."""
        pass

    @property
    def relationship_types(self) -> tuple[RelationshipType, ...]:
        """Edge types this rule writes."""
        return ()

    @abstractmethod
    def detect(self, snapshot: GraphSnapshot, scope: DetectionScope) -> RuleResult:
        """
        Derive edges from a snapshot.

        Args:
            snapshot: Users and transactions to scan
            scope: Restricts the pairs considered

        Returns:
            Nodes and edges to upsert, with pair counts
        """
        pass


def _grouped(items, key: Callable) -> dict[str, list]:
    """Group items by a non-null key, preserving scan order."""
    groups: dict[str, list] = {}
    for item in items:
        value = key(item)
        if value:
            groups.setdefault(value, []).append(item)
    return groups


def _eligible_pairs(members: list, in_scope: Callable[[str], bool]) -> int:
    """Pairs in a group that touch at least one in-scope member."""
    scoped = sum(1 for m in members if in_scope(m.id))
    return comb(len(members), 2) - comb(len(members) - scoped, 2)


def _scoped_pairs(members: list, pair_in_scope: Callable[[str, str], bool]) -> Iterator[tuple]:
    for a, b in combinations(members, 2):
        if pair_in_scope(a.id, b.id):
            yield a, b


class TransactionOwnershipRule(DetectionRule):
    """Link each transaction to the user who made it and the user who received it."""

    @property
    def name(self) -> str:
        return "transaction_ownership"

    @property
    def description(self) -> str:
        return "User made or received a transaction"

    @property
    def relationship_types(self) -> tuple[RelationshipType, ...]:
        return (RelationshipType.MADE_TRANSACTION, RelationshipType.RECEIVED_TRANSACTION)

    def detect(self, snapshot: GraphSnapshot, scope: DetectionScope) -> RuleResult:
        result = RuleResult(rule=self.name)

        for tx in snapshot.sorted_transactions():
            if not scope.includes_transaction(tx.id):
                continue
            result.pairs_examined += 1

            if tx.origin_user_id not in snapshot.users:
                result.skip(tx.id, f"origin user {tx.origin_user_id} not found")
                continue
            result.edges.append(TransactionEdge(
                from_id=tx.origin_user_id,
                to_id=tx.id,
                type=RelationshipType.MADE_TRANSACTION,
                timestamp=tx.timestamp,
            ))

            if tx.recipient_user_id and tx.recipient_user_id in snapshot.users:
                result.edges.append(TransactionEdge(
                    from_id=tx.recipient_user_id,
                    to_id=tx.id,
                    type=RelationshipType.RECEIVED_TRANSACTION,
                    timestamp=tx.timestamp,
                ))

        return result


class SharedEntitiesRule(DetectionRule):
    """
    Materialize shared-attribute entities and link users/transactions to them.

    Users get HAS_EMAIL/HAS_PHONE/HAS_ADDRESS from their own attributes and
    USES_DEVICE/USES_IP from the transactions they originated, with the
    number of such transactions and the earliest timestamp.
    """

    @property
    def name(self) -> str:
        return "shared_entities"

    @property
    def description(self) -> str:
        return "Users and transactions linked to devices, IPs, domains, prefixes and addresses"

    @property
    def relationship_types(self) -> tuple[RelationshipType, ...]:
        return (
            RelationshipType.HAS_EMAIL,
            RelationshipType.HAS_PHONE,
            RelationshipType.HAS_ADDRESS,
            RelationshipType.USES_DEVICE,
            RelationshipType.USES_IP,
            RelationshipType.USED_IP,
            RelationshipType.USED_DEVICE,
        )

    def detect(self, snapshot: GraphSnapshot, scope: DetectionScope) -> RuleResult:
        result = RuleResult(rule=self.name)
        nodes: dict[tuple[str, str], object] = {}

        def add_node(node) -> None:
            nodes.setdefault((node.KIND.value, node.id), node)

        for user in snapshot.sorted_users():
            if not scope.includes_user(user.id):
                continue
            result.pairs_examined += 1

            domain = user.email_domain
            if domain:
                add_node(EmailDomain.from_domain(domain))
                result.edges.append(AttributeLinkEdge(
                    from_id=user.id, to_id=domain, type=RelationshipType.HAS_EMAIL
                ))
            prefix = user.phone_prefix
            if prefix:
                add_node(PhonePrefix(id=prefix))
                result.edges.append(AttributeLinkEdge(
                    from_id=user.id, to_id=prefix, type=RelationshipType.HAS_PHONE
                ))
            if user.address_key:
                address = Address.from_raw(user.address)
                add_node(address)
                result.edges.append(AttributeLinkEdge(
                    from_id=user.id, to_id=address.id, type=RelationshipType.HAS_ADDRESS
                ))

        # (user, kind, value) -> [count, first_used]
        usage: dict[tuple[str, RelationshipType, str], list] = {}

        for tx in snapshot.sorted_transactions():
            if tx.ip_address:
                if scope.includes_transaction(tx.id):
                    add_node(IPAddress.from_address(tx.ip_address))
                    result.edges.append(AttributeLinkEdge(
                        from_id=tx.id, to_id=tx.ip_address, type=RelationshipType.USED_IP
                    ))
                self._track(usage, tx, RelationshipType.USES_IP, tx.ip_address)
            if tx.device_id:
                if scope.includes_transaction(tx.id):
                    add_node(Device.from_device_id(tx.device_id))
                    result.edges.append(AttributeLinkEdge(
                        from_id=tx.id, to_id=tx.device_id, type=RelationshipType.USED_DEVICE
                    ))
                self._track(usage, tx, RelationshipType.USES_DEVICE, tx.device_id)

        for (user_id, rel_type, value), (count, first_used) in usage.items():
            if user_id not in snapshot.users or not scope.includes_user(user_id):
                continue
            if rel_type == RelationshipType.USES_IP:
                add_node(IPAddress.from_address(value))
            else:
                add_node(Device.from_device_id(value))
            result.edges.append(AttributeLinkEdge(
                from_id=user_id,
                to_id=value,
                type=rel_type,
                first_used=first_used,
                transaction_count=count,
            ))

        result.nodes = list(nodes.values())
        return result

    @staticmethod
    def _track(usage: dict, tx: Transaction, rel_type: RelationshipType, value: str) -> None:
        key = (tx.origin_user_id, rel_type, value)
        entry = usage.get(key)
        if entry is None:
            usage[key] = [1, tx.timestamp]
        else:
            entry[0] += 1
            if tx.timestamp < entry[1]:
                entry[1] = tx.timestamp


# Keys under which user attributes count as "the same"
USER_ATTRIBUTE_KEYS: dict[str, Callable[[User], Optional[str]]] = {
    "email": lambda u: u.email.strip().lower() if u.email else None,
    "phone": lambda u: u.phone.strip() if u.phone else None,
    "address": lambda u: u.address_key,
}


class SharedAttributeRule(DetectionRule):
    """
    Link every pair of distinct users sharing an email, phone or address.

    Emails compare case-insensitively and addresses by their normalized
    form; the edge carries the first user's raw value.
    """

    ATTRIBUTE_TYPES = {
        "email": RelationshipType.SHARES_EMAIL,
        "phone": RelationshipType.SHARES_PHONE,
        "address": RelationshipType.SHARES_ADDRESS,
    }

    def __init__(self, attribute: str):
        if attribute not in self.ATTRIBUTE_TYPES:
            raise ValueError(f"Unknown shared attribute: {attribute}")
        self.attribute = attribute
        self.rel_type = self.ATTRIBUTE_TYPES[attribute]

    @property
    def name(self) -> str:
        return f"shares_{self.attribute}"

    @property
    def description(self) -> str:
        return f"Users sharing the same {self.attribute}"

    @property
    def relationship_types(self) -> tuple[RelationshipType, ...]:
        return (self.rel_type,)

    def detect(self, snapshot: GraphSnapshot, scope: DetectionScope) -> RuleResult:
        result = RuleResult(rule=self.name)
        groups = _grouped(snapshot.sorted_users(), USER_ATTRIBUTE_KEYS[self.attribute])

        for members in groups.values():
            if len(members) < 2:
                continue
            value = getattr(members[0], self.attribute)
            for a, b in _scoped_pairs(members, scope.includes_user_pair):
                result.pairs_examined += 1
                result.edges.append(SharedAttributeEdge(
                    from_id=a.id,
                    to_id=b.id,
                    type=self.rel_type,
                    attribute=self.attribute,
                    value=value,
                ))

        return result


class NetworkProximityRule(DetectionRule):
    """Link every pair of distinct transactions from the same IP address or device."""

    ATTRIBUTE_TYPES = {
        "ip_address": (RelationshipType.SAME_IP, "same_ip"),
        "device_id": (RelationshipType.SAME_DEVICE, "same_device"),
    }

    def __init__(self, attribute: str, cap: int):
        if attribute not in self.ATTRIBUTE_TYPES:
            raise ValueError(f"Unknown network attribute: {attribute}")
        self.attribute = attribute
        self.rel_type, self._name = self.ATTRIBUTE_TYPES[attribute]
        self.cap = cap

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return f"Transactions sharing the same {self.attribute.replace('_', ' ')}"

    @property
    def relationship_types(self) -> tuple[RelationshipType, ...]:
        return (self.rel_type,)

    def detect(self, snapshot: GraphSnapshot, scope: DetectionScope) -> RuleResult:
        result = RuleResult(rule=self.name)
        budget = PairBudget(self.cap)
        groups = _grouped(
            snapshot.sorted_transactions(),
            lambda t: getattr(t, self.attribute),
        )

        for value, members in groups.items():
            if len(members) < 2:
                continue
            eligible = _eligible_pairs(members, scope.includes_transaction)
            result.pairs_examined += eligible

            if budget.exhausted:
                budget.dropped += eligible
                continue

            taken = 0
            for a, b in _scoped_pairs(members, scope.includes_transaction_pair):
                if not budget.take():
                    # take() counted this pair; the rest of the group is dropped too
                    budget.dropped += eligible - taken - 1
                    break
                taken += 1
                result.edges.append(NetworkEdge(
                    from_id=a.id, to_id=b.id, type=self.rel_type, value=value
                ))

        if budget.dropped:
            logger.debug(f"{self.name}: cap {self.cap} reached, dropped {budget.dropped} pairs")
        result.pairs_dropped = budget.dropped
        return result


class TemporalLinkRule(DetectionRule):
    """Link transactions whose timestamps differ by more than zero and less than the window."""

    def __init__(self, window_seconds: int, cap: int):
        self.window_seconds = window_seconds
        self.cap = cap

    @property
    def name(self) -> str:
        return "temporal_link"

    @property
    def description(self) -> str:
        return f"Transactions within {self.window_seconds}s of each other"

    @property
    def relationship_types(self) -> tuple[RelationshipType, ...]:
        return (RelationshipType.TEMPORAL_LINK,)

    def detect(self, snapshot: GraphSnapshot, scope: DetectionScope) -> RuleResult:
        result = RuleResult(rule=self.name)
        budget = PairBudget(self.cap)
        ordered = sorted(snapshot.sorted_transactions(), key=lambda t: (t.timestamp, t.id))

        for i, first in enumerate(ordered):
            for second in ordered[i + 1:]:
                delta = (second.timestamp - first.timestamp).total_seconds()
                if delta >= self.window_seconds:
                    break
                if delta <= 0:
                    continue
                if not scope.includes_transaction_pair(first.id, second.id):
                    continue
                result.pairs_examined += 1
                if not budget.take():
                    continue
                result.edges.append(TemporalLinkEdge(
                    from_id=first.id,
                    to_id=second.id,
                    type=RelationshipType.TEMPORAL_LINK,
                    time_difference_seconds=delta,
                    confidence=1.0 - delta / self.window_seconds,
                ))

        if budget.dropped:
            logger.debug(f"{self.name}: cap {self.cap} reached, dropped {budget.dropped} pairs")
        result.pairs_dropped = budget.dropped
        return result


class AmountPatternRule(DetectionRule):
    """
    Link large transactions with near-identical amounts.

    Both amounts must meet the minimum. The relative difference is taken
    against the first transaction in scan order (lower id), so the test
    is not symmetric in the amounts; the pair and its edge are.
    """

    def __init__(self, min_amount: float, max_ratio: float, cap: int):
        self.min_amount = min_amount
        self.max_ratio = max_ratio
        self.cap = cap

    @property
    def name(self) -> str:
        return "amount_pattern"

    @property
    def description(self) -> str:
        return f"Transactions of at least {self.min_amount:g} within {self.max_ratio:.0%} of each other"

    @property
    def relationship_types(self) -> tuple[RelationshipType, ...]:
        return (RelationshipType.AMOUNT_PATTERN,)

    def detect(self, snapshot: GraphSnapshot, scope: DetectionScope) -> RuleResult:
        result = RuleResult(rule=self.name)
        budget = PairBudget(self.cap)
        candidates = sorted(
            (
                t for t in snapshot.sorted_transactions()
                if t.amount > 0 and t.amount >= self.min_amount
            ),
            key=lambda t: (t.amount, t.id),
        )
        # Past this multiple of the smaller amount no ordering can qualify
        reach = 1.0 / (1.0 - self.max_ratio)
        matches = []

        for i, low in enumerate(candidates):
            limit = low.amount * reach
            for high in candidates[i + 1:]:
                if high.amount >= limit:
                    break
                if not scope.includes_transaction_pair(low.id, high.id):
                    continue
                first, second = (low, high) if low.id < high.id else (high, low)
                diff = abs(first.amount - second.amount)
                if diff / first.amount >= self.max_ratio:
                    continue
                matches.append((first, second, diff))

        # Caps truncate in id scan order
        matches.sort(key=lambda m: (m[0].id, m[1].id))
        for first, second, diff in matches:
            result.pairs_examined += 1
            if not budget.take():
                continue
            result.edges.append(AmountPatternEdge(
                from_id=first.id,
                to_id=second.id,
                type=RelationshipType.AMOUNT_PATTERN,
                amount_difference=diff,
                similarity=1.0 - diff / first.amount,
            ))

        if budget.dropped:
            logger.debug(f"{self.name}: cap {self.cap} reached, dropped {budget.dropped} pairs")
        result.pairs_dropped = budget.dropped
        return result


def _completed_transfers(snapshot: GraphSnapshot) -> Iterator[Transaction]:
    """Completed transfers/payments between two distinct known users."""
    for tx in snapshot.sorted_transactions():
        if not tx.is_money_transfer:
            continue
        if not tx.recipient_user_id or tx.recipient_user_id == tx.origin_user_id:
            continue
        if tx.origin_user_id in snapshot.users and tx.recipient_user_id in snapshot.users:
            yield tx


class MoneyTransferRule(DetectionRule):
    """
    Directed SENT_MONEY_TO / RECEIVED_MONEY_FROM edges for completed transfers.

    One edge pair per (sender, recipient): the latest transfer supplies
    amount, currency, timestamp and transaction id, and the edge also
    carries the count and total of all transfers between them.
    """

    @property
    def name(self) -> str:
        return "money_transfer"

    @property
    def description(self) -> str:
        return "Completed transfers and payments between users"

    @property
    def relationship_types(self) -> tuple[RelationshipType, ...]:
        return (RelationshipType.SENT_MONEY_TO, RelationshipType.RECEIVED_MONEY_FROM)

    def detect(self, snapshot: GraphSnapshot, scope: DetectionScope) -> RuleResult:
        result = RuleResult(rule=self.name)
        by_pair: dict[tuple[str, str], list[Transaction]] = {}
        for tx in _completed_transfers(snapshot):
            by_pair.setdefault((tx.origin_user_id, tx.recipient_user_id), []).append(tx)

        for (sender, recipient), txs in by_pair.items():
            if not any(scope.includes_transaction(t.id) for t in txs):
                continue
            result.pairs_examined += 1
            latest = max(txs, key=lambda t: (t.timestamp, t.id))
            total = sum(t.amount for t in txs)
            common = dict(
                amount=latest.amount,
                currency=latest.currency,
                timestamp=latest.timestamp,
                transaction_id=latest.id,
                transaction_count=len(txs),
                total_amount=total,
            )
            result.edges.append(MoneyTransferEdge(
                from_id=sender, to_id=recipient, type=RelationshipType.SENT_MONEY_TO, **common
            ))
            result.edges.append(MoneyTransferEdge(
                from_id=recipient, to_id=sender, type=RelationshipType.RECEIVED_MONEY_FROM, **common
            ))

        return result


class FamilyMemberRule(DetectionRule):
    """Users at the same address whose names share a word."""

    def __init__(self, confidence: float = 0.8):
        self.confidence = confidence

    @property
    def name(self) -> str:
        return "family_member"

    @property
    def description(self) -> str:
        return "Same address and overlapping names"

    @property
    def relationship_types(self) -> tuple[RelationshipType, ...]:
        return (RelationshipType.FAMILY_MEMBER,)

    def detect(self, snapshot: GraphSnapshot, scope: DetectionScope) -> RuleResult:
        result = RuleResult(rule=self.name)
        groups = _grouped(snapshot.sorted_users(), lambda u: u.address_key)

        for members in groups.values():
            for a, b in _scoped_pairs(members, scope.includes_user_pair):
                result.pairs_examined += 1
                if not a.name_tokens & b.name_tokens:
                    continue
                result.edges.append(FamilyMemberEdge(
                    from_id=a.id,
                    to_id=b.id,
                    type=RelationshipType.FAMILY_MEMBER,
                    confidence=self.confidence,
                ))

        return result


class BusinessPartnerRule(DetectionRule):
    """Users with a sustained number of completed transfers between them, in either direction."""

    def __init__(self, min_transfers: int = 5):
        self.min_transfers = min_transfers

    @property
    def name(self) -> str:
        return "business_partner"

    @property
    def description(self) -> str:
        return f"At least {self.min_transfers} completed transfers between two users"

    @property
    def relationship_types(self) -> tuple[RelationshipType, ...]:
        return (RelationshipType.BUSINESS_PARTNER,)

    def detect(self, snapshot: GraphSnapshot, scope: DetectionScope) -> RuleResult:
        result = RuleResult(rule=self.name)
        by_pair: dict[tuple[str, str], list[Transaction]] = {}
        for tx in _completed_transfers(snapshot):
            pair = tuple(sorted((tx.origin_user_id, tx.recipient_user_id)))
            by_pair.setdefault(pair, []).append(tx)

        for (a, b), txs in sorted(by_pair.items()):
            if not any(scope.includes_transaction(t.id) for t in txs):
                continue
            result.pairs_examined += 1
            count = len(txs)
            if count < self.min_transfers:
                continue
            result.edges.append(BusinessPartnerEdge(
                from_id=a,
                to_id=b,
                type=RelationshipType.BUSINESS_PARTNER,
                transaction_count=count,
                confidence=BusinessPartnerEdge.confidence_for(count),
            ))

        return result


def default_rules(settings: Settings) -> list[DetectionRule]:
    """The standard rule set, in run order."""
    return [
        TransactionOwnershipRule(),
        SharedEntitiesRule(),
        SharedAttributeRule("email"),
        SharedAttributeRule("phone"),
        SharedAttributeRule("address"),
        NetworkProximityRule("ip_address", cap=settings.same_ip_pair_cap),
        NetworkProximityRule("device_id", cap=settings.same_device_pair_cap),
        TemporalLinkRule(
            window_seconds=settings.temporal_window_seconds,
            cap=settings.temporal_pair_cap,
        ),
        AmountPatternRule(
            min_amount=settings.amount_pattern_min_amount,
            max_ratio=settings.amount_pattern_max_ratio,
            cap=settings.amount_pattern_pair_cap,
        ),
        MoneyTransferRule(),
        FamilyMemberRule(confidence=settings.family_member_confidence),
        BusinessPartnerRule(min_transfers=settings.business_partner_min_transfers),
    ]
