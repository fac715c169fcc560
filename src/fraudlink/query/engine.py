"""
Graph query engine.

Two read-only questions over the fraud graph:
- Who and what is connected to X (bounded neighborhood)
- How are A and B connected (bounded shortest path)

All work is bounded: neighborhood facets by adaptive limits, paths by
a fixed hop count.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from fraudlink.config import Settings, settings as default_settings
from fraudlink.exceptions import EntityNotFoundError
from fraudlink.graph.client import GraphClient
from fraudlink.graph.edges import (
    ASSOCIATION_TYPES,
    MONEY_TRANSFER_TYPES,
    NETWORK_TYPES,
    SHARED_ATTRIBUTE_TYPES,
    RelationshipType,
)
from fraudlink.graph.schema import EntityKind
from fraudlink.query.limits import BASELINE, QueryLimits, calculate_limits

logger = logging.getLogger(__name__)

OWNERSHIP_TYPES = (RelationshipType.MADE_TRANSACTION, RelationshipType.RECEIVED_TRANSACTION)


def _kind_of(node: dict) -> Optional[EntityKind]:
    try:
        return EntityKind.parse(node.get("_type", ""))
    except ValueError:
        return None


def _category_of(node: dict) -> str:
    kind = _kind_of(node)
    return kind.category if kind else "other"


def _sort_time(value: Any) -> float:
    return value.timestamp() if isinstance(value, datetime) else float("-inf")


@dataclass
class Connection:
    """One edge from the subject's neighborhood, with the node at its far end."""

    node: dict
    relationship: str
    source_id: str
    target_id: str
    category: str
    properties: dict = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "node": self.node,
            "relationship": self.relationship,
            "source_id": self.source_id,
            "target_id": self.target_id,
            "category": self.category,
            "properties": self.properties,
        }


@dataclass
class NeighborhoodResult:
    """Bounded neighborhood of a subject entity."""

    subject: dict
    kind: EntityKind
    limits: QueryLimits
    connections: list[Connection] = field(default_factory=list)
    transaction_count: int = 0
    total_value: float = 0.0

    @property
    def found(self) -> bool:
        return True

    def by_category(self, category: str) -> list[Connection]:
        return [c for c in self.connections if c.category == category]

    def to_dict(self) -> dict[str, Any]:
        return {
            "found": True,
            "subject": self.subject,
            "kind": self.kind.value,
            "limits": self.limits.to_dict(),
            "transaction_count": self.transaction_count,
            "total_value": self.total_value,
            "connections": [c.to_dict() for c in self.connections],
        }


@dataclass
class PathResult:
    """Shortest path between two users, or why there is none."""

    found: bool
    source_id: str
    target_id: str
    nodes: list[dict] = field(default_factory=list)
    edges: list[dict] = field(default_factory=list)
    message: str = ""

    @property
    def path_length(self) -> int:
        return len(self.edges)

    def to_dict(self) -> dict[str, Any]:
        return {
            "found": self.found,
            "source_id": self.source_id,
            "target_id": self.target_id,
            "path_length": self.path_length if self.found else None,
            "nodes": self.nodes,
            "edges": self.edges,
            "message": self.message,
        }


def _path_node(node: dict) -> dict:
    return {
        "id": node.get("id"),
        "type": _category_of(node),
        "entity_kind": node.get("_type"),
        "name": node.get("name"),
        "properties": node,
    }


def _path_edge(edge: dict) -> dict:
    props = {k: v for k, v in edge.items() if k not in ("_type", "from_id", "to_id")}
    return {
        "start": edge.get("from_id"),
        "end": edge.get("to_id"),
        "type": edge.get("_type"),
        "properties": props,
    }


class GraphQueryEngine:
    """
    Bounded neighborhood and shortest-path queries.

    Usage:
        engine = GraphQueryEngine(client)
        hood = await engine.get_entity_relationships("user-1")
        path = await engine.shortest_path("user-1", "user-9")
    """

    def __init__(self, client: GraphClient, settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or default_settings

    async def get_entity_relationships(
        self,
        entity_id: str,
        kind: Optional[EntityKind] = None,
    ) -> NeighborhoodResult:
        """
        Neighborhood of a User, Transaction or shared-attribute entity.

        Raises:
            EntityNotFoundError: no entity with this id (and kind)
        """
        if kind is None:
            subject = await self.client.find_entity(entity_id)
        else:
            subject = await self.client.get_entity(kind, entity_id)
        if subject is None:
            raise EntityNotFoundError(kind.value if kind else "User/Transaction", entity_id)

        subject_kind = _kind_of(subject) or kind
        if subject_kind == EntityKind.USER:
            return await self._user_neighborhood(subject)
        if subject_kind == EntityKind.TRANSACTION:
            return await self._transaction_neighborhood(subject)
        return await self._entity_neighborhood(subject, subject_kind)

    async def _owned_transactions(self, user_id: str) -> list[dict]:
        return await self.client.get_neighbors(
            user_id,
            edge_types=[RelationshipType.MADE_TRANSACTION],
            direction="out",
            kind=EntityKind.USER,
        )

    async def limits_for_user(self, user_id: str) -> tuple[QueryLimits, int, float]:
        """Limits from a user's transaction count and total value."""
        owned = await self._owned_transactions(user_id)
        total = sum(float(n["m"].get("amount") or 0.0) for n in owned)
        return calculate_limits(len(owned), total), len(owned), total

    async def _user_neighborhood(self, user: dict) -> NeighborhoodResult:
        user_id = user["id"]
        owned = await self._owned_transactions(user_id)
        total = sum(float(n["m"].get("amount") or 0.0) for n in owned)
        limits = calculate_limits(len(owned), total)

        result = NeighborhoodResult(
            subject=user,
            kind=EntityKind.USER,
            limits=limits,
            transaction_count=len(owned),
            total_value=total,
        )

        # Owned transactions, most recent first
        recent = sorted(
            owned,
            key=lambda n: (_sort_time(n["m"].get("timestamp")), n["m"].get("id", "")),
            reverse=True,
        )
        for n in recent[:limits.transactions]:
            result.connections.append(Connection(
                node=n["m"],
                relationship=n["edge_type"],
                source_id=user_id,
                target_id=n["m"]["id"],
                category="transaction",
                properties=self._edge_props(n["edge"]),
            ))

        # Money movement, largest totals first
        transfers = await self.client.get_neighbors(
            user_id, edge_types=MONEY_TRANSFER_TYPES, direction="out", kind=EntityKind.USER
        )
        transfers.sort(
            key=lambda n: (
                -float(n["edge"].get("total_amount") or n["edge"].get("amount") or 0.0),
                n["m"].get("id", ""),
                n["edge_type"],
            )
        )
        for n in transfers[:limits.related_users]:
            result.connections.append(self._connection(n, "money_transfer"))

        # Shared attributes and associations
        shared = await self.client.get_neighbors(
            user_id,
            edge_types=SHARED_ATTRIBUTE_TYPES | ASSOCIATION_TYPES,
            kind=EntityKind.USER,
        )
        shared = self._dedupe(shared)
        shared.sort(key=lambda n: (n["edge_type"], n["m"].get("id", "")))
        shared_included = []
        for n in shared[:limits.related_users]:
            category = (
                "association"
                if RelationshipType(n["edge_type"]) in ASSOCIATION_TYPES
                else "shared_attribute"
            )
            result.connections.append(self._connection(n, category))
            if category == "shared_attribute":
                shared_included.append(n["m"])

        # Network proximity through the user's transactions
        network = await self._network_neighbors(user_id, owned, limits.related_users)
        result.connections.extend(network)

        if limits.depth >= 2:
            seen = {user_id} | {c.target_id for c in network} | {u["id"] for u in shared_included}
            room = limits.related_users - len({c.target_id for c in network})
            if room > 0:
                result.connections.extend(
                    await self._second_hop(shared_included, seen, room)
                )

        logger.debug(
            f"Neighborhood of user {user_id}: {len(result.connections)} connections "
            f"({limits.tier} tier)"
        )
        return result

    async def _network_neighbors(
        self,
        user_id: str,
        owned: list[dict],
        cap: int,
    ) -> list[Connection]:
        """Users whose transactions share an IP or device with this user's."""
        connections: list[Connection] = []
        seen: set[tuple[str, str, str]] = set()
        users: set[str] = set()

        ordered = sorted(owned, key=lambda n: n["m"].get("id", ""))
        for n in ordered:
            tx = n["m"]
            linked = await self.client.get_neighbors(
                tx["id"], edge_types=NETWORK_TYPES, kind=EntityKind.TRANSACTION
            )
            linked.sort(key=lambda x: (x["edge_type"], x["m"].get("id", "")))
            for link in linked:
                owner = await self.client.get_owner_of(link["m"]["id"])
                if owner is None or owner["id"] == user_id:
                    continue
                value = link["edge"].get("value")
                key = (owner["id"], link["edge_type"], str(value))
                if key in seen:
                    continue
                if owner["id"] not in users and len(users) >= cap:
                    continue
                seen.add(key)
                users.add(owner["id"])
                connections.append(Connection(
                    node=owner,
                    relationship=link["edge_type"],
                    source_id=user_id,
                    target_id=owner["id"],
                    category="network",
                    properties={
                        "value": value,
                        "via_transactions": [tx["id"], link["m"]["id"]],
                    },
                ))

        return connections

    async def _second_hop(
        self,
        neighbors: list[dict],
        seen: set[str],
        room: int,
    ) -> list[Connection]:
        """Users sharing an attribute with one of the subject's shared-attribute neighbors."""
        connections: list[Connection] = []
        added: set[str] = set()

        for neighbor in neighbors:
            hops = await self.client.get_neighbors(
                neighbor["id"], edge_types=SHARED_ATTRIBUTE_TYPES, kind=EntityKind.USER
            )
            for n in sorted(self._dedupe(hops), key=lambda x: (x["edge_type"], x["m"].get("id", ""))):
                other = n["m"].get("id")
                if other in seen:
                    continue
                if other not in added and len(added) >= room:
                    continue
                added.add(other)
                props = self._edge_props(n["edge"])
                props["hops"] = 2
                connections.append(Connection(
                    node=n["m"],
                    relationship=n["edge_type"],
                    source_id=n["edge"].get("from_id", neighbor["id"]),
                    target_id=n["edge"].get("to_id", other),
                    category="network",
                    properties=props,
                ))

        return connections

    async def _transaction_neighborhood(self, tx: dict) -> NeighborhoodResult:
        owner = await self.client.get_owner_of(tx["id"])
        if owner is not None:
            limits, count, total = await self.limits_for_user(owner["id"])
        else:
            limits, count, total = BASELINE, 0, 0.0

        result = NeighborhoodResult(
            subject=tx,
            kind=EntityKind.TRANSACTION,
            limits=limits,
            transaction_count=count,
            total_value=total,
        )

        neighbors = self._dedupe(await self.client.get_neighbors(
            tx["id"], kind=EntityKind.TRANSACTION
        ))
        neighbors.sort(key=lambda n: (n["edge_type"], n["m"].get("id", "")))

        related = 0
        for n in neighbors:
            rel = RelationshipType(n["edge_type"])
            if rel in OWNERSHIP_TYPES:
                category = "owner" if rel == RelationshipType.MADE_TRANSACTION else "recipient"
            elif _category_of(n["m"]) == "transaction":
                if related >= limits.transactions:
                    continue
                related += 1
                category = "related_transaction"
            else:
                category = "attribute"
            result.connections.append(self._connection(n, category))

        return result

    async def _entity_neighborhood(self, entity: dict, kind: EntityKind) -> NeighborhoodResult:
        """Users and transactions attached to a shared-attribute entity."""
        result = NeighborhoodResult(subject=entity, kind=kind, limits=BASELINE)
        neighbors = await self.client.get_neighbors(entity["id"], kind=kind)
        neighbors.sort(key=lambda n: (n["edge_type"], n["m"].get("id", "")))

        per_category: dict[str, int] = {}
        for n in neighbors:
            category = _category_of(n["m"])
            cap = BASELINE.transactions if category == "transaction" else BASELINE.related_users
            if per_category.get(category, 0) >= cap:
                continue
            per_category[category] = per_category.get(category, 0) + 1
            result.connections.append(self._connection(n, "attribute"))

        return result

    async def shortest_path(self, source_id: str, target_id: str) -> PathResult:
        """
        Minimum-hop path between two users over every edge type, ignoring direction.

        A missing user or no path within the hop bound gives found=False.
        """
        max_hops = self.settings.path_max_hops

        for user_id in (source_id, target_id):
            if await self.client.get_user(user_id) is None:
                return PathResult(
                    found=False,
                    source_id=source_id,
                    target_id=target_id,
                    message=f"User not found: {user_id}",
                )

        if source_id == target_id:
            user = await self.client.get_user(source_id)
            return PathResult(
                found=True,
                source_id=source_id,
                target_id=target_id,
                nodes=[_path_node(user)],
                message="Source and target are the same user",
            )

        raw = await self.client.shortest_path(source_id, target_id, max_hops=max_hops)
        if raw is None:
            logger.debug(f"No path between {source_id} and {target_id} within {max_hops} hops")
            return PathResult(
                found=False,
                source_id=source_id,
                target_id=target_id,
                message=f"No path found within {max_hops} hops",
            )

        nodes = [_path_node(n) for n in raw["nodes"]]
        edges = [_path_edge(e) for e in raw["edges"]]
        return PathResult(
            found=True,
            source_id=source_id,
            target_id=target_id,
            nodes=nodes,
            edges=edges,
            message=f"Path found with {len(edges)} hops",
        )

    @staticmethod
    def _edge_props(edge: dict) -> dict:
        return {k: v for k, v in edge.items() if k not in ("_type", "from_id", "to_id")}

    def _connection(self, neighbor: dict, category: str) -> Connection:
        edge = neighbor["edge"]
        return Connection(
            node=neighbor["m"],
            relationship=neighbor["edge_type"],
            source_id=edge.get("from_id"),
            target_id=edge.get("to_id"),
            category=category,
            properties=self._edge_props(edge),
        )

    @staticmethod
    def _dedupe(neighbors: list[dict]) -> list[dict]:
        """One entry per (far node, edge type)."""
        unique: dict[tuple[str, str], dict] = {}
        for n in neighbors:
            unique.setdefault((n["m"].get("id", ""), n["edge_type"]), n)
        return list(unique.values())
