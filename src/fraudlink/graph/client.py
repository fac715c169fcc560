"""
Graph Client for the fraudlink relationship engine.

Provides a unified interface for graph storage, supporting an in-memory
NetworkX backend and a Neo4j backend. Every record read from either
backend passes through normalize_record(), so callers only ever see
plain Python values.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional, Union

import networkx as nx
from neo4j import AsyncGraphDatabase
from neo4j.exceptions import ServiceUnavailable, SessionExpired

from fraudlink.exceptions import EntityNotFoundError, StoreUnavailableError
from fraudlink.graph.edges import Relationship, RelationshipType
from fraudlink.graph.schema import (
    Address,
    Device,
    EmailDomain,
    EntityKind,
    IPAddress,
    PhonePrefix,
    Transaction,
    User,
    node_properties,
    utcnow,
)

logger = logging.getLogger(__name__)

NodeType = Union[User, Transaction, Device, IPAddress, EmailDomain, PhonePrefix, Address]
EdgeTypes = Optional[Iterable[Union[str, RelationshipType]]]

JSON_FIELDS = ("metadata",)


def normalize_value(value: Any) -> Any:
    """Convert stored numeric and temporal wrappers to plain Python values."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, bool) or value is None:
        return value
    if hasattr(value, "to_native"):
        # neo4j.time.DateTime / Date / Duration
        native = value.to_native()
        if isinstance(native, datetime) and native.tzinfo is None:
            native = native.replace(tzinfo=timezone.utc)
        return native
    if isinstance(value, dict):
        return {k: normalize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize_value(v) for v in value]
    return value


def normalize_record(record: dict[str, Any]) -> dict[str, Any]:
    """Single read-boundary normalization for node and edge properties."""
    data = {k: normalize_value(v) for k, v in record.items()}
    for key in JSON_FIELDS:
        value = data.get(key)
        if isinstance(value, str):
            try:
                data[key] = json.loads(value) if value else {}
            except json.JSONDecodeError:
                logger.debug(f"Leaving undecodable {key} as text")
    return data


def _edge_type_filter(edge_types: EdgeTypes) -> Optional[set[str]]:
    if edge_types is None:
        return None
    return {RelationshipType.parse(t).value for t in edge_types}


def _is_symmetric(type_name: str) -> bool:
    return RelationshipType(type_name).is_symmetric


class GraphBackend(ABC):
    """Abstract base class for graph storage backends."""

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to the graph store."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection."""
        pass

    @abstractmethod
    async def upsert_node(self, node: NodeType) -> str:
        """Create or update a node and return its ID."""
        pass

    @abstractmethod
    async def upsert_edge(self, edge: Relationship) -> bool:
        """Create or update an edge. Returns True when a new edge was created."""
        pass

    @abstractmethod
    async def get_node(self, node_id: str, kind: EntityKind) -> Optional[dict]:
        """Get a node by ID and kind."""
        pass

    @abstractmethod
    async def find_node(self, node_id: str) -> Optional[dict]:
        """Get a User or Transaction by ID, whichever it is."""
        pass

    @abstractmethod
    async def delete_node(self, node_id: str, kind: EntityKind) -> bool:
        """Delete a node and every edge incident to it."""
        pass

    @abstractmethod
    async def list_nodes(self, kind: EntityKind) -> list[dict]:
        """All nodes of one kind."""
        pass

    @abstractmethod
    async def get_neighbors(
        self,
        node_id: str,
        edge_types: EdgeTypes = None,
        direction: str = "both",
        kind: Optional[EntityKind] = None,
    ) -> list[dict]:
        """
        Get neighboring nodes.

        Symmetric relationships are reported whatever the direction.
        Each entry is {"m": node, "edge_type": str, "edge": dict,
        "direction": "out" | "in"}.
        """
        pass

    @abstractmethod
    async def shortest_path(
        self,
        source_id: str,
        target_id: str,
        max_hops: int,
        kind: EntityKind = EntityKind.USER,
    ) -> Optional[dict]:
        """
        Minimum-hop path over all edge types, ignoring direction.

        Returns {"nodes": [...], "edges": [...]} or None when no path
        exists within max_hops.
        """
        pass

    @abstractmethod
    async def list_edges(
        self,
        edge_type: RelationshipType,
        node_id: Optional[str] = None,
        kind: Optional[EntityKind] = None,
    ) -> list[tuple[str, str]]:
        """
        (from_id, to_id) of every stored edge of one type.

        With node_id and kind, only edges with that node as an endpoint.
        """
        pass

    @abstractmethod
    async def delete_edges(
        self,
        edge_type: RelationshipType,
        pairs: Iterable[tuple[str, str]],
    ) -> int:
        """Delete edges of one type by (from_id, to_id); returns how many were removed."""
        pass

    @abstractmethod
    async def count_edges(self, edge_type: Optional[RelationshipType] = None) -> int:
        pass

    @abstractmethod
    async def get_statistics(self) -> dict[str, int]:
        """Node counts per kind and edge counts per relationship type."""
        pass


class Neo4jBackend(GraphBackend):
    """
    Neo4j graph database backend for production use.

    Features:
    - Connection pooling
    - Automatic constraint/index creation
    - MERGE-based upserts
    - Bounded Cypher shortestPath
    """

    SCHEMA_QUERIES = [
        # Constraints (unique IDs)
        "CREATE CONSTRAINT user_id IF NOT EXISTS FOR (n:User) REQUIRE n.id IS UNIQUE",
        "CREATE CONSTRAINT transaction_id IF NOT EXISTS FOR (n:Transaction) REQUIRE n.id IS UNIQUE",
        "CREATE CONSTRAINT device_id IF NOT EXISTS FOR (n:Device) REQUIRE n.id IS UNIQUE",
        "CREATE CONSTRAINT ip_address_id IF NOT EXISTS FOR (n:IPAddress) REQUIRE n.id IS UNIQUE",
        "CREATE CONSTRAINT email_domain_id IF NOT EXISTS FOR (n:EmailDomain) REQUIRE n.id IS UNIQUE",
        "CREATE CONSTRAINT phone_prefix_id IF NOT EXISTS FOR (n:PhonePrefix) REQUIRE n.id IS UNIQUE",
        "CREATE CONSTRAINT address_id IF NOT EXISTS FOR (n:Address) REQUIRE n.id IS UNIQUE",
        # Indexes for detection scans
        "CREATE INDEX user_email IF NOT EXISTS FOR (n:User) ON (n.email)",
        "CREATE INDEX transaction_amount IF NOT EXISTS FOR (n:Transaction) ON (n.amount)",
        "CREATE INDEX transaction_timestamp IF NOT EXISTS FOR (n:Transaction) ON (n.timestamp)",
        "CREATE INDEX transaction_type IF NOT EXISTS FOR (n:Transaction) ON (n.type)",
    ]

    def __init__(
        self,
        uri: str,
        user: str,
        password: str,
        database: str = "neo4j",
        max_connection_pool_size: int = 50,
        connection_timeout: float = 30.0,
        auto_setup_schema: bool = True,
    ):
        self.uri = uri
        self.user = user
        self.password = password
        self.database = database
        self.max_connection_pool_size = max_connection_pool_size
        self.connection_timeout = connection_timeout
        self.auto_setup_schema = auto_setup_schema
        self._driver = None
        self._schema_initialized = False

    async def connect(self) -> None:
        """Connect to Neo4j with connection pooling."""
        self._driver = AsyncGraphDatabase.driver(
            self.uri,
            auth=(self.user, self.password),
            max_connection_pool_size=self.max_connection_pool_size,
            connection_timeout=self.connection_timeout,
        )
        try:
            await self._driver.verify_connectivity()
        except (ServiceUnavailable, SessionExpired, OSError) as e:
            logger.error(f"Failed to connect to Neo4j at {self.uri}: {e}")
            await self._driver.close()
            self._driver = None
            raise StoreUnavailableError(f"Neo4j unreachable at {self.uri}") from e
        logger.info(f"Connected to Neo4j at {self.uri}")

        if self.auto_setup_schema and not self._schema_initialized:
            await self._setup_schema()

    async def _setup_schema(self) -> None:
        """Create indexes and constraints."""
        logger.info("Setting up Neo4j schema...")
        for query in self.SCHEMA_QUERIES:
            await self.execute_write(query)
        self._schema_initialized = True
        logger.info("Neo4j schema setup complete")

    async def close(self) -> None:
        """Close Neo4j connection."""
        if self._driver:
            await self._driver.close()
            self._driver = None
            logger.info("Neo4j connection closed")

    def _require_driver(self):
        if not self._driver:
            raise StoreUnavailableError("Not connected to Neo4j")
        return self._driver

    async def execute(self, query: str, params: Optional[dict] = None) -> list[dict]:
        """Execute a read query."""
        driver = self._require_driver()
        try:
            async with driver.session(database=self.database) as session:
                result = await session.run(query, params or {})
                return await result.data()
        except (ServiceUnavailable, SessionExpired) as e:
            raise StoreUnavailableError(str(e)) from e

    async def execute_write(self, query: str, params: Optional[dict] = None) -> list[dict]:
        """Execute a write transaction."""
        driver = self._require_driver()

        async def _tx_func(tx):
            result = await tx.run(query, params or {})
            return await result.data()

        try:
            async with driver.session(database=self.database) as session:
                return await session.execute_write(_tx_func)
        except (ServiceUnavailable, SessionExpired) as e:
            raise StoreUnavailableError(str(e)) from e

    @staticmethod
    def _to_neo4j(data: dict[str, Any]) -> dict[str, Any]:
        """Neo4j cannot store maps; metadata goes in as JSON text."""
        props = {}
        for key, value in data.items():
            if key.startswith("_"):
                continue
            if isinstance(value, (dict, list)):
                props[key] = json.dumps(value, default=str)
            elif isinstance(value, Decimal):
                props[key] = float(value)
            else:
                props[key] = value
        return props

    @staticmethod
    def _from_neo4j(node: Any, label: str) -> dict:
        data = normalize_record(dict(node))
        data["_type"] = label
        return data

    async def upsert_node(self, node: NodeType) -> str:
        """Create or update a node; created_at is only set on create."""
        label = node.KIND.value
        props = self._to_neo4j(node_properties(node))
        created_at = props.pop("created_at", utcnow())

        query = f"""
        MERGE (n:{label} {{id: $id}})
        ON CREATE SET n.created_at = $created_at
        SET n += $props
        RETURN n.id AS id
        """
        result = await self.execute_write(
            query, {"id": node.id, "created_at": created_at, "props": props}
        )
        return result[0]["id"] if result else node.id

    async def upsert_edge(self, edge: Relationship) -> bool:
        """MERGE an edge; symmetric types merge without direction."""
        source_kind, target_kind = edge.type.endpoints
        arrow = "-" if edge.is_symmetric else "->"
        now = utcnow()

        query = f"""
        MATCH (a:{source_kind.value} {{id: $from_id}})
        MATCH (b:{target_kind.value} {{id: $to_id}})
        MERGE (a)-[r:{edge.type.value}]{arrow}(b)
        ON CREATE SET r.created_at = $now
        SET r += $props
        RETURN r.created_at = $now AS created
        """
        result = await self.execute_write(query, {
            "from_id": edge.from_id,
            "to_id": edge.to_id,
            "now": now,
            "props": self._to_neo4j(edge.properties()),
        })
        if not result:
            raise EntityNotFoundError(
                f"{source_kind.value}/{target_kind.value}",
                f"{edge.from_id} -> {edge.to_id}",
            )
        return bool(result[0]["created"])

    async def get_node(self, node_id: str, kind: EntityKind) -> Optional[dict]:
        query = f"MATCH (n:{kind.value} {{id: $id}}) RETURN n"
        result = await self.execute(query, {"id": node_id})
        if not result:
            return None
        return self._from_neo4j(result[0]["n"], kind.value)

    async def find_node(self, node_id: str) -> Optional[dict]:
        query = """
        MATCH (n {id: $id})
        WHERE n:User OR n:Transaction
        RETURN n, labels(n) AS labels
        LIMIT 1
        """
        result = await self.execute(query, {"id": node_id})
        if not result:
            return None
        return self._from_neo4j(result[0]["n"], result[0]["labels"][0])

    async def delete_node(self, node_id: str, kind: EntityKind) -> bool:
        query = f"""
        MATCH (n:{kind.value} {{id: $id}})
        DETACH DELETE n
        RETURN count(*) AS deleted
        """
        result = await self.execute_write(query, {"id": node_id})
        return bool(result and result[0]["deleted"])

    async def list_nodes(self, kind: EntityKind) -> list[dict]:
        query = f"MATCH (n:{kind.value}) RETURN n ORDER BY n.id"
        results = await self.execute(query)
        return [self._from_neo4j(row["n"], kind.value) for row in results]

    async def get_neighbors(
        self,
        node_id: str,
        edge_types: EdgeTypes = None,
        direction: str = "both",
        kind: Optional[EntityKind] = None,
    ) -> list[dict]:
        """Get neighboring nodes."""
        wanted = _edge_type_filter(edge_types)
        edge_filter = ":" + "|".join(sorted(wanted)) if wanted else ""
        label = f":{kind.value}" if kind else ""

        query = f"""
        MATCH (n{label} {{id: $id}})-[r{edge_filter}]-(m)
        RETURN m, labels(m) AS labels, type(r) AS edge_type,
               properties(r) AS edge, startNode(r) = n AS outgoing
        """
        results = await self.execute(query, {"id": node_id})

        neighbors = []
        for row in results:
            edge_type = row["edge_type"]
            outgoing = bool(row["outgoing"])
            if not _is_symmetric(edge_type):
                if direction == "out" and not outgoing:
                    continue
                if direction == "in" and outgoing:
                    continue

            node = self._from_neo4j(row["m"], row["labels"][0] if row["labels"] else "Unknown")
            edge = normalize_record(row["edge"] or {})
            edge["_type"] = edge_type
            edge["from_id"] = node_id if outgoing else node.get("id")
            edge["to_id"] = node.get("id") if outgoing else node_id

            neighbors.append({
                "m": node,
                "edge_type": edge_type,
                "edge": edge,
                "direction": "out" if outgoing else "in",
            })

        return neighbors

    async def shortest_path(
        self,
        source_id: str,
        target_id: str,
        max_hops: int,
        kind: EntityKind = EntityKind.USER,
    ) -> Optional[dict]:
        """Cypher shortestPath with a literal hop bound."""
        hops = int(max_hops)
        query = f"""
        MATCH (start:{kind.value} {{id: $source}}), (end:{kind.value} {{id: $target}})
        MATCH path = shortestPath((start)-[*..{hops}]-(end))
        RETURN [n IN nodes(path) | {{props: properties(n), labels: labels(n)}}] AS nodes,
               [r IN relationships(path) | {{
                   start: startNode(r).id, end: endNode(r).id,
                   type: type(r), props: properties(r)
               }}] AS edges
        """
        results = await self.execute(query, {"source": source_id, "target": target_id})
        if not results:
            return None

        row = results[0]
        nodes = []
        for item in row["nodes"]:
            labels = item["labels"] or ["Unknown"]
            nodes.append(self._from_neo4j(item["props"], labels[0]))
        edges = []
        for item in row["edges"]:
            edge = normalize_record(item["props"] or {})
            edge.update({
                "_type": item["type"],
                "from_id": item["start"],
                "to_id": item["end"],
            })
            edges.append(edge)
        return {"nodes": nodes, "edges": edges}

    async def list_edges(
        self,
        edge_type: RelationshipType,
        node_id: Optional[str] = None,
        kind: Optional[EntityKind] = None,
    ) -> list[tuple[str, str]]:
        source_kind, target_kind = edge_type.endpoints
        conditions = []
        if node_id is not None and kind is not None:
            if kind == source_kind:
                conditions.append("a.id = $id")
            if kind == target_kind:
                conditions.append("b.id = $id")
            if not conditions:
                return []
        where = f"WHERE {' OR '.join(conditions)}" if conditions else ""

        query = f"""
        MATCH (a:{source_kind.value})-[r:{edge_type.value}]->(b:{target_kind.value})
        {where}
        RETURN a.id AS from_id, b.id AS to_id
        """
        results = await self.execute(query, {"id": node_id})
        return [(row["from_id"], row["to_id"]) for row in results]

    async def delete_edges(
        self,
        edge_type: RelationshipType,
        pairs: Iterable[tuple[str, str]],
    ) -> int:
        pairs = [[from_id, to_id] for from_id, to_id in pairs]
        if not pairs:
            return 0
        source_kind, target_kind = edge_type.endpoints
        arrow = "-" if edge_type.is_symmetric else "->"

        query = f"""
        UNWIND $pairs AS pair
        MATCH (a:{source_kind.value} {{id: pair[0]}})-[r:{edge_type.value}]{arrow}(b:{target_kind.value} {{id: pair[1]}})
        DELETE r
        RETURN count(r) AS deleted
        """
        result = await self.execute_write(query, {"pairs": pairs})
        return int(result[0]["deleted"]) if result else 0

    async def count_edges(self, edge_type: Optional[RelationshipType] = None) -> int:
        rel = f":{RelationshipType.parse(edge_type).value}" if edge_type else ""
        result = await self.execute(f"MATCH ()-[r{rel}]->() RETURN count(r) AS count")
        return int(result[0]["count"]) if result else 0

    async def get_statistics(self) -> dict[str, int]:
        """Get overall graph statistics."""
        query = """
        MATCH (n)
        WITH labels(n) as types, count(*) as count
        RETURN types[0] as type, count
        UNION ALL
        MATCH ()-[r]->()
        WITH type(r) as rel_type, count(*) as count
        RETURN rel_type as type, count
        """
        results = await self.execute(query)
        return {r["type"]: int(r["count"]) for r in results}


class NetworkXBackend(GraphBackend):
    """
    In-memory NetworkX backend for development/testing.

    Users and Transactions are keyed by their id. Shared-attribute
    entities are keyed by "<Kind>:<id>" so a device id can never collide
    with a user id.
    """

    def __init__(self):
        self.graph = nx.MultiDiGraph()
        self._nodes: dict[str, dict] = {}

    @staticmethod
    def _key(node_id: str, kind: Optional[EntityKind] = None) -> str:
        if kind is None or not kind.is_derived:
            return node_id
        return f"{kind.value}:{node_id}"

    async def connect(self) -> None:
        """Initialize the graph."""
        logger.info("Initialized NetworkX in-memory graph")

    async def close(self) -> None:
        """Clear the graph."""
        self.graph.clear()
        self._nodes.clear()

    async def upsert_node(self, node: NodeType) -> str:
        data = node_properties(node)
        key = self._key(node.id, node.KIND)

        existing = self._nodes.get(key)
        if existing is not None:
            merged = dict(existing)
            merged.update(data)
            merged["created_at"] = existing.get("created_at", data.get("created_at"))
            data = merged

        self.graph.add_node(key, _type=data["_type"])
        self._nodes[key] = data
        return node.id

    async def upsert_edge(self, edge: Relationship) -> bool:
        source_kind, target_kind = edge.type.endpoints
        a = self._key(edge.from_id, source_kind)
        b = self._key(edge.to_id, target_kind)

        for key, kind in ((a, source_kind), (b, target_kind)):
            node = self._nodes.get(key)
            if node is None or node.get("_type") != kind.value:
                raise EntityNotFoundError(kind.value, node.get("id") if node else key)

        type_name = edge.type.value
        created = not self.graph.has_edge(a, b, key=type_name)
        data = {
            "_type": type_name,
            "from_id": edge.from_id,
            "to_id": edge.to_id,
            **edge.properties(),
        }
        if created:
            data["created_at"] = utcnow()
        self.graph.add_edge(a, b, key=type_name, **data)
        return created

    async def get_node(self, node_id: str, kind: EntityKind) -> Optional[dict]:
        node = self._nodes.get(self._key(node_id, kind))
        if node is not None and node.get("_type") == kind.value:
            return normalize_record(node)
        return None

    async def find_node(self, node_id: str) -> Optional[dict]:
        node = self._nodes.get(node_id)
        return normalize_record(node) if node is not None else None

    async def delete_node(self, node_id: str, kind: EntityKind) -> bool:
        key = self._key(node_id, kind)
        node = self._nodes.get(key)
        if node is None or node.get("_type") != kind.value:
            return False
        # remove_node drops every incident edge
        self.graph.remove_node(key)
        del self._nodes[key]
        return True

    async def list_nodes(self, kind: EntityKind) -> list[dict]:
        return [
            normalize_record(data)
            for data in self._nodes.values()
            if data.get("_type") == kind.value
        ]

    async def get_neighbors(
        self,
        node_id: str,
        edge_types: EdgeTypes = None,
        direction: str = "both",
        kind: Optional[EntityKind] = None,
    ) -> list[dict]:
        """Get neighboring nodes."""
        key = self._key(node_id, kind)
        if key not in self.graph:
            return []
        wanted = _edge_type_filter(edge_types)
        neighbors = []

        for _, target, data in self.graph.out_edges(key, data=True):
            edge_type = data.get("_type")
            if wanted is not None and edge_type not in wanted:
                continue
            if direction in ("out", "both") or _is_symmetric(edge_type):
                neighbors.append({
                    "m": normalize_record(self._nodes.get(target, {})),
                    "edge_type": edge_type,
                    "edge": normalize_record(data),
                    "direction": "out",
                })

        for source, _, data in self.graph.in_edges(key, data=True):
            edge_type = data.get("_type")
            if wanted is not None and edge_type not in wanted:
                continue
            if direction in ("in", "both") or _is_symmetric(edge_type):
                neighbors.append({
                    "m": normalize_record(self._nodes.get(source, {})),
                    "edge_type": edge_type,
                    "edge": normalize_record(data),
                    "direction": "in",
                })

        return neighbors

    async def shortest_path(
        self,
        source_id: str,
        target_id: str,
        max_hops: int,
        kind: EntityKind = EntityKind.USER,
    ) -> Optional[dict]:
        """Bounded breadth-first search over the undirected view."""
        source = self._key(source_id, kind)
        target = self._key(target_id, kind)
        if source not in self.graph or target not in self.graph:
            return None

        undirected = self.graph.to_undirected(as_view=True)
        # cutoff stops the search at max_hops instead of exploring the whole graph
        paths = nx.single_source_shortest_path(undirected, source, cutoff=max_hops)
        path = paths.get(target)
        if path is None:
            return None

        edges = []
        for u, v in zip(path, path[1:]):
            edges.append(self._pick_edge(u, v))
        return {
            "nodes": [normalize_record(self._nodes[n]) for n in path],
            "edges": edges,
        }

    def _pick_edge(self, u: str, v: str) -> dict:
        """Deterministically choose one stored edge between two adjacent nodes."""
        forward = self.graph.get_edge_data(u, v) or {}
        if forward:
            return normalize_record(forward[sorted(forward)[0]])
        backward = self.graph.get_edge_data(v, u) or {}
        return normalize_record(backward[sorted(backward)[0]])

    async def list_edges(
        self,
        edge_type: RelationshipType,
        node_id: Optional[str] = None,
        kind: Optional[EntityKind] = None,
    ) -> list[tuple[str, str]]:
        type_name = edge_type.value
        if node_id is None or kind is None:
            candidates = self.graph.edges(keys=True, data=True)
        else:
            key = self._key(node_id, kind)
            if key not in self.graph:
                return []
            candidates = list(self.graph.out_edges(key, keys=True, data=True))
            candidates += list(self.graph.in_edges(key, keys=True, data=True))

        pairs = []
        for _, _, edge_key, data in candidates:
            if edge_key == type_name:
                pairs.append((data["from_id"], data["to_id"]))
        return pairs

    async def delete_edges(
        self,
        edge_type: RelationshipType,
        pairs: Iterable[tuple[str, str]],
    ) -> int:
        source_kind, target_kind = edge_type.endpoints
        type_name = edge_type.value
        deleted = 0
        for from_id, to_id in pairs:
            a = self._key(from_id, source_kind)
            b = self._key(to_id, target_kind)
            if self.graph.has_edge(a, b, key=type_name):
                self.graph.remove_edge(a, b, key=type_name)
                deleted += 1
            elif edge_type.is_symmetric and self.graph.has_edge(b, a, key=type_name):
                self.graph.remove_edge(b, a, key=type_name)
                deleted += 1
        return deleted

    async def count_edges(self, edge_type: Optional[RelationshipType] = None) -> int:
        if edge_type is None:
            return self.graph.number_of_edges()
        type_name = RelationshipType.parse(edge_type).value
        return sum(1 for _, _, key in self.graph.edges(keys=True) if key == type_name)

    async def get_statistics(self) -> dict[str, int]:
        stats: dict[str, int] = {}
        for data in self._nodes.values():
            stats[data["_type"]] = stats.get(data["_type"], 0) + 1
        for _, _, key in self.graph.edges(keys=True):
            stats[key] = stats.get(key, 0) + 1
        return stats


class GraphClient:
    """
    High-level graph client for the fraudlink engine.

    Provides a unified interface regardless of backend. A client is the
    store handle passed explicitly to the detector, query engine and
    service; there is no module-level connection.
    """

    def __init__(self, backend: Optional[GraphBackend] = None):
        """
        Initialize the graph client.

        Args:
            backend: Graph backend to use. Defaults to NetworkX for development.
        """
        self.backend = backend or NetworkXBackend()
        self._connected = False

    async def connect(self) -> None:
        """Connect to the graph store."""
        await self.backend.connect()
        self._connected = True

    async def close(self) -> None:
        """Close the connection."""
        await self.backend.close()
        self._connected = False

    async def __aenter__(self) -> "GraphClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # Node operations

    async def upsert_user(self, user: User) -> str:
        """Add or update a user."""
        return await self.backend.upsert_node(user)

    async def upsert_transaction(self, transaction: Transaction) -> str:
        """Add or update a transaction."""
        return await self.backend.upsert_node(transaction)

    async def upsert_entity(self, node: NodeType) -> str:
        """Add or update any node, including shared-attribute entities."""
        return await self.backend.upsert_node(node)

    async def get_user(self, user_id: str) -> Optional[dict]:
        return await self.backend.get_node(user_id, EntityKind.USER)

    async def get_transaction(self, transaction_id: str) -> Optional[dict]:
        return await self.backend.get_node(transaction_id, EntityKind.TRANSACTION)

    async def get_entity(self, kind: EntityKind, entity_id: str) -> Optional[dict]:
        return await self.backend.get_node(entity_id, kind)

    async def find_entity(self, entity_id: str) -> Optional[dict]:
        """Get a User or Transaction by ID without knowing its kind."""
        return await self.backend.find_node(entity_id)

    async def delete_entity(self, kind: EntityKind, entity_id: str) -> bool:
        """Delete an entity and all of its incident edges."""
        deleted = await self.backend.delete_node(entity_id, kind)
        if deleted:
            logger.info(f"Deleted {kind.value} {entity_id} and its relationships")
        return deleted

    async def list_users(self) -> list[dict]:
        return await self.backend.list_nodes(EntityKind.USER)

    async def list_transactions(self) -> list[dict]:
        return await self.backend.list_nodes(EntityKind.TRANSACTION)

    async def list_entities(self, kind: EntityKind) -> list[dict]:
        return await self.backend.list_nodes(kind)

    # Edge operations

    async def upsert_relationship(self, edge: Relationship) -> bool:
        """Add or update a typed edge. True when the edge is new."""
        return await self.backend.upsert_edge(edge)

    async def list_relationships(
        self,
        edge_type: RelationshipType,
        entity_id: Optional[str] = None,
        kind: Optional[EntityKind] = None,
    ) -> list[tuple[str, str]]:
        """(from_id, to_id) of stored edges of one type, optionally touching one entity."""
        return await self.backend.list_edges(edge_type, node_id=entity_id, kind=kind)

    async def delete_relationships(
        self,
        edge_type: RelationshipType,
        pairs: Iterable[tuple[str, str]],
    ) -> int:
        """Delete edges of one type by endpoint pair."""
        return await self.backend.delete_edges(edge_type, pairs)

    async def count_relationships(self, edge_type: Optional[RelationshipType] = None) -> int:
        return await self.backend.count_edges(edge_type)

    # Traversal

    async def get_neighbors(
        self,
        entity_id: str,
        edge_types: EdgeTypes = None,
        direction: str = "both",
        kind: Optional[EntityKind] = None,
    ) -> list[dict]:
        """Get direct neighbors of an entity."""
        return await self.backend.get_neighbors(
            entity_id, edge_types=edge_types, direction=direction, kind=kind
        )

    async def get_transactions_of(self, user_id: str) -> list[dict]:
        """Transactions the user originated."""
        neighbors = await self.backend.get_neighbors(
            user_id,
            edge_types=[RelationshipType.MADE_TRANSACTION],
            direction="out",
            kind=EntityKind.USER,
        )
        return [n["m"] for n in neighbors]

    async def get_owner_of(self, transaction_id: str) -> Optional[dict]:
        """The user who made a transaction, if linked."""
        neighbors = await self.backend.get_neighbors(
            transaction_id,
            edge_types=[RelationshipType.MADE_TRANSACTION],
            direction="in",
            kind=EntityKind.TRANSACTION,
        )
        return neighbors[0]["m"] if neighbors else None

    async def shortest_path(
        self,
        source_id: str,
        target_id: str,
        max_hops: int = 6,
    ) -> Optional[dict]:
        """Bounded shortest path between two users."""
        return await self.backend.shortest_path(source_id, target_id, max_hops)

    # Statistics

    async def get_statistics(self) -> dict[str, int]:
        """Get graph statistics."""
        return await self.backend.get_statistics()


# Factory function

def create_graph_client(
    backend_type: str = "networkx",
    **kwargs
) -> GraphClient:
    """
    Create a graph client with the specified backend.

    Args:
        backend_type: One of "networkx", "neo4j"
        **kwargs: Backend-specific configuration

    Returns:
        Configured GraphClient instance

    Examples:
        # NetworkX (default, for development/testing)
        client = create_graph_client("networkx")

        # Neo4j
        client = create_graph_client("neo4j",
            uri="bolt://localhost:7687",
            user="neo4j",
            password="password"
        )
    """
    if backend_type == "networkx":
        backend = NetworkXBackend()
    elif backend_type == "neo4j":
        backend = Neo4jBackend(
            uri=kwargs.get("uri", "bolt://localhost:7687"),
            user=kwargs.get("user", "neo4j"),
            password=kwargs.get("password", ""),
            database=kwargs.get("database", "neo4j"),
            max_connection_pool_size=kwargs.get("max_connection_pool_size", 50),
        )
    else:
        raise ValueError(f"Unknown backend type: {backend_type}. Supported: networkx, neo4j")

    return GraphClient(backend)


def create_graph_client_from_settings(settings) -> GraphClient:
    """Build a client from a Settings instance."""
    return create_graph_client(
        settings.graph_backend,
        uri=settings.neo4j_uri,
        user=settings.neo4j_user,
        password=settings.neo4j_password,
        database=settings.neo4j_database,
        max_connection_pool_size=settings.neo4j_max_connection_pool_size,
    )
