"""
Graph projection for visualization.

Turns neighborhood and path query results into one deduplicated set of
nodes and colored, labeled edges. Rendering and layout happen
elsewhere; this only decides what is drawn and how it is tagged.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from fraudlink.graph.edges import RelationshipType, edge_id
from fraudlink.graph.schema import EntityKind
from fraudlink.query.engine import NeighborhoodResult, PathResult

logger = logging.getLogger(__name__)


# Relationship colors (fixed palette shared with the investigation UI)
EDGE_COLORS: dict[str, str] = {
    "MADE_TRANSACTION": "#0066ff",
    "RECEIVED_TRANSACTION": "#00cc66",
    "SENT_MONEY_TO": "#00ff00",
    "RECEIVED_MONEY_FROM": "#ff4500",
    "SHARES_EMAIL": "#ff0000",
    "SHARES_PHONE": "#ffa500",
    "SHARES_ADDRESS": "#800080",
    "SAME_IP": "#ff6600",
    "SAME_DEVICE": "#cc0066",
    "FAMILY_MEMBER": "#9932cc",
    "BUSINESS_PARTNER": "#32cd32",
    "TEMPORAL_LINK": "#ff69b4",
    "AMOUNT_PATTERN": "#dda0dd",
}
DEFAULT_EDGE_COLOR = "#999999"

NODE_COLORS: dict[str, str] = {
    "user": "#27ae60",
    "transaction": "#0066ff",
}
DEFAULT_NODE_COLOR = "#999999"

PATH_NODE_COLOR = "#f39c12"
PATH_EDGE_COLOR = "#e74c3c"

# Node flags; once set they stay set
NODE_FLAGS = ("is_subject", "is_path_node", "is_start_node", "is_end_node")


def edge_color(relationship_type: str) -> str:
    """Display color for a relationship type; unknown types get the default."""
    return EDGE_COLORS.get(str(relationship_type), DEFAULT_EDGE_COLOR)


def node_color(category: str) -> str:
    return NODE_COLORS.get(category, DEFAULT_NODE_COLOR)


def format_amount(amount: Any) -> str:
    """Whole amounts without decimals, otherwise two places."""
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return "0"
    if value.is_integer():
        return str(int(value))
    return f"{value:.2f}"


def edge_label(relationship_type: str, properties: Optional[dict] = None) -> str:
    """
    Human-readable edge label.

    Network edges name the shared IP or device; attribute-share edges
    append the shared value in parentheses.
    """
    properties = properties or {}
    rel = str(relationship_type)
    value = properties.get("value")

    if rel == RelationshipType.SAME_IP.value:
        return f"Same IP ({value})" if value else "Same IP"
    if rel == RelationshipType.SAME_DEVICE.value:
        return f"Same Device ({value})" if value else "Same Device"

    base = rel.replace("_", " ")
    if rel == RelationshipType.MADE_TRANSACTION.value:
        base = "Made Transaction"
    if value and rel in (
        RelationshipType.SHARES_EMAIL.value,
        RelationshipType.SHARES_PHONE.value,
        RelationshipType.SHARES_ADDRESS.value,
    ):
        return f"{base} ({value})"
    return base


def node_label(node: dict) -> str:
    """Transactions read "$<amount> <type>"; users show their name."""
    kind = node.get("_type")
    if kind == EntityKind.TRANSACTION.value:
        return f"${format_amount(node.get('amount'))} {node.get('type') or ''}".strip()
    if kind == EntityKind.USER.value:
        return node.get("name") or node.get("id", "")
    if kind == EntityKind.ADDRESS.value:
        return node.get("full_address") or node.get("id", "")
    return str(node.get("id", ""))


def _category(node: dict) -> str:
    try:
        return EntityKind.parse(node.get("_type", "")).category
    except ValueError:
        return "other"


def json_ready(value: Any) -> Any:
    """Make a value safe for JSON encoding."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {str(k): json_ready(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [json_ready(v) for v in value]
    return value


class GraphProjector:
    """
    Accumulates nodes and edges into one deduplicated visualization payload.

    Usage:
        projector = GraphProjector()
        projector.add_neighborhood(hood)
        projector.add_path(path)
        payload = projector.to_dict()
    """

    def __init__(self):
        self._raw: dict[str, dict] = {}
        self._nodes: dict[str, dict] = {}
        self._edges: dict[str, dict] = {}

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def add_node(self, node: dict, **flags: bool) -> dict:
        """
        Add a store node, merging into any node already present with the same id.

        Later references fill in missing attributes but never overwrite a
        value with null.
        """
        node_id = node.get("id")
        if node_id is None:
            raise ValueError("Cannot project a node without an id")

        raw = self._raw.setdefault(node_id, {})
        for key, value in node.items():
            if value is not None and value != "":
                raw[key] = value

        category = _category(raw)
        projected = self._nodes.setdefault(node_id, {flag: False for flag in NODE_FLAGS})
        for key, value in raw.items():
            if key.startswith("_"):
                continue
            # "type" is the node category here; keep the transaction's own type apart
            projected["transaction_type" if key == "type" else key] = json_ready(value)
        projected.update(
            id=node_id,
            label=node_label(raw),
            type=category,
            entity_kind=raw.get("_type"),
            color=node_color(category),
        )

        for flag, value in flags.items():
            if value:
                projected[flag] = True
        if projected.get("is_path_node"):
            projected["color"] = PATH_NODE_COLOR
        return projected

    def add_edge(
        self,
        source: str,
        target: str,
        relationship_type: str,
        properties: Optional[dict] = None,
        **flags: bool,
    ) -> dict:
        """Add an edge; the same (source, target, type) collapses to one edge."""
        rel = str(relationship_type)
        key = edge_id(source, target, rel)
        properties = {k: json_ready(v) for k, v in (properties or {}).items() if v is not None}

        existing = self._edges.get(key)
        if existing is None:
            try:
                symmetric = RelationshipType(rel).is_symmetric
            except ValueError:
                symmetric = False
            if symmetric and source > target:
                source, target = target, source
            existing = {
                "id": key,
                "source": source,
                "target": target,
                "type": rel,
                "label": edge_label(rel, properties),
                "color": edge_color(rel),
                "is_path_edge": False,
                **properties,
            }
            self._edges[key] = existing
        else:
            for k, v in properties.items():
                existing.setdefault(k, v)
            existing["label"] = edge_label(rel, existing)

        for flag, value in flags.items():
            if value:
                existing[flag] = True
        if existing.get("is_path_edge"):
            existing["color"] = PATH_EDGE_COLOR
        return existing

    def add_neighborhood(self, hood: NeighborhoodResult) -> None:
        """Project a neighborhood: the subject, every connected node and every edge."""
        self.add_node(hood.subject, is_subject=True)
        for connection in hood.connections:
            self.add_node(connection.node)
            if connection.source_id is None or connection.target_id is None:
                logger.debug(f"Skipping edge without endpoints: {connection.relationship}")
                continue
            self.add_edge(
                connection.source_id,
                connection.target_id,
                connection.relationship,
                connection.properties,
            )

    def add_path(self, path: PathResult) -> None:
        """Project a shortest path, flagging its nodes, endpoints and edges."""
        if not path.found:
            return
        last = len(path.nodes) - 1
        for i, node in enumerate(path.nodes):
            self.add_node(
                node["properties"],
                is_path_node=True,
                is_start_node=(i == 0),
                is_end_node=(i == last),
            )
        for edge in path.edges:
            self.add_edge(
                edge["start"],
                edge["end"],
                edge["type"],
                edge.get("properties"),
                is_path_edge=True,
            )

    def summary(self) -> dict[str, Any]:
        """Node and edge counts by type."""
        node_types: dict[str, int] = {}
        for node in self._nodes.values():
            node_types[node["type"]] = node_types.get(node["type"], 0) + 1
        edge_types: dict[str, int] = {}
        for edge in self._edges.values():
            edge_types[edge["type"]] = edge_types.get(edge["type"], 0) + 1
        return {
            "node_count": len(self._nodes),
            "edge_count": len(self._edges),
            "node_types": node_types,
            "edge_types": edge_types,
            "path_nodes": sum(1 for n in self._nodes.values() if n.get("is_path_node")),
            "path_edges": sum(1 for e in self._edges.values() if e.get("is_path_edge")),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": list(self._nodes.values()),
            "edges": list(self._edges.values()),
            "summary": self.summary(),
        }


def project_neighborhood(hood: NeighborhoodResult) -> dict[str, Any]:
    """Visualization payload for one neighborhood."""
    projector = GraphProjector()
    projector.add_neighborhood(hood)
    return projector.to_dict()


def project_path(path: PathResult) -> dict[str, Any]:
    """Visualization payload for one shortest path."""
    projector = GraphProjector()
    projector.add_path(path)
    return projector.to_dict()
