"""
Projection of query results into visualization payloads.

Nodes are deduplicated by id, edges by (source, target, type), and every
edge gets a fixed color and a readable label.
"""

from fraudlink.projection.projector import (
    DEFAULT_EDGE_COLOR,
    EDGE_COLORS,
    NODE_COLORS,
    GraphProjector,
    edge_color,
    edge_label,
    node_label,
    project_neighborhood,
    project_path,
)

__all__ = [
    "DEFAULT_EDGE_COLOR",
    "EDGE_COLORS",
    "NODE_COLORS",
    "GraphProjector",
    "edge_color",
    "edge_label",
    "node_label",
    "project_neighborhood",
    "project_path",
]
