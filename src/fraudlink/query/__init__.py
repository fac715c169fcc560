"""
Read-only queries over the fraud graph.

- Bounded neighborhoods with limits that grow with the subject's activity
- Bounded shortest paths between two users
"""

from fraudlink.query.limits import QueryLimits, calculate_limits
from fraudlink.query.engine import (
    Connection,
    GraphQueryEngine,
    NeighborhoodResult,
    PathResult,
)

__all__ = [
    "QueryLimits",
    "calculate_limits",
    "Connection",
    "GraphQueryEngine",
    "NeighborhoodResult",
    "PathResult",
]
