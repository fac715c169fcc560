"""
fraudlink Relationship Graph Module.

Entity and relationship schema of the fraud graph plus the store that
holds it.

Tech Stack:
- Storage: Neo4j (production) or NetworkX in memory (development/tests)
- Processing: NetworkX for bounded traversal
"""

from fraudlink.graph.schema import (
    EntityKind,
    TransactionType,
    TransactionStatus,
    User,
    Transaction,
    Device,
    IPAddress,
    EmailDomain,
    PhonePrefix,
    Address,
)
from fraudlink.graph.edges import (
    RelationshipType,
    Relationship,
    TransactionEdge,
    MoneyTransferEdge,
    SharedAttributeEdge,
    NetworkEdge,
    TemporalLinkEdge,
    AmountPatternEdge,
    FamilyMemberEdge,
    BusinessPartnerEdge,
    AttributeLinkEdge,
    edge_id,
    relationship_from_payload,
)
from fraudlink.graph.client import (
    GraphClient,
    GraphBackend,
    Neo4jBackend,
    NetworkXBackend,
    create_graph_client,
    create_graph_client_from_settings,
)

__all__ = [
    # Nodes
    "EntityKind",
    "TransactionType",
    "TransactionStatus",
    "User",
    "Transaction",
    "Device",
    "IPAddress",
    "EmailDomain",
    "PhonePrefix",
    "Address",
    # Edges
    "RelationshipType",
    "Relationship",
    "TransactionEdge",
    "MoneyTransferEdge",
    "SharedAttributeEdge",
    "NetworkEdge",
    "TemporalLinkEdge",
    "AmountPatternEdge",
    "FamilyMemberEdge",
    "BusinessPartnerEdge",
    "AttributeLinkEdge",
    "edge_id",
    "relationship_from_payload",
    # Client and Backends
    "GraphClient",
    "GraphBackend",
    "Neo4jBackend",
    "NetworkXBackend",
    "create_graph_client",
    "create_graph_client_from_settings",
]
