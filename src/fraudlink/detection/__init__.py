"""
Relationship detection for the fraud graph.

Provides:
- Rule-based linkage of users and transactions into typed edges
- Per-run pair caps on the dense transaction-to-transaction rules
- Scoped re-detection around a single user or transaction
"""

from fraudlink.detection.snapshot import (
    DetectionScope,
    GraphSnapshot,
    load_snapshot,
    transaction_from_record,
    user_from_record,
)
from fraudlink.detection.rules import (
    AmountPatternRule,
    BusinessPartnerRule,
    DetectionRule,
    FamilyMemberRule,
    MoneyTransferRule,
    NetworkProximityRule,
    PairBudget,
    RuleFailure,
    RuleResult,
    SharedAttributeRule,
    SharedEntitiesRule,
    TemporalLinkRule,
    TransactionOwnershipRule,
    default_rules,
)
from fraudlink.detection.detector import (
    DetectionReport,
    RelationshipDetector,
    RuleReport,
)

__all__ = [
    # Snapshot
    "DetectionScope",
    "GraphSnapshot",
    "load_snapshot",
    "transaction_from_record",
    "user_from_record",
    # Rules
    "AmountPatternRule",
    "BusinessPartnerRule",
    "DetectionRule",
    "FamilyMemberRule",
    "MoneyTransferRule",
    "NetworkProximityRule",
    "PairBudget",
    "RuleFailure",
    "RuleResult",
    "SharedAttributeRule",
    "SharedEntitiesRule",
    "TemporalLinkRule",
    "TransactionOwnershipRule",
    "default_rules",
    # Detector
    "DetectionReport",
    "RelationshipDetector",
    "RuleReport",
]
