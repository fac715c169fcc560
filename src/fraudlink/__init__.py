"""
fraudlink - Fraud Relationship Graph Engine

Links users and financial transactions to surface fraud rings:
- Stores users, transactions and the identity attributes they share
- Detects typed relationships with idempotent, rule-based linkage
- Answers neighborhood and shortest-path questions within fixed bounds
- Projects query results into colored, deduplicated node/edge sets
"""

__version__ = "0.1.0"
