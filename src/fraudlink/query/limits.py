"""
Adaptive neighborhood limits.

Busy or high-value subjects get a wider view: more transactions, more
related users, and a second hop through shared attributes.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class QueryLimits:
    """Per-facet caps for a neighborhood query."""

    transactions: int = 10
    related_users: int = 5
    depth: int = 1
    tier: str = "baseline"

    def to_dict(self) -> dict:
        return {
            "transactions": self.transactions,
            "related_users": self.related_users,
            "depth": self.depth,
            "tier": self.tier,
        }


BASELINE = QueryLimits()

# (threshold, transactions, related_users, depth, tier); checked low to high
COUNT_TIERS = [
    (20, 15, 8, 1, "medium"),
    (50, 20, 10, 2, "high"),
]
VALUE_TIERS = [
    (20_000, 18, 8, 1, "medium"),
    (50_000, 25, 12, 2, "high"),
]


def calculate_limits(transaction_count: int, total_value: float) -> QueryLimits:
    """
    Pick limits from the subject's transaction count and total value.

    Count tiers apply first; a matching value tier then overrides the
    transaction and related-user caps. Depth never goes down, so a
    high-count subject keeps depth 2 under a medium value tier.
    """
    limits = BASELINE

    for threshold, transactions, related, depth, tier in COUNT_TIERS:
        if transaction_count > threshold:
            limits = QueryLimits(transactions, related, depth, tier)

    for threshold, transactions, related, depth, tier in VALUE_TIERS:
        if total_value > threshold:
            limits = QueryLimits(
                transactions,
                related,
                max(depth, limits.depth),
                tier if depth >= limits.depth else limits.tier,
            )

    return limits
