"""
Tests for adaptive neighborhood limits.
"""

import pytest

from fraudlink.query.limits import QueryLimits, calculate_limits


class TestCalculateLimits:
    """Tests for tier selection."""

    def test_baseline(self):
        assert calculate_limits(3, 500.0) == QueryLimits(10, 5, 1, "baseline")

    def test_boundaries_are_exclusive(self):
        assert calculate_limits(20, 20_000).tier == "baseline"
        assert calculate_limits(50, 50_000).tier == "medium"

    @pytest.mark.parametrize("count,total,expected", [
        (21, 0, QueryLimits(15, 8, 1, "medium")),
        (51, 0, QueryLimits(20, 10, 2, "high")),
        (0, 20_001, QueryLimits(18, 8, 1, "medium")),
        (0, 50_001, QueryLimits(25, 12, 2, "high")),
    ])
    def test_single_trigger(self, count, total, expected):
        assert calculate_limits(count, total) == expected

    def test_high_count_and_value(self):
        limits = calculate_limits(60, 80_000)

        assert limits.tier == "high"
        assert limits.transactions == 25
        assert limits.related_users == 12
        assert limits.depth == 2

    def test_value_overrides_count_caps(self):
        limits = calculate_limits(30, 25_000)
        assert (limits.transactions, limits.related_users) == (18, 8)

    def test_high_count_keeps_depth(self):
        limits = calculate_limits(60, 25_000)

        assert limits.depth == 2
        assert limits.tier == "high"
        assert limits.transactions == 18

    def test_to_dict(self):
        assert calculate_limits(0, 0).to_dict() == {
            "transactions": 10,
            "related_users": 5,
            "depth": 1,
            "tier": "baseline",
        }
