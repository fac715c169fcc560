"""
Tests for the graph edges module.
"""

import pytest

from fraudlink.exceptions import RecordValidationError
from fraudlink.graph.edges import (
    AmountPatternEdge,
    AttributeLinkEdge,
    BusinessPartnerEdge,
    MoneyTransferEdge,
    NetworkEdge,
    RelationshipType,
    SharedAttributeEdge,
    TransactionEdge,
    edge_id,
    relationship_from_payload,
)
from fraudlink.graph.schema import EntityKind


class TestRelationshipType:
    """Tests for the closed relationship type set."""

    def test_parse_case_insensitive(self):
        assert RelationshipType.parse("same_ip") == RelationshipType.SAME_IP

    def test_parse_unknown_rejected(self):
        with pytest.raises(RecordValidationError):
            RelationshipType.parse("KNOWS")

    def test_symmetry(self):
        assert RelationshipType.SHARES_EMAIL.is_symmetric
        assert RelationshipType.AMOUNT_PATTERN.is_symmetric
        assert not RelationshipType.SENT_MONEY_TO.is_symmetric
        assert not RelationshipType.MADE_TRANSACTION.is_symmetric

    def test_every_type_has_endpoints(self):
        for rel in RelationshipType:
            source, target = rel.endpoints
            assert isinstance(source, EntityKind)
            assert isinstance(target, EntityKind)

    def test_display_name(self):
        assert RelationshipType.SHARES_EMAIL.display_name == "SHARES EMAIL"


class TestEdgeId:
    """Tests for deterministic edge ids."""

    def test_symmetric_ignores_order(self):
        assert edge_id("u2", "u1", "SHARES_EMAIL") == edge_id("u1", "u2", "SHARES_EMAIL")
        assert edge_id("u2", "u1", "SHARES_EMAIL") == "u1-u2-SHARES_EMAIL"

    def test_directed_keeps_order(self):
        assert edge_id("u2", "u1", "SENT_MONEY_TO") != edge_id("u1", "u2", "SENT_MONEY_TO")

    def test_unknown_type_is_directed(self):
        assert edge_id("b", "a", "CUSTOM") == "b-a-CUSTOM"


class TestSharedAttributeEdge:
    """Tests for SharedAttributeEdge."""

    def test_canonical_orientation(self):
        edge = SharedAttributeEdge(
            from_id="u9",
            to_id="u1",
            type=RelationshipType.SHARES_EMAIL,
            attribute="email",
            value="a@x.com",
        )

        assert edge.from_id == "u1"
        assert edge.to_id == "u9"
        assert edge.key == ("u1", "u9", "SHARES_EMAIL")
        assert edge.properties() == {"attribute": "email", "value": "a@x.com"}

    def test_wrong_type_rejected(self):
        with pytest.raises(RecordValidationError):
            SharedAttributeEdge(from_id="u1", to_id="u2", type=RelationshipType.SAME_IP)

    def test_self_loop_rejected(self):
        with pytest.raises(RecordValidationError):
            SharedAttributeEdge(from_id="u1", to_id="u1", type=RelationshipType.SHARES_PHONE)


class TestOtherEdges:
    """Tests for the remaining edge classes."""

    def test_transaction_edge_direction_kept(self):
        edge = TransactionEdge(from_id="u9", to_id="t1", type="MADE_TRANSACTION")
        assert edge.from_id == "u9"
        assert edge.type == RelationshipType.MADE_TRANSACTION

    def test_money_transfer_not_reordered(self):
        edge = MoneyTransferEdge(
            from_id="u9", to_id="u1", type=RelationshipType.SENT_MONEY_TO, amount=10.0
        )
        assert (edge.from_id, edge.to_id) == ("u9", "u1")

    def test_network_edge_value(self):
        edge = NetworkEdge(from_id="t2", to_id="t1", type=RelationshipType.SAME_IP, value="10.0.0.1")
        assert edge.id == "t1-t2-SAME_IP"
        assert edge.properties() == {"value": "10.0.0.1"}

    def test_amount_pattern_edge(self):
        edge = AmountPatternEdge(
            from_id="t1",
            to_id="t2",
            type=RelationshipType.AMOUNT_PATTERN,
            amount_difference=50.0,
            similarity=0.95,
        )
        assert edge.is_symmetric

    def test_attribute_link_allows_user_equal_to_value(self):
        # User and shared entity live in different kinds
        edge = AttributeLinkEdge(from_id="same", to_id="same", type=RelationshipType.HAS_PHONE)
        assert edge.from_id == "same"

    @pytest.mark.parametrize("count,confidence", [(5, 0.5), (6, 0.5), (7, 0.7), (9, 0.7), (10, 0.9), (25, 0.9)])
    def test_business_partner_confidence(self, count, confidence):
        assert BusinessPartnerEdge.confidence_for(count) == confidence


class TestRelationshipFromPayload:
    """Tests for building edges from external payloads."""

    def test_builds_typed_edge(self):
        edge = relationship_from_payload({
            "type": "shares_phone",
            "from_id": "u2",
            "to_id": "u1",
            "attribute": "phone",
            "value": "555",
        })

        assert isinstance(edge, SharedAttributeEdge)
        assert edge.from_id == "u1"

    def test_unknown_type(self):
        with pytest.raises(RecordValidationError):
            relationship_from_payload({"type": "FRIENDS_WITH", "from_id": "a", "to_id": "b"})

    def test_unknown_field(self):
        with pytest.raises(RecordValidationError):
            relationship_from_payload({
                "type": "SAME_IP",
                "from_id": "t1",
                "to_id": "t2",
                "weight": 3,
            })
