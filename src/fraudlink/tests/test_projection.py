"""
Tests for graph projection.
"""

from datetime import datetime, timezone

import pytest

from fraudlink.projection.projector import (
    DEFAULT_EDGE_COLOR,
    PATH_EDGE_COLOR,
    PATH_NODE_COLOR,
    GraphProjector,
    edge_color,
    edge_label,
    format_amount,
    node_label,
    project_neighborhood,
    project_path,
)
from fraudlink.query.engine import Connection, NeighborhoodResult, PathResult
from fraudlink.query.limits import BASELINE
from fraudlink.graph.schema import EntityKind


def _user(user_id, name=None, **extra):
    return {"id": user_id, "name": name, "_type": "User", **extra}


def _tx(tx_id, amount, tx_type="transfer"):
    return {"id": tx_id, "amount": amount, "type": tx_type, "_type": "Transaction"}


def _hood() -> NeighborhoodResult:
    subject = _user("u1", "Alice")
    return NeighborhoodResult(
        subject=subject,
        kind=EntityKind.USER,
        limits=BASELINE,
        connections=[
            Connection(
                node=_tx("t1", 1500),
                relationship="MADE_TRANSACTION",
                source_id="u1",
                target_id="t1",
                category="transaction",
                properties={"timestamp": datetime(2024, 1, 1, tzinfo=timezone.utc)},
            ),
            Connection(
                node=_user("u2", "Bob"),
                relationship="SHARES_EMAIL",
                source_id="u2",
                target_id="u1",
                category="shared_attribute",
                properties={"attribute": "email", "value": "a@x.com"},
            ),
            Connection(
                node=_user("u2"),
                relationship="SHARES_EMAIL",
                source_id="u1",
                target_id="u2",
                category="shared_attribute",
                properties={"attribute": "email", "value": "a@x.com"},
            ),
        ],
    )


class TestLabelsAndColors:
    """Tests for edge/node labels and colors."""

    @pytest.mark.parametrize("rel,color", [
        ("MADE_TRANSACTION", "#0066ff"),
        ("SHARES_EMAIL", "#ff0000"),
        ("SAME_IP", "#ff6600"),
        ("AMOUNT_PATTERN", "#dda0dd"),
        ("BUSINESS_PARTNER", "#32cd32"),
    ])
    def test_edge_colors(self, rel, color):
        assert edge_color(rel) == color

    def test_unknown_edge_color(self):
        assert edge_color("SOMETHING_NEW") == DEFAULT_EDGE_COLOR == "#999999"

    def test_edge_labels(self):
        assert edge_label("SAME_IP", {"value": "10.0.0.1"}) == "Same IP (10.0.0.1)"
        assert edge_label("SAME_DEVICE", {"value": "mobile-1"}) == "Same Device (mobile-1)"
        assert edge_label("SHARES_EMAIL", {"value": "a@x.com"}) == "SHARES EMAIL (a@x.com)"
        assert edge_label("MADE_TRANSACTION") == "Made Transaction"
        assert edge_label("TEMPORAL_LINK", {"confidence": 0.5}) == "TEMPORAL LINK"

    def test_node_labels(self):
        assert node_label(_tx("t1", 1500, "payment")) == "$1500 payment"
        assert node_label(_tx("t2", 12.5)) == "$12.50 transfer"
        assert node_label(_user("u1", "Alice")) == "Alice"
        assert node_label(_user("u9")) == "u9"

    def test_format_amount(self):
        assert format_amount(1000.0) == "1000"
        assert format_amount("99.999") == "100.00"
        assert format_amount(None) == "0"


class TestGraphProjector:
    """Tests for deduplication and path flags."""

    def test_neighborhood_dedup(self):
        projector = GraphProjector()
        projector.add_neighborhood(_hood())

        payload = projector.to_dict()

        assert sorted(n["id"] for n in payload["nodes"]) == ["t1", "u1", "u2"]
        assert len(payload["edges"]) == 2
        share = next(e for e in payload["edges"] if e["type"] == "SHARES_EMAIL")
        assert (share["source"], share["target"]) == ("u1", "u2")
        assert share["color"] == "#ff0000"
        assert share["label"] == "SHARES EMAIL (a@x.com)"

    def test_projecting_twice_is_stable(self):
        projector = GraphProjector()
        projector.add_neighborhood(_hood())
        projector.add_neighborhood(_hood())

        assert projector.node_count == 3
        assert projector.edge_count == 2

    def test_null_never_overwrites(self):
        projector = GraphProjector()
        projector.add_node(_user("u2", "Bob", email="b@x.com"))
        node = projector.add_node(_user("u2", None, email=None))

        assert node["name"] == "Bob"
        assert node["label"] == "Bob"
        assert node["email"] == "b@x.com"

    def test_node_record_shape(self):
        node = GraphProjector().add_node(_tx("t1", 20, "purchase"))

        assert node["type"] == "transaction"
        assert node["transaction_type"] == "purchase"
        assert node["entity_kind"] == "Transaction"
        assert node["label"] == "$20 purchase"
        assert node["color"] == "#0066ff"

    def test_datetimes_serialized(self):
        projector = GraphProjector()
        projector.add_neighborhood(_hood())

        made = next(e for e in projector.to_dict()["edges"] if e["type"] == "MADE_TRANSACTION")

        assert made["timestamp"] == "2024-01-01T00:00:00+00:00"

    def test_path_flags(self):
        path = PathResult(
            found=True,
            source_id="A",
            target_id="B",
            nodes=[
                {"id": "A", "properties": _user("A", "Ann")},
                {"id": "t1", "properties": _tx("t1", 10)},
                {"id": "B", "properties": _user("B", "Ben")},
            ],
            edges=[
                {"start": "A", "end": "t1", "type": "MADE_TRANSACTION", "properties": {}},
                {"start": "B", "end": "t1", "type": "MADE_TRANSACTION", "properties": {}},
            ],
        )

        payload = project_path(path)
        nodes = {n["id"]: n for n in payload["nodes"]}

        assert all(n["is_path_node"] for n in nodes.values())
        assert nodes["A"]["is_start_node"] and not nodes["A"]["is_end_node"]
        assert nodes["B"]["is_end_node"] and not nodes["B"]["is_start_node"]
        assert nodes["t1"]["color"] == PATH_NODE_COLOR
        assert all(e["is_path_edge"] for e in payload["edges"])
        assert all(e["color"] == PATH_EDGE_COLOR for e in payload["edges"])
        assert payload["summary"]["path_edges"] == 2

    def test_path_flags_stick_after_neighborhood(self):
        projector = GraphProjector()
        projector.add_path(PathResult(
            found=True,
            source_id="u1",
            target_id="u2",
            nodes=[
                {"id": "u1", "properties": _user("u1", "Alice")},
                {"id": "u2", "properties": _user("u2", "Bob")},
            ],
            edges=[{"start": "u1", "end": "u2", "type": "SHARES_EMAIL", "properties": {}}],
        ))
        projector.add_neighborhood(_hood())

        nodes = {n["id"]: n for n in projector.to_dict()["nodes"]}
        assert nodes["u1"]["is_path_node"]
        assert nodes["u1"]["is_subject"]
        assert projector.edge_count == 2

    def test_not_found_path_projects_nothing(self):
        payload = project_path(PathResult(found=False, source_id="a", target_id="b"))
        assert payload["nodes"] == [] and payload["edges"] == []

    def test_summary_counts(self):
        projector = GraphProjector()
        projector.add_neighborhood(_hood())

        summary = projector.summary()

        assert summary["node_types"] == {"user": 2, "transaction": 1}
        assert summary["edge_types"] == {"MADE_TRANSACTION": 1, "SHARES_EMAIL": 1}

    def test_project_neighborhood_marks_subject(self):
        payload = project_neighborhood(_hood())

        subject = next(n for n in payload["nodes"] if n["id"] == "u1")
        assert subject["is_subject"]
        assert not subject["is_path_node"]
        assert payload["summary"]["node_count"] == 3
