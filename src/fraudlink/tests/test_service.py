"""
Tests for the fraud graph service facade.
"""

import pytest

from fraudlink.exceptions import EntityNotFoundError, RecordValidationError
from fraudlink.graph.edges import RelationshipType
from fraudlink.graph.schema import EntityKind


class TestIngestion:
    """Tests for user and transaction upserts."""

    @pytest.mark.asyncio
    async def test_user_update_keeps_unspecified_fields(self, service, graph_client):
        await service.upsert_user({
            "id": "u1", "name": "Ann", "email": "ann@a.com", "phone": "5551234",
        })
        first = await graph_client.get_user("u1")

        await service.upsert_user({"id": "u1", "name": "Ann Smith", "email": "ann@a.com"})
        stored = await graph_client.get_user("u1")

        assert stored["name"] == "Ann Smith"
        assert stored["phone"] == "5551234"
        assert stored["created_at"] == first["created_at"]
        assert stored["updated_at"] >= first["updated_at"]
        assert len(await graph_client.list_users()) == 1

    @pytest.mark.asyncio
    async def test_transaction_update(self, service, graph_client):
        await service.upsert_user({"id": "u1", "name": "Ann", "email": "ann@a.com"})
        await service.upsert_transaction({
            "id": "t1", "originUserId": "u1", "amount": 10, "type": "purchase",
            "ipAddress": "10.0.0.1",
        })

        await service.upsert_transaction({
            "id": "t1", "originUserId": "u1", "amount": 25, "type": "purchase",
        })
        stored = await graph_client.get_transaction("t1")

        assert stored["amount"] == 25.0
        assert stored["ip_address"] == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_unknown_origin_rejected(self, service, graph_client):
        with pytest.raises(RecordValidationError) as exc_info:
            await service.upsert_transaction({
                "id": "t1", "originUserId": "ghost", "amount": 10, "type": "payment",
            })

        assert exc_info.value.errors[0]["loc"] == ("origin_user_id",)
        assert await graph_client.get_transaction("t1") is None

    @pytest.mark.asyncio
    async def test_invalid_record_not_stored(self, service, graph_client):
        with pytest.raises(RecordValidationError):
            await service.upsert_user({"id": "u1", "name": "", "email": "ann@a.com"})

        assert await graph_client.list_users() == []

    @pytest.mark.asyncio
    async def test_id_shared_across_kinds_rejected(self, service):
        await service.upsert_user({"id": "x1", "name": "Ann", "email": "ann@a.com"})
        await service.upsert_transaction({
            "id": "t1", "originUserId": "x1", "amount": 10, "type": "payment",
        })

        with pytest.raises(RecordValidationError):
            await service.upsert_transaction({
                "id": "x1", "originUserId": "x1", "amount": 10, "type": "payment",
            })
        with pytest.raises(RecordValidationError):
            await service.upsert_user({"id": "t1", "name": "Tee", "email": "t@a.com"})


class TestEntities:
    """Tests for entity lookup and deletion."""

    @pytest.mark.asyncio
    async def test_get_entity(self, service):
        await service.upsert_user({"id": "u1", "name": "Ann", "email": "ann@a.com"})

        entity = await service.get_entity("user", "u1")

        assert entity["name"] == "Ann"
        assert entity["_type"] == EntityKind.USER.value

    @pytest.mark.asyncio
    async def test_get_missing_entity(self, service):
        with pytest.raises(EntityNotFoundError) as exc_info:
            await service.get_entity("User", "nobody")

        assert exc_info.value.entity_id == "nobody"

    @pytest.mark.asyncio
    async def test_unknown_kind(self, service):
        with pytest.raises(RecordValidationError):
            await service.get_entity("Spaceship", "u1")

    @pytest.mark.asyncio
    async def test_delete_cascades_edges(self, service, graph_client, load_records,
                                         sample_users, sample_transactions):
        await load_records(service, sample_users, sample_transactions)
        await service.run_detection()
        assert await graph_client.count_relationships(RelationshipType.SHARES_EMAIL) == 1

        await service.delete_entity(EntityKind.USER, "u2")

        assert await graph_client.get_user("u2") is None
        assert await graph_client.count_relationships(RelationshipType.SHARES_EMAIL) == 0
        with pytest.raises(EntityNotFoundError):
            await service.delete_entity(EntityKind.USER, "u2")


class TestQueries:
    """Tests for projected query payloads."""

    @pytest.mark.asyncio
    async def test_relationships_payload(self, service, load_records,
                                         sample_users, sample_transactions):
        await load_records(service, sample_users, sample_transactions)
        report = await service.run_detection()
        assert not report.failed_rules

        payload = await service.get_relationships("User", "u1")

        assert payload["found"]
        assert payload["subject_id"] == "u1"
        assert payload["limits"]["tier"] == "baseline"
        assert payload["transaction_count"] == 1
        assert payload["total_value"] == pytest.approx(1000)

        subject = next(n for n in payload["nodes"] if n["id"] == "u1")
        assert subject["is_subject"]
        assert subject["label"] == "Alice Moreau"
        for node in payload["nodes"]:
            assert {"id", "label", "type", "color"} <= set(node)
        for edge in payload["edges"]:
            assert {"id", "source", "target", "type", "label", "color"} <= set(edge)
        assert len({e["id"] for e in payload["edges"]}) == len(payload["edges"])

    @pytest.mark.asyncio
    async def test_relationships_not_found(self, service):
        payload = await service.get_relationships(None, "nobody")

        assert payload["found"] is False
        assert payload["nodes"] == []
        assert payload["edges"] == []
        assert "nobody" in payload["message"]

    @pytest.mark.asyncio
    async def test_shortest_path_payload(self, service, load_records,
                                         sample_users, sample_transactions):
        await load_records(service, sample_users, sample_transactions)
        await service.run_detection()

        payload = await service.shortest_path("u1", "u2")

        assert payload["found"]
        assert payload["path_length"] == 1
        assert len(payload["edges"]) == 1
        assert payload["edges"][0]["is_path_edge"]
        assert {n["id"] for n in payload["nodes"]} == {"u1", "u2"}

    @pytest.mark.asyncio
    async def test_shortest_path_missing_user(self, service):
        payload = await service.shortest_path("ghost", "other")

        assert payload["found"] is False
        assert payload["path_length"] is None
        assert payload["nodes"] == []
