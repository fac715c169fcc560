"""
Fraud graph service.

Single entry point for callers (API handlers, jobs, the CLI): ingestion,
detection, neighborhood and path queries, all against one explicitly
passed graph client.
"""

import logging
from typing import Any, Optional, Union

from fraudlink.config import Settings, settings as default_settings
from fraudlink.detection.detector import DetectionReport, RelationshipDetector
from fraudlink.detection.snapshot import transaction_from_record, user_from_record
from fraudlink.exceptions import EntityNotFoundError, RecordValidationError
from fraudlink.graph.client import GraphClient
from fraudlink.graph.schema import EntityKind, Transaction, User, utcnow
from fraudlink.projection.projector import GraphProjector
from fraudlink.query.engine import GraphQueryEngine
from fraudlink.schemas.records import (
    TransactionRecord,
    UserRecord,
    validate_transaction_record,
    validate_user_record,
)

logger = logging.getLogger(__name__)


def _parse_kind(kind: Union[str, EntityKind]) -> EntityKind:
    try:
        return EntityKind.parse(kind)
    except ValueError as e:
        raise RecordValidationError(str(e)) from e


class FraudGraphService:
    """
    Facade over the store, detector, query engine and projector.

    Usage:
        async with create_graph_client("networkx") as client:
            service = FraudGraphService(client)
            await service.upsert_user({"id": "u1", "name": "Ann", "email": "a@x.com"})
            report = await service.run_detection()
            graph = await service.get_relationships("User", "u1")
    """

    def __init__(self, client: GraphClient, settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or default_settings
        self.detector = RelationshipDetector(client, self.settings)
        self.engine = GraphQueryEngine(client, self.settings)

    # Ingestion

    async def upsert_user(self, record: Union[dict[str, Any], UserRecord]) -> User:
        """
        Create or update a user.

        Fields absent from the record keep their stored values.

        Raises:
            RecordValidationError: malformed record or id taken by a transaction
        """
        if not isinstance(record, UserRecord):
            record = validate_user_record(record)

        if await self.client.get_transaction(record.id) is not None:
            raise RecordValidationError(f"Id {record.id} already belongs to a transaction")

        existing = await self.client.get_user(record.id)
        if existing is None:
            user = record.to_entity()
        else:
            user = user_from_record(existing)
            for name in record.model_fields_set:
                setattr(user, name, getattr(record, name))
            user.updated_at = utcnow()

        await self.client.upsert_user(user)
        logger.debug(f"{'Updated' if existing else 'Created'} user {user.id}")
        return user

    async def upsert_transaction(
        self,
        record: Union[dict[str, Any], TransactionRecord],
    ) -> Transaction:
        """
        Create or update a transaction.

        Raises:
            RecordValidationError: malformed record, unknown origin user,
                or id taken by a user
        """
        if not isinstance(record, TransactionRecord):
            record = validate_transaction_record(record)

        if await self.client.get_user(record.id) is not None:
            raise RecordValidationError(f"Id {record.id} already belongs to a user")
        if await self.client.get_user(record.origin_user_id) is None:
            raise RecordValidationError(
                f"Origin user {record.origin_user_id} does not exist",
                errors=[{"loc": ("origin_user_id",), "msg": "unknown user"}],
            )

        existing = await self.client.get_transaction(record.id)
        if existing is None:
            tx = record.to_entity()
        else:
            tx = transaction_from_record(existing)
            fresh = record.to_entity()
            for name in record.model_fields_set:
                setattr(tx, name, getattr(fresh, name))
            tx.updated_at = utcnow()

        await self.client.upsert_transaction(tx)
        logger.debug(f"{'Updated' if existing else 'Created'} transaction {tx.id}")
        return tx

    async def get_entity(self, kind: Union[str, EntityKind], entity_id: str) -> dict:
        """Raises EntityNotFoundError when absent."""
        kind = _parse_kind(kind)
        entity = await self.client.get_entity(kind, entity_id)
        if entity is None:
            raise EntityNotFoundError(kind.value, entity_id)
        return entity

    async def delete_entity(self, kind: Union[str, EntityKind], entity_id: str) -> None:
        """Delete an entity with all its incident edges. Raises EntityNotFoundError when absent."""
        kind = _parse_kind(kind)
        if not await self.client.delete_entity(kind, entity_id):
            raise EntityNotFoundError(kind.value, entity_id)

    # Detection

    async def run_detection(self, scope: Optional[str] = None) -> DetectionReport:
        """Run every detection rule, optionally scoped to one user or transaction."""
        return await self.detector.run(scope_id=scope)

    # Queries

    async def get_relationships(
        self,
        kind: Union[str, EntityKind, None],
        entity_id: str,
    ) -> dict[str, Any]:
        """Projected neighborhood of an entity; found=False when it does not exist."""
        parsed = _parse_kind(kind) if kind else None
        try:
            hood = await self.engine.get_entity_relationships(entity_id, parsed)
        except EntityNotFoundError as e:
            return {"found": False, "nodes": [], "edges": [], "message": str(e)}

        projector = GraphProjector()
        projector.add_neighborhood(hood)
        payload = projector.to_dict()
        payload.update(
            found=True,
            subject_id=entity_id,
            limits=hood.limits.to_dict(),
            transaction_count=hood.transaction_count,
            total_value=hood.total_value,
        )
        return payload

    async def shortest_path(self, source_id: str, target_id: str) -> dict[str, Any]:
        """Projected shortest path between two users."""
        path = await self.engine.shortest_path(source_id, target_id)
        projector = GraphProjector()
        projector.add_path(path)
        payload = projector.to_dict()
        return {
            "found": path.found,
            "path_length": path.path_length if path.found else None,
            "nodes": payload["nodes"],
            "edges": payload["edges"],
            "message": path.message,
        }

    async def get_statistics(self) -> dict[str, int]:
        return await self.client.get_statistics()
