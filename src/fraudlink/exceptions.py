"""
Exceptions raised by the fraudlink graph engine.
"""

from typing import Any, Optional


class FraudLinkError(Exception):
    """Base class for all fraudlink errors."""

    pass


class EntityNotFoundError(FraudLinkError):
    """Raised when a subject id is absent from the store."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found: {entity_id}")


class RecordValidationError(FraudLinkError):
    """Raised when an ingestion record is malformed. Nothing has been written."""

    def __init__(self, message: str, errors: Optional[list[dict[str, Any]]] = None):
        self.errors = errors or []
        super().__init__(message)


class StoreUnavailableError(FraudLinkError):
    """
    Raised when the underlying graph store cannot be reached.

    Callers may retry; this is never reported as a missing entity.
    """

    pass
