"""
Pytest configuration and shared fixtures for fraudlink tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from fraudlink.config import Settings
from fraudlink.graph.client import GraphClient, NetworkXBackend
from fraudlink.service import FraudGraphService


BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def graph_client() -> GraphClient:
    """Fresh in-memory graph client."""
    return GraphClient(NetworkXBackend())


@pytest.fixture
def service(graph_client, test_settings) -> FraudGraphService:
    """Service over a fresh in-memory graph."""
    return FraudGraphService(graph_client, test_settings)


@pytest.fixture
def base_time() -> datetime:
    return BASE_TIME


@pytest.fixture
def sample_users() -> list[dict]:
    """Five users: two share an email, two share an address and a surname."""
    return [
        {"id": "u1", "name": "Alice Moreau", "email": "a@x.com", "phone": "5551234",
         "address": "12 Rue Haute, Lyon"},
        {"id": "u2", "name": "Bob Stone", "email": "a@x.com", "phone": "5559876"},
        {"id": "u3", "name": "Carl Jung", "email": "b@y.com", "phone": "4441111"},
        {"id": "u4", "name": "Denise Moreau", "email": "d@z.com",
         "address": "12  rue haute, Lyon"},
        {"id": "u5", "name": "Eve Quiet", "email": "e@q.com"},
    ]


@pytest.fixture
def sample_transactions() -> list[dict]:
    """Transactions with a shared IP, a shared device and close amounts."""
    return [
        {"id": "t1", "originUserId": "u1", "destinationUserId": "u3", "amount": 1000,
         "type": "TRANSFER", "status": "COMPLETED", "ipAddress": "10.0.0.1",
         "deviceId": "mobile-aa", "timestamp": BASE_TIME.isoformat()},
        {"id": "t2", "originUserId": "u2", "amount": 1050, "type": "purchase",
         "ipAddress": "10.0.0.1", "deviceId": "desktop-bb",
         "timestamp": (BASE_TIME + timedelta(minutes=30)).isoformat()},
        {"id": "t3", "originUserId": "u3", "amount": 500, "type": "payment",
         "recipientUserId": "u1", "deviceId": "desktop-bb",
         "timestamp": (BASE_TIME + timedelta(hours=5)).isoformat()},
    ]


@pytest.fixture
def load_records():
    """Async helper that ingests users then transactions through a service."""

    async def _load(service: FraudGraphService, users=(), transactions=()):
        for record in users:
            await service.upsert_user(record)
        for record in transactions:
            await service.upsert_transaction(record)

    return _load
