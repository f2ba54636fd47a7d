"""
Shared pytest fixtures for the SwipeSync test suite.

Provides an in-memory Redis (fakeredis), a scripted contract client and a
FastAPI test client wired to both.
"""

import os
import sys

import fakeredis
import pytest
from fastapi.testclient import TestClient

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from api.dependencies import get_contract_client
from api.main import app
from api.ratelimit import limiter
from swipesync.chain.contracts import ContractVersion
from swipesync.chain.routing import RouteTable
from swipesync.config import settings
from swipesync.db.models import PredictionRecord
from swipesync.db.repositories import PredictionRepository
from swipesync.db.session import set_client
from swipesync.db.store import KeyValueStore
from swipesync.services.reconciliation import ReconciliationEngine

from tests.fakes import (
    FAR_FUTURE,
    LEGACY_ADDRESS,
    TEST_ADMIN_KEY,
    TEST_INTERNAL_SECRET,
    USDC_ADDRESS,
    FakeContractClient,
)


@pytest.fixture
def redis_client():
    """Fresh in-memory Redis per test."""
    client = fakeredis.FakeRedis(decode_responses=True)
    yield client
    client.flushall()


@pytest.fixture
def store(redis_client):
    return KeyValueStore(redis_client, scan_batch_size=50, scan_max_keys=5000)


@pytest.fixture
def routes(store):
    return RouteTable(
        store,
        [("pred_v2_", "usdc"), ("", "legacy")],
        {ContractVersion.LEGACY: LEGACY_ADDRESS, ContractVersion.USDC: USDC_ADDRESS},
    )


@pytest.fixture
def chain():
    return FakeContractClient()


@pytest.fixture
def engine(store, chain, routes):
    return ReconciliationEngine(store, chain, routes, participant_cap=100)


@pytest.fixture
def prediction_repo(store):
    return PredictionRepository(store)


@pytest.fixture
def make_prediction(prediction_repo):
    """Create a cached prediction; extra fields are passed through as document keys."""

    def _make(prediction_id: str, **fields) -> PredictionRecord:
        document = {
            "id": prediction_id,
            "question": f"Will {prediction_id} happen?",
            "category": "crypto",
            "deadline": FAR_FUTURE,
            **fields,
        }
        return prediction_repo.create(PredictionRecord.model_validate(document))

    return _make


@pytest.fixture
def secrets(monkeypatch):
    monkeypatch.setattr(settings, "admin_key", TEST_ADMIN_KEY)
    monkeypatch.setattr(settings, "internal_api_secret", TEST_INTERNAL_SECRET)


@pytest.fixture
def admin_headers():
    return {"X-Admin-Key": TEST_ADMIN_KEY}


@pytest.fixture
def test_client(redis_client, chain, secrets):
    """
    API client backed by fakeredis and the scripted contract client.

    Rate limiting is disabled; TestRateLimiting re-enables it explicitly.
    """
    set_client(redis_client)
    app.dependency_overrides[get_contract_client] = lambda: chain
    limiter.enabled = False

    yield TestClient(app)

    app.dependency_overrides.clear()
    limiter.enabled = settings.rate_limit_enabled
    limiter.reset()
    set_client(None)
