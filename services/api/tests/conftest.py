"""Shared fixtures for API integration tests.

Uses FastAPI TestClient (in-memory, no network) so tests run
without a live server, broker or upstream provider.
"""

from __future__ import annotations

import os
import sys
from unittest.mock import MagicMock

import pytest

# Ensure project root is on sys.path
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# Force the in-memory store and thread dispatch (no Redis needed for tests)
os.environ.pop("REDIS_URL", None)
os.environ.pop("PLANNER_STORE_PATH", None)

RECORDS = [
    {"id": "a", "name": "Service A", "currentValue": 24000, "potentialValue": 144000,
     "additionalValue": 120000, "growthPercentage": 500},
    {"id": "b", "name": "Service B", "currentValue": 6000, "potentialValue": 18000,
     "additionalValue": 12000, "growthPercentage": 200},
]

PLAN = {
    "executive_summary": "Grow service A, then B.",
    "initiatives": [
        {"id": "init-a", "title": "Scale A", "expected_monthly_revenue_lift": 10000},
        {"id": "init-b", "title": "Scale B", "expected_monthly_revenue_lift": 1000},
    ],
    "financial_breakdown": {"total_monthly_revenue_lift": 11000},
}


@pytest.fixture()
def provider():
    from core.providers.base import LLMProvider

    p = MagicMock(spec=LLMProvider)
    p.provider_name = "fake"
    p.default_model = "fake-model"
    return p


@pytest.fixture()
def orchestrator(provider):
    from core.config import PlannerSettings
    from core.planning.orchestrator import PlanOrchestrator
    from core.storage import MemoryJobStore

    return PlanOrchestrator(
        MemoryJobStore(), provider,
        settings=PlannerSettings(upstream_timeout=5.0), sleep=MagicMock(),
    )


@pytest.fixture()
def client(orchestrator):
    """FastAPI TestClient with the orchestrator dependency overridden."""
    from fastapi.testclient import TestClient

    from services.api.app.deps import get_orchestrator
    from services.api.app.main import app

    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def records():
    return [dict(r) for r in RECORDS]


@pytest.fixture()
def structured_payload(client, records):
    """Payload built through the API: delta 11000/month, investment 55000."""
    resp = client.post(
        "/v1/payloads",
        json={"records": records, "preferences": {"maxInvestment": 55000}},
    )
    assert resp.status_code == 200
    return resp.json()


@pytest.fixture()
def plan_response(provider):
    """Make the fake upstream return a consistent plan."""
    import json

    from core.providers.base import LLMResponse

    provider.complete.return_value = LLMResponse(raw_text=json.dumps(PLAN), provider="fake")
    return PLAN
