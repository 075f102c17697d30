"""Shared fixtures for the planner test suite.

Provides calculator rows, a generated payload with a pinned timestamp,
a matching well-formed plan, and an orchestrator wired to an in-memory
store and a mocked upstream provider.
"""

import copy
from unittest.mock import MagicMock

import pytest

from core.config import PlannerSettings
from core.planning.orchestrator import PlanOrchestrator
from core.planning.payload import generate_payload
from core.providers.base import LLMProvider, LLMResponse
from core.storage import MemoryJobStore
from shared.schemas.opportunities import ServiceOpportunity, UserPreferences

FIXED_TS = "2026-01-01T00:00:00+00:00"


# ---------------------------------------------------------------------------
# Calculator rows
# ---------------------------------------------------------------------------

@pytest.fixture
def make_record():
    """Factory: ``make_record("a", 120000)`` -> ServiceOpportunity."""

    def _make(record_id, additional, name=None, current=0.0, growth=0.0):
        return ServiceOpportunity(
            id=record_id,
            name=name or record_id.upper(),
            current_value=current,
            potential_value=current + additional,
            additional_value=additional,
            growth_percentage=growth,
        )

    return _make


@pytest.fixture
def two_records(make_record):
    return [make_record("a", 120000, current=24000), make_record("b", 12000, current=6000)]


@pytest.fixture
def ten_records(make_record):
    """Ten rows with distinct monthly deltas 10000, 9000, ... 1000 (shuffled)."""
    annual = [5000, 10000, 1000, 7000, 3000, 9000, 2000, 8000, 4000, 6000]
    return [make_record(f"svc-{i}", a * 12) for i, a in enumerate(annual)]


# ---------------------------------------------------------------------------
# Payload / plan
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_payload(two_records):
    """Revenue-only payload: delta 11000/month, investment 55000."""
    return generate_payload(
        two_records, UserPreferences(max_investment=55000), generated_at=FIXED_TS,
    )


_PLAN = {
    "executive_summary": "Grow service A first, then service B.",
    "initiatives": [
        {
            "id": "init-a",
            "title": "Scale service A",
            "priority": 1,
            "owner_role": "Operations Manager",
            "start_week": 1,
            "duration_weeks": 6,
            "tasks": [{"task_id": "t1", "title": "Add capacity"}],
            "expected_monthly_revenue_lift": 10000,
            "ROI": "Revenue only",
            "confidence": 80,
            "risk_score": 2,
            "mitigations": ["Pilot first", "Weekly review"],
        },
        {
            "id": "init-b",
            "title": "Scale service B",
            "priority": 2,
            "owner_role": "Service Lead",
            "start_week": 4,
            "duration_weeks": 4,
            "tasks": [{"task_id": "t2", "title": "Train staff"}],
            "expected_monthly_revenue_lift": 1000,
            "ROI": "Revenue only",
            "confidence": 70,
            "risk_score": 2,
            "mitigations": ["Stagger rollout", "Track uptake"],
        },
    ],
    "financial_breakdown": {
        "total_monthly_revenue_lift": 11000,
        "arithmetic": "10000 + 1000 = 11000",
    },
    "notes": "",
}


@pytest.fixture
def well_formed_plan():
    """Plan consistent with ``sample_payload`` in revenue-only mode."""
    return copy.deepcopy(_PLAN)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

@pytest.fixture
def text_response():
    """Factory: wrap raw text in an LLMResponse."""

    def _make(text):
        return LLMResponse(
            raw_text=text,
            model="fake-model",
            provider="fake",
            input_tokens=100,
            output_tokens=200,
            latency_ms=5,
        )

    return _make


@pytest.fixture
def provider():
    p = MagicMock(spec=LLMProvider)
    p.provider_name = "fake"
    p.default_model = "fake-model"
    return p


@pytest.fixture
def store():
    return MemoryJobStore()


@pytest.fixture
def settings():
    return PlannerSettings(upstream_timeout=5.0, max_retries=3, retry_base_delay=1.0)


@pytest.fixture
def sleep():
    return MagicMock()


@pytest.fixture
def orchestrator(store, provider, settings, sleep):
    return PlanOrchestrator(store, provider, settings=settings, sleep=sleep)
