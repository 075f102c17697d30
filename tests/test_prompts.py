"""Tests for core.planning.prompts."""

import json

from core.planning.payload import generate_payload
from core.planning.prompts import PLAN_RESPONSE_SCHEMA, SYSTEM_PROMPT, build_user_prompt
from shared.schemas.opportunities import FinancialMode


def test_system_prompt_demands_json():
    assert "JSON" in SYSTEM_PROMPT


def test_schema_requires_sections():
    assert PLAN_RESPONSE_SCHEMA["required"] == [
        "executive_summary", "initiatives", "financial_breakdown",
    ]


def test_user_prompt_embeds_payload(sample_payload):
    prompt = build_user_prompt(sample_payload)
    data = json.loads(prompt.split("Data:\n", 1)[1])
    assert data == sample_payload.to_wire()


def test_revenue_only_rules(sample_payload):
    assert "Set one_time_cost and recurring_annual_cost to 0" in build_user_prompt(sample_payload)


def test_cost_bearing_rules(two_records):
    payload = generate_payload(two_records, financial_mode=FinancialMode.COST_BEARING)
    prompt = build_user_prompt(payload)
    assert "Estimate one_time_cost" in prompt
    assert "array of 2-3 initiatives" in prompt
