"""Prompts and requested output schema for plan generation."""

from __future__ import annotations

import json
from typing import Any, Dict

from shared.schemas.opportunities import FinancialMode, OpportunityPayload

SYSTEM_PROMPT = (
    "You are a small-business operations consultant. You turn a ranked list of "
    "service revenue opportunities into a practical implementation plan. "
    "Use only the figures given in the data; show every calculation as an "
    "arithmetic string. Respond ONLY with valid JSON. Do not wrap it in "
    "markdown and do not add commentary. The first character must be {."
)

_COST_RULES = {
    FinancialMode.REVENUE_ONLY: (
        "The data has no per-service costs. Set one_time_cost and "
        "recurring_annual_cost to 0 and base overall ROI and payback on "
        "summaryMetrics.totalInvestment only."
    ),
    FinancialMode.COST_BEARING: (
        "Estimate one_time_cost and recurring_annual_cost per initiative. "
        "The one-time costs must add up to summaryMetrics.totalInvestment. "
        "State ROI as '(monthly_lift * 12) / one_time_cost * 100 = N%'."
    ),
}

_INITIATIVE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "title": {"type": "string"},
        "priority": {"type": "integer", "minimum": 1, "maximum": 5},
        "owner_role": {"type": "string"},
        "start_week": {"type": "integer"},
        "duration_weeks": {"type": "integer"},
        "tasks": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "task_id": {"type": "string"},
                    "title": {"type": "string"},
                    "owner": {"type": "string"},
                    "est_hours": {"type": "number"},
                    "acceptance_criteria": {"type": "string"},
                },
                "required": ["task_id", "title"],
            },
        },
        "one_time_cost": {"type": "number"},
        "recurring_annual_cost": {"type": "number"},
        "expected_monthly_revenue_lift": {"type": "number"},
        "ROI": {"type": "string"},
        "confidence": {"type": "integer", "minimum": 0, "maximum": 100},
        "risk_score": {"type": "integer", "minimum": 1, "maximum": 5},
        "mitigations": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["id", "title", "expected_monthly_revenue_lift", "ROI"],
}

PLAN_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "executive_summary": {"type": "string"},
        "initiatives": {"type": "array", "items": _INITIATIVE_SCHEMA},
        "financial_breakdown": {
            "type": "object",
            "properties": {
                "total_one_time_costs": {"type": "number"},
                "total_recurring_costs": {"type": "number"},
                "total_monthly_revenue_lift": {"type": "number"},
                "payback_period_months": {"type": "number"},
                "arithmetic": {"type": "string"},
            },
            "required": ["total_monthly_revenue_lift", "arithmetic"],
        },
        "notes": {"type": "string"},
    },
    "required": ["executive_summary", "initiatives", "financial_breakdown"],
}


def build_user_prompt(payload: OpportunityPayload) -> str:
    """User message embedding the serialized payload."""
    included = len(payload.summary_metrics.computed_from)
    return (
        "Generate an implementation plan. Output ONLY JSON with these keys:\n"
        '- "executive_summary": string, at most 8 sentences\n'
        f'- "initiatives": array of {max(included, 1)}-{max(included, 1) + 1} initiatives, '
        "one per included driver first, highest revenue impact first. Each has "
        "id, title, priority (1-5), owner_role, start_week, duration_weeks, "
        "tasks (2+ with task_id, title, owner, est_hours, acceptance_criteria), "
        "one_time_cost, recurring_annual_cost, expected_monthly_revenue_lift, "
        "ROI (arithmetic string), confidence (0-100), risk_score (1-5), "
        "mitigations (2 strings)\n"
        '- "financial_breakdown": total_one_time_costs, total_recurring_costs, '
        "total_monthly_revenue_lift, payback_period_months, arithmetic\n"
        '- "notes": string\n\n'
        f"{_COST_RULES[payload.financial_mode]}\n"
        "The initiative lifts should add up to summaryMetrics.monthlyRevenueDelta.\n\n"
        "Data:\n"
        f"{json.dumps(payload.to_wire(), indent=2)}"
    )
