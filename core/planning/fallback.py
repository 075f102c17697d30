"""Static fallback plan.

Shown when the upstream returns no initiatives, times out, or fails with a
transient error. Figures are internally consistent so the plan passes its
own reconciliation in cost-bearing mode.
"""

from __future__ import annotations

from typing import Any, Dict

from shared.schemas.plans import (
    GeneratedPlan,
    Initiative,
    PlanFinancialBreakdown,
    PlanTask,
)

FALLBACK_NOTE = "Static fallback plan substituted"


def _build() -> GeneratedPlan:
    initiatives = [
        Initiative(
            id="init-1",
            title="Expand the highest-impact service",
            priority=1,
            owner_role="Operations Manager",
            start_week=1,
            duration_weeks=6,
            tasks=[
                PlanTask(task_id="init-1-t1", title="Confirm current service capacity",
                         owner="Operations Manager", est_hours=6,
                         acceptance_criteria="Capacity baseline documented"),
                PlanTask(task_id="init-1-t2", title="Schedule additional service slots",
                         owner="Team Lead", est_hours=10,
                         acceptance_criteria="New slots bookable"),
            ],
            one_time_cost=3000,
            recurring_annual_cost=0,
            expected_monthly_revenue_lift=800,
            roi="(800 * 12) / 3000 * 100 = 320.0%",
            confidence=70,
            risk_score=2,
            mitigations=["Pilot for two weeks before full rollout",
                         "Track uptake weekly against target"],
        ),
        Initiative(
            id="init-2",
            title="Launch a recurring-appointment program",
            priority=2,
            owner_role="Service Lead",
            start_week=3,
            duration_weeks=8,
            tasks=[
                PlanTask(task_id="init-2-t1", title="Define eligibility and booking flow",
                         owner="Service Lead", est_hours=12,
                         acceptance_criteria="Flow approved by management"),
                PlanTask(task_id="init-2-t2", title="Train staff on the program",
                         owner="Training Coordinator", est_hours=16,
                         acceptance_criteria="All rostered staff trained"),
            ],
            one_time_cost=4000,
            recurring_annual_cost=2400,
            expected_monthly_revenue_lift=1200,
            roi="(1200 * 12) / 4000 * 100 = 360.0%",
            confidence=65,
            risk_score=3,
            mitigations=["Stagger enrolment to protect capacity",
                         "Review retention monthly"],
        ),
        Initiative(
            id="init-3",
            title="Promote under-used services to existing customers",
            priority=3,
            owner_role="Marketing Coordinator",
            start_week=5,
            duration_weeks=6,
            tasks=[
                PlanTask(task_id="init-3-t1", title="Prepare in-store and email material",
                         owner="Marketing Coordinator", est_hours=8,
                         acceptance_criteria="Material published"),
                PlanTask(task_id="init-3-t2", title="Measure enquiries per week",
                         owner="Operations Manager", est_hours=4,
                         acceptance_criteria="Weekly report in place"),
            ],
            one_time_cost=3000,
            recurring_annual_cost=1200,
            expected_monthly_revenue_lift=600,
            roi="(600 * 12) / 3000 * 100 = 240.0%",
            confidence=60,
            risk_score=2,
            mitigations=["Focus messaging on one service at a time",
                         "Stop channels with no measurable uptake"],
        ),
    ]
    return GeneratedPlan(
        executive_summary=(
            "A phased plan that grows the highest-impact services first, adds a "
            "recurring-appointment program, and promotes under-used services to "
            "existing customers. Review results monthly before expanding further."
        ),
        initiatives=initiatives,
        financial_breakdown=PlanFinancialBreakdown(
            total_one_time_costs=10000,
            total_recurring_costs=3600,
            total_monthly_revenue_lift=2600,
            payback_period_months=3.8,
            arithmetic=(
                "One-time: 3000 + 4000 + 3000 = 10000; "
                "Recurring: 0 + 2400 + 1200 = 3600; "
                "Monthly lift: 800 + 1200 + 600 = 2600; "
                "Payback: 10000 / 2600 = 3.8 months"
            ),
        ),
        notes=FALLBACK_NOTE,
    )


_FALLBACK = _build()


def fallback_plan(reason: str = "") -> Dict[str, Any]:
    """Fresh copy of the fallback plan with ``reason`` recorded in its notes."""
    plan = _FALLBACK.to_wire()
    if reason:
        plan["notes"] = f"{FALLBACK_NOTE}: {reason}"
    return plan


def is_fallback(plan: Dict[str, Any]) -> bool:
    return str(plan.get("notes", "")).startswith(FALLBACK_NOTE)
