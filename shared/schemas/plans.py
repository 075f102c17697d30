"""Implementation plan schemas.

Keys follow the upstream response format (snake_case, plus ``ROI``).
Recovered plans are handled as plain dicts; these models describe the
well-formed shape and build the static fallback plan.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PlanTask(BaseModel):
    model_config = ConfigDict(extra="allow")

    task_id: str
    title: str
    owner: str = ""
    est_hours: float = 0
    acceptance_criteria: str = ""


class Initiative(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    title: str
    priority: int = Field(default=3, ge=1, le=5)
    owner_role: str = ""
    start_week: int = 1
    duration_weeks: int = 4
    tasks: List[PlanTask] = Field(default_factory=list)
    one_time_cost: float = 0
    recurring_annual_cost: float = 0
    expected_monthly_revenue_lift: float = 0
    roi: str = Field(default="", alias="ROI")
    confidence: int = Field(default=50, ge=0, le=100)
    risk_score: int = Field(default=3, ge=1, le=5)
    mitigations: List[str] = Field(default_factory=list)


class PlanFinancialBreakdown(BaseModel):
    model_config = ConfigDict(extra="allow")

    total_one_time_costs: float = 0
    total_recurring_costs: float = 0
    total_monthly_revenue_lift: float = 0
    payback_period_months: Optional[float] = None
    arithmetic: str = ""


class GeneratedPlan(BaseModel):
    model_config = ConfigDict(extra="allow")

    executive_summary: str
    initiatives: List[Initiative] = Field(default_factory=list)
    financial_breakdown: PlanFinancialBreakdown = Field(default_factory=PlanFinancialBreakdown)
    validation: List[str] = Field(default_factory=list)
    notes: str = ""

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
