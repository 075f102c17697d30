"""Opportunity payload schemas.

Python attributes are snake_case; the serialized form (``by_alias=True``)
uses the camelCase keys the calculator UI and the upstream prompt expect.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FinancialMode(str, Enum):
    """Which totals are authoritative for a payload."""

    REVENUE_ONLY = "revenue_only"
    COST_BEARING = "cost_bearing"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """Plain JSON-compatible dict with wire (camelCase) keys."""
        return self.model_dump(by_alias=True, mode="json")


# ============================================================
# Inputs
# ============================================================

class ServiceOpportunity(CamelModel):
    """One calculator row: annual current vs. potential value for a service."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True,
    )

    id: str
    name: str = ""
    current_value: float = 0.0
    potential_value: float = 0.0
    additional_value: float = 0.0
    growth_percentage: float = 0.0


class UserPreferences(CamelModel):
    max_investment: float = Field(default=0.0, ge=0)
    time_horizon_months: int = Field(default=12, ge=1)
    preferred_depth: str = "detailed"


# ============================================================
# Payload parts
# ============================================================

class PayloadMetadata(CamelModel):
    calculator_version: str = "1.3.0"
    schema_version: str = "1.0"
    generated_at: str = ""
    currency: str = "AUD"
    time_unit: str = "month"
    data_provenance: str = ""
    financial_mode: FinancialMode = Field(
        default=FinancialMode.REVENUE_ONLY, alias="financial_mode",
    )
    checksum: Optional[str] = None


class SummaryMetrics(CamelModel):
    scope: str = "selected_initiatives"
    current_monthly_revenue: int = 0
    projected_monthly_revenue: int = 0
    monthly_revenue_delta: int = 0
    estimated_annual_delta: int = 0
    item_count: int = 0
    total_investment: float = 0.0
    computed_from: List[str] = Field(default_factory=list)


class TopDriver(CamelModel):
    id: str
    name: str = ""
    rank: int = 0
    current_value: float = 0.0
    target_value: float = 0.0
    growth_percentage: float = 0.0
    monthly_revenue_impact: int = 0
    annual_revenue_impact: int = 0
    included: bool = False
    assumptions: str = ""


class OtherItemsSummary(CamelModel):
    count: int = 0
    combined_monthly_impact: int = 0
    note: str = ""


class OverallFinancials(CamelModel):
    # None means "insufficient data"; never a float infinity.
    roi: Optional[float] = None
    payback_months: Optional[float] = None
    roi_arithmetic: str = ""
    payback_arithmetic: str = ""
    monthly_revenue_lift: int = 0
    annual_revenue_lift: int = 0
    total_investment: float = 0.0
    warnings: List[str] = Field(default_factory=list)


class BreakdownDetail(BaseModel):
    id: str
    name: str = ""
    monthly_revenue_lift: int = 0
    annual_revenue_lift: int = 0


class PayloadBreakdown(BaseModel):
    """Snake_case block handed to the upstream service for plan arithmetic."""

    one_time_total: float = 0.0
    monthly_revenue_lift_total: int = 0
    annual_revenue_lift_total: int = 0
    payback: str = ""
    overall_roi: str = ""
    details: List[BreakdownDetail] = Field(default_factory=list)
    missing_data_warnings: List[str] = Field(default_factory=list)


class UserInputs(CamelModel):
    total_investment: float = 0.0
    total_investment_purpose: str = "used_for_overall_roi_and_payback_only"


class OpportunityPayload(CamelModel):
    """Ranked, summarized opportunity set sent to the upstream planner."""

    metadata: PayloadMetadata = Field(default_factory=PayloadMetadata)
    summary_metrics: SummaryMetrics = Field(default_factory=SummaryMetrics)
    top_drivers: List[TopDriver] = Field(default_factory=list)
    other_items_summary: OtherItemsSummary = Field(default_factory=OtherItemsSummary)
    overall_financials: OverallFinancials = Field(default_factory=OverallFinancials)
    user_inputs: UserInputs = Field(default_factory=UserInputs)
    user_preferences: UserPreferences = Field(default_factory=UserPreferences)
    financial_breakdown: PayloadBreakdown = Field(
        default_factory=PayloadBreakdown, alias="financial_breakdown",
    )

    @property
    def financial_mode(self) -> FinancialMode:
        return self.metadata.financial_mode

    @property
    def included_drivers(self) -> List[TopDriver]:
        return [d for d in self.top_drivers if d.included]


class PayloadRequest(CamelModel):
    """Body for building a payload from raw calculator rows."""

    records: List[ServiceOpportunity] = Field(default_factory=list)
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    financial_mode: FinancialMode = Field(
        default=FinancialMode.REVENUE_ONLY, alias="financialMode",
    )
