"""Opportunity payload generator.

Turns raw calculator rows into a ranked, summarized payload:

  1. ``monthlyDelta = round(additionalValue / 12)`` per record (half-up)
  2. stable descending rank by monthly delta
  3. top ``INCLUDED_COUNT`` ranks are *included* in totals and plan scope
  4. top ``DETAIL_COUNT`` ranks are published as ``topDrivers``; the rest
     are only counted in ``otherItemsSummary``
  5. overall ROI / payback with an explicit insufficient-data state
  6. checksum over a stable projection of the result

The generator is a pure function of its inputs.
"""

from __future__ import annotations

import hashlib
import json
import logging
import math
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from shared.schemas.opportunities import (
    BreakdownDetail,
    FinancialMode,
    OpportunityPayload,
    OtherItemsSummary,
    OverallFinancials,
    PayloadBreakdown,
    PayloadMetadata,
    ServiceOpportunity,
    SummaryMetrics,
    TopDriver,
    UserInputs,
    UserPreferences,
)

logger = logging.getLogger(__name__)

INCLUDED_COUNT = 6
DETAIL_COUNT = 8

INVARIANT_TOLERANCE_PCT = 0.001
INVARIANT_TOLERANCE_ABS = 10

PAYBACK_WARNING_MONTHS = 24

CALCULATOR_VERSION = "1.3.0"
SCHEMA_VERSION = "1.0"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# Rank selection
# ---------------------------------------------------------------------------

def monthly_delta(record: ServiceOpportunity) -> int:
    return round_half_up(record.additional_value / 12)


def rank_drivers(
    records: Sequence[ServiceOpportunity],
) -> List[Tuple[ServiceOpportunity, int]]:
    """Return ``(record, monthly_delta)`` pairs, highest delta first.

    ``sorted`` is stable, so equal deltas keep their input order.
    """
    pairs = [(r, monthly_delta(r)) for r in records]
    return sorted(pairs, key=lambda pair: pair[1], reverse=True)


def select_included(
    records: Sequence[ServiceOpportunity], k: int = INCLUDED_COUNT,
) -> List[str]:
    """Ids of the top ``k`` records by monthly delta rank."""
    return [r.id for r, _ in rank_drivers(records)[:k]]


# ---------------------------------------------------------------------------
# Checksum
# ---------------------------------------------------------------------------

def fnv1a32(text: str) -> str:
    """32-bit FNV-1a over the code points of ``text`` as 8 hex chars."""
    h = 0x811C9DC5
    for ch in text:
        h ^= ord(ch)
        h = (h * 0x01000193) & 0xFFFFFFFF
    return f"{h:08x}"


def compute_checksum(payload: OpportunityPayload) -> Optional[str]:
    """Short checksum over driver impacts, summary metrics and timestamp.

    SHA-256 truncated to 8 hex chars, FNV-1a when SHA-256 is unavailable,
    ``None`` if neither can be computed.
    """
    try:
        source = json.dumps(
            {
                "topDrivers": [
                    [d.id, d.monthly_revenue_impact] for d in payload.top_drivers
                ],
                "summaryMetrics": payload.summary_metrics.to_wire(),
                "generatedAt": payload.metadata.generated_at,
            },
            sort_keys=True,
            separators=(",", ":"),
        )
    except (TypeError, ValueError) as e:
        logger.warning("Checksum source could not be serialized: %s", e)
        return None

    try:
        return hashlib.sha256(source.encode("utf-8")).hexdigest()[:8]
    except (ValueError, AttributeError) as e:
        # e.g. FIPS builds that disable the digest
        logger.warning("sha256 unavailable (%s), using FNV-1a", e)

    try:
        return fnv1a32(source)
    except (TypeError, ValueError) as e:
        logger.warning("Checksum failed: %s", e)
        return None


# ---------------------------------------------------------------------------
# Overall financials
# ---------------------------------------------------------------------------

def _fmt(value: float) -> str:
    # fixed-point so large inputs never render in exponent form
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def overall_financials(investment: float, monthly_lift: int) -> OverallFinancials:
    """ROI and payback for the included drivers against the user investment."""
    annual_lift = monthly_lift * 12
    warnings: List[str] = []

    if investment > 0 and monthly_lift > 0:
        roi: Optional[float] = round(annual_lift / investment * 100, 1)
        payback: Optional[float] = round(investment / monthly_lift, 1)
        roi_text = f"({monthly_lift} * 12) / {_fmt(investment)} * 100 = {roi:.1f}%"
        payback_text = f"{_fmt(investment)} / {monthly_lift} = {payback:.1f} months"
    elif investment > 0:
        roi = 0.0
        payback = None
        roi_text = f"({monthly_lift} * 12) / {_fmt(investment)} * 100 = 0.0%"
        payback_text = "Insufficient data: monthly revenue lift = 0"
    else:
        roi = None
        payback = None
        roi_text = "Insufficient data: totalInvestment = 0"
        payback_text = "Insufficient data: totalInvestment = 0"

    if payback is None:
        warnings.append(
            "Payback period undefined: monthly revenue lift is 0 or totalInvestment is 0"
        )
    elif payback > PAYBACK_WARNING_MONTHS:
        warnings.append(f"Payback period exceeds {PAYBACK_WARNING_MONTHS} months")

    return OverallFinancials(
        roi=roi,
        payback_months=payback,
        roi_arithmetic=roi_text,
        payback_arithmetic=payback_text,
        monthly_revenue_lift=monthly_lift,
        annual_revenue_lift=annual_lift,
        total_investment=investment,
        warnings=warnings,
    )


def invariant_gap(payload: OpportunityPayload) -> Tuple[int, float]:
    """Return ``(gap, tolerance)`` for the included + other == delta identity."""
    included = sum(d.monthly_revenue_impact for d in payload.included_drivers)
    combined = included + payload.other_items_summary.combined_monthly_impact
    expected = payload.summary_metrics.monthly_revenue_delta
    tolerance = max(abs(expected) * INVARIANT_TOLERANCE_PCT, INVARIANT_TOLERANCE_ABS)
    return combined - expected, tolerance


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

def generate_payload(
    records: Iterable[ServiceOpportunity],
    prefs: Optional[UserPreferences] = None,
    *,
    financial_mode: FinancialMode = FinancialMode.REVENUE_ONLY,
    currency: str = "AUD",
    generated_at: Optional[str] = None,
) -> Optional[OpportunityPayload]:
    """Build the opportunity payload, or ``None`` for an empty record set."""
    records = list(records)
    if not records:
        return None
    prefs = prefs or UserPreferences()

    ranked = rank_drivers(records)

    drivers: List[TopDriver] = []
    for rank, (record, delta) in enumerate(ranked[:DETAIL_COUNT], start=1):
        drivers.append(TopDriver(
            id=record.id,
            name=record.name,
            rank=rank,
            current_value=record.current_value,
            target_value=record.potential_value,
            growth_percentage=record.growth_percentage,
            monthly_revenue_impact=delta,
            annual_revenue_impact=delta * 12,
            included=rank <= INCLUDED_COUNT,
            assumptions=f"Based on current vs. potential annual value for {record.name or record.id}",
        ))

    rest = ranked[DETAIL_COUNT:]
    other = OtherItemsSummary(
        count=len(rest),
        combined_monthly_impact=sum(delta for _, delta in rest),
        note="No per-item detail; see the full calculator export for the list",
    )

    monthly_lift = sum(d.monthly_revenue_impact for d in drivers if d.included)
    investment = prefs.max_investment

    summary = SummaryMetrics(
        current_monthly_revenue=round_half_up(sum(r.current_value for r in records) / 12),
        projected_monthly_revenue=round_half_up(sum(r.potential_value for r in records) / 12),
        monthly_revenue_delta=monthly_lift,
        estimated_annual_delta=monthly_lift * 12,
        item_count=len(records),
        total_investment=investment,
        computed_from=[d.id for d in drivers if d.included],
    )

    breakdown = PayloadBreakdown(
        one_time_total=investment,
        monthly_revenue_lift_total=monthly_lift,
        annual_revenue_lift_total=monthly_lift * 12,
        payback=f"{_fmt(investment)} / {monthly_lift} months",
        overall_roi=f"({monthly_lift * 12} - 0) / {_fmt(investment)} * 100",
        details=[
            BreakdownDetail(
                id=d.id,
                name=d.name,
                monthly_revenue_lift=d.monthly_revenue_impact,
                annual_revenue_lift=d.annual_revenue_impact,
            )
            for d in drivers
        ],
    )
    if financial_mode == FinancialMode.REVENUE_ONLY:
        breakdown.missing_data_warnings.append(
            "No per-service costs; using total user investment for overall ROI/payback calculations."
        )

    payload = OpportunityPayload(
        metadata=PayloadMetadata(
            calculator_version=CALCULATOR_VERSION,
            schema_version=SCHEMA_VERSION,
            generated_at=generated_at or datetime.now(timezone.utc).isoformat(),
            currency=currency,
            data_provenance="Derived from calculator rows (annual current vs. potential value)",
            financial_mode=financial_mode,
        ),
        summary_metrics=summary,
        top_drivers=drivers,
        other_items_summary=other,
        overall_financials=overall_financials(investment, monthly_lift),
        user_inputs=UserInputs(total_investment=investment),
        user_preferences=prefs,
        financial_breakdown=breakdown,
    )

    gap, tolerance = invariant_gap(payload)
    if abs(gap) > tolerance:
        logger.warning(
            "Revenue sum mismatch: included + other differs from monthlyRevenueDelta by %d (tolerance %.1f)",
            gap, tolerance,
        )
        payload.overall_financials.warnings.append(
            f"Revenue sum mismatch: {other.count} item(s) outside the detail set "
            f"add {other.combined_monthly_impact}/month not counted in monthlyRevenueDelta"
        )

    payload.metadata.checksum = compute_checksum(payload)
    logger.info(
        "Payload generated: items=%d included=%d delta=%d checksum=%s",
        summary.item_count, len(summary.computed_from),
        summary.monthly_revenue_delta, payload.metadata.checksum,
    )
    return payload
