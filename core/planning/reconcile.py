"""Plan-payload reconciliation.

Cross-checks a recovered plan's stated figures against the payload it was
generated from and returns human-readable findings. Read-only: figures are
reported, never corrected.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from shared.schemas.opportunities import FinancialMode, OpportunityPayload

logger = logging.getLogger(__name__)

INFO_PREFIX = "Info:"
NO_ISSUES = "No validation issues found"

_PERCENT_RE = re.compile(r"(-?\d[\d,]*(?:\.\d+)?)\s*%")
# bare result with the percent sign left off: "... = 400" or "400"
_BARE_RESULT_RE = re.compile(r"(?:^|=)\s*(-?\d[\d,]*(?:\.\d+)?)\s*$")
_INVESTMENT_KEYS = ("totalInvestment", "total_investment", "total_one_time_costs")
_COST_FIELDS = ("one_time_cost", "recurring_annual_cost")
_LIFT_FIELD = "expected_monthly_revenue_lift"


@dataclass(frozen=True)
class ReconcileTolerances:
    investment_pct: float = 0.01
    monthly_lift: float = 500.0
    roi_pp: float = 5.0
    roi_ceiling: float = 1000.0
    breakdown_total: float = 1000.0
    payback_months: float = 1.0


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _percentages(text: str) -> List[float]:
    return [float(m.replace(",", "")) for m in _PERCENT_RE.findall(text)]


def _roi_values(text: str) -> List[float]:
    values = _percentages(text)
    if values:
        return values
    m = _BARE_RESULT_RE.search(text)
    return [float(m.group(1).replace(",", ""))] if m else []


def _label(initiative: Mapping[str, Any], index: int) -> str:
    return str(initiative.get("id") or initiative.get("title") or f"#{index + 1}")


def _money(value: float) -> str:
    return f"{value:,.0f}"


class _Checker:
    """Collects findings for one plan/payload pair."""

    def __init__(self, plan: Mapping[str, Any], payload: OpportunityPayload,
                 tolerances: ReconcileTolerances):
        self.plan = plan
        self.payload = payload
        self.tol = tolerances
        self.findings: List[str] = []
        fb = plan.get("financial_breakdown")
        self.breakdown: Mapping[str, Any] = fb if isinstance(fb, Mapping) else {}
        raw = plan.get("initiatives")
        self.initiatives: List[Any] = list(raw) if isinstance(raw, list) else []

    # -- helpers ---------------------------------------------------------

    def _initiative_dicts(self):
        for i, init in enumerate(self.initiatives):
            if isinstance(init, Mapping):
                yield i, init

    def _sum_field(self, name: str) -> float:
        total = 0.0
        for _, init in self._initiative_dicts():
            value = _number(init.get(name))
            if value is not None:
                total += value
        return total

    # -- checks ----------------------------------------------------------

    def check_shape(self) -> None:
        for i, init in enumerate(self.initiatives):
            if not isinstance(init, Mapping):
                self.findings.append(f"Initiative #{i + 1} is not an object")

    def check_monthly_lift(self) -> None:
        for i, init in self._initiative_dicts():
            raw = init.get(_LIFT_FIELD)
            if raw is not None and _number(raw) is None:
                self.findings.append(
                    f"Initiative {_label(init, i)}: {_LIFT_FIELD} is not a number ({raw!r})"
                )

        total = self._sum_field(_LIFT_FIELD)
        expected = self.payload.summary_metrics.monthly_revenue_delta
        if abs(total - expected) > self.tol.monthly_lift:
            self.findings.append(
                f"Monthly revenue lift mismatch: initiatives sum to {_money(total)}, "
                f"payload monthlyRevenueDelta is {_money(expected)}"
            )

        stated = _number(self.breakdown.get("total_monthly_revenue_lift"))
        if stated is not None and abs(stated - total) > self.tol.breakdown_total:
            self.findings.append(
                f"financial_breakdown.total_monthly_revenue_lift ({_money(stated)}) "
                f"does not match the initiative sum ({_money(total)})"
            )

    def check_lift_non_negative(self) -> None:
        for i, init in self._initiative_dicts():
            value = _number(init.get(_LIFT_FIELD))
            if value is not None and value < 0:
                self.findings.append(
                    f"Initiative {_label(init, i)}: negative {_LIFT_FIELD} ({_money(value)})"
                )
        stated = _number(self.breakdown.get("total_monthly_revenue_lift"))
        if stated is not None and stated < 0:
            self.findings.append(
                f"financial_breakdown.total_monthly_revenue_lift is negative ({_money(stated)})"
            )

    def check_cost_non_negative(self) -> None:
        for i, init in self._initiative_dicts():
            for name in _COST_FIELDS:
                value = _number(init.get(name))
                if value is not None and value < 0:
                    self.findings.append(
                        f"Initiative {_label(init, i)}: negative {name} ({_money(value)})"
                    )

    def check_investment(self) -> None:
        expected = self.payload.summary_metrics.total_investment
        if expected <= 0:
            return
        stated = None
        for key in _INVESTMENT_KEYS:
            stated = _number(self.breakdown.get(key))
            if stated is not None:
                break
        if stated is None:
            return
        diff = abs(stated - expected) / expected
        if diff > self.tol.investment_pct:
            self.findings.append(
                f"Total investment mismatch: plan states {_money(stated)}, "
                f"payload has {_money(expected)} ({diff * 100:.1f}% difference)"
            )

    def check_roi(self) -> None:
        for i, init in self._initiative_dicts():
            roi_text = init.get("ROI")
            if roi_text is None:
                continue
            roi_text = str(roi_text)
            stated_values = _roi_values(roi_text)

            if any(v > self.tol.roi_ceiling for v in stated_values):
                self.findings.append(
                    f"Initiative {_label(init, i)}: implausible ROI above "
                    f"{self.tol.roi_ceiling:g}% ({roi_text})"
                )

            cost = _number(init.get("one_time_cost"))
            lift = _number(init.get(_LIFT_FIELD))
            if cost is None or cost <= 0 or lift is None:
                continue
            if not stated_values:
                self.findings.append(
                    f"Initiative {_label(init, i)}: ROI has no percentage value ({roi_text})"
                )
                continue
            expected = lift * 12 / cost * 100
            stated = stated_values[-1]
            if abs(stated - expected) > self.tol.roi_pp:
                self.findings.append(
                    f"Initiative {_label(init, i)}: stated ROI {stated:.1f}% differs from "
                    f"recomputed {expected:.1f}% (({_money(lift)} * 12) / {_money(cost)} * 100)"
                )

    def check_breakdown_costs(self) -> None:
        stated = _number(self.breakdown.get("total_one_time_costs"))
        total = self._sum_field("one_time_cost")
        if stated is not None and abs(stated - total) > self.tol.breakdown_total:
            self.findings.append(
                f"financial_breakdown.total_one_time_costs ({_money(stated)}) "
                f"does not match the initiative sum ({_money(total)})"
            )

        payback = _number(self.breakdown.get("payback_period_months"))
        lift = _number(self.breakdown.get("total_monthly_revenue_lift"))
        if payback is not None and stated is not None and lift:
            expected = stated / lift
            if abs(payback - expected) > self.tol.payback_months:
                self.findings.append(
                    f"Payback period mismatch: plan states {payback:.1f} months, "
                    f"{_money(stated)} / {_money(lift)} = {expected:.1f} months"
                )

    def note_cost_fields(self) -> None:
        carriers = [
            _label(init, i) for i, init in self._initiative_dicts()
            if any(init.get(name) is not None for name in _COST_FIELDS)
        ]
        if carriers:
            self.findings.append(
                f"{INFO_PREFIX} cost fields on {len(carriers)} initiative(s) are not "
                f"authoritative in revenue_only mode; ROI and payback use the payload's total investment"
            )


def reconcile(
    plan: Mapping[str, Any],
    payload: Union[OpportunityPayload, Dict[str, Any]],
    tolerances: Optional[ReconcileTolerances] = None,
) -> List[str]:
    """Return findings for ``plan`` against ``payload``; empty means no issues."""
    if not isinstance(payload, OpportunityPayload):
        payload = OpportunityPayload.model_validate(payload)
    checker = _Checker(plan, payload, tolerances or ReconcileTolerances())

    checker.check_shape()
    checker.check_monthly_lift()
    checker.check_lift_non_negative()
    if payload.financial_mode == FinancialMode.REVENUE_ONLY:
        checker.note_cost_fields()
    else:
        checker.check_investment()
        checker.check_roi()
        checker.check_cost_non_negative()
        checker.check_breakdown_costs()

    if checker.findings:
        logger.info("Reconciliation produced %d finding(s)", len(checker.findings))
    return checker.findings


def merge_findings(plan: Dict[str, Any], findings: List[str]) -> Dict[str, Any]:
    """Copy of ``plan`` with ``findings`` as its ``validation`` list."""
    merged = dict(plan)
    merged["validation"] = list(findings) if findings else [NO_ISSUES]
    return merged
