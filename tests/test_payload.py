"""Tests for core.planning.payload -- ranking, totals, financials, checksum."""

import json
import math
import re

import pytest

from core.planning import payload as payload_mod
from core.planning.payload import (
    compute_checksum,
    fnv1a32,
    generate_payload,
    invariant_gap,
    overall_financials,
    rank_drivers,
    round_half_up,
    select_included,
)
from shared.schemas.opportunities import FinancialMode, UserPreferences

FIXED_TS = "2026-01-01T00:00:00+00:00"


class TestRounding:
    def test_half_rounds_up(self):
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3

    def test_below_half_rounds_down(self):
        assert round_half_up(1.49) == 1

    def test_monthly_delta_from_annual(self, make_record):
        assert payload_mod.monthly_delta(make_record("x", 6)) == 1
        assert payload_mod.monthly_delta(make_record("y", 120000)) == 10000


class TestRankSelection:
    def test_descending_by_monthly_delta(self, ten_records):
        ranked = rank_drivers(ten_records)
        deltas = [d for _, d in ranked]
        assert deltas == sorted(deltas, reverse=True)
        assert ranked[0][0].id == "svc-1"

    def test_ties_keep_input_order(self, make_record):
        records = [make_record("x", 1200), make_record("y", 1200), make_record("z", 2400)]
        assert [r.id for r, _ in rank_drivers(records)] == ["z", "x", "y"]

    def test_top_six_selected(self, ten_records):
        assert select_included(ten_records) == [
            "svc-1", "svc-5", "svc-7", "svc-3", "svc-9", "svc-0",
        ]

    def test_selection_ignores_names_and_ids(self, make_record):
        amounts = [50000, 40000, 30000, 20000, 10000, 9000, 8000, 7000]
        first = [make_record(f"id-{i}", a, name=f"Service {i}") for i, a in enumerate(amounts)]
        second = [
            make_record(f"other-{i}", a, name="Staged Supply" if i == 0 else "DAA")
            for i, a in enumerate(amounts)
        ]
        p1 = generate_payload(first, generated_at=FIXED_TS)
        p2 = generate_payload(second, generated_at=FIXED_TS)
        assert [d.included for d in p1.top_drivers] == [d.included for d in p2.top_drivers]
        assert p2.top_drivers[0].name == "Staged Supply"
        assert p2.top_drivers[0].included is True


class TestGeneratePayload:
    def test_empty_input_returns_none(self):
        assert generate_payload([]) is None

    def test_two_record_scenario(self, sample_payload):
        drivers = {d.id: d for d in sample_payload.top_drivers}
        assert drivers["a"].monthly_revenue_impact == 10000
        assert drivers["b"].monthly_revenue_impact == 1000
        assert drivers["a"].included and drivers["b"].included

        summary = sample_payload.summary_metrics
        assert summary.monthly_revenue_delta == 11000
        assert summary.estimated_annual_delta == 132000
        assert summary.item_count == 2
        assert summary.total_investment == 55000
        assert summary.computed_from == ["a", "b"]
        assert summary.current_monthly_revenue == 2500
        assert summary.projected_monthly_revenue == 13500

    def test_two_record_financials(self, sample_payload):
        fin = sample_payload.overall_financials
        assert fin.roi == 240.0
        assert fin.payback_months == 5.0
        assert fin.roi_arithmetic == "(11000 * 12) / 55000 * 100 = 240.0%"
        assert fin.payback_arithmetic == "55000 / 11000 = 5.0 months"
        assert fin.warnings == []

    def test_detail_and_other_split(self, ten_records):
        p = generate_payload(ten_records, generated_at=FIXED_TS)
        assert len(p.top_drivers) == 8
        assert [d.rank for d in p.top_drivers] == list(range(1, 9))
        assert sum(d.included for d in p.top_drivers) == 6
        assert p.other_items_summary.count == 2
        assert p.other_items_summary.combined_monthly_impact == 2000 + 1000
        assert p.summary_metrics.monthly_revenue_delta == 45000

    def test_fewer_than_eight_records_all_detailed(self, two_records):
        p = generate_payload(two_records, generated_at=FIXED_TS)
        assert len(p.top_drivers) == 2
        assert p.other_items_summary.count == 0
        assert p.other_items_summary.combined_monthly_impact == 0

    def test_default_mode_is_revenue_only(self, sample_payload):
        assert sample_payload.financial_mode == FinancialMode.REVENUE_ONLY
        assert sample_payload.financial_breakdown.missing_data_warnings

    def test_cost_bearing_mode_flag(self, two_records):
        p = generate_payload(
            two_records, financial_mode=FinancialMode.COST_BEARING, generated_at=FIXED_TS,
        )
        assert p.metadata.financial_mode == FinancialMode.COST_BEARING
        assert p.financial_breakdown.missing_data_warnings == []

    def test_wire_keys(self, sample_payload):
        wire = sample_payload.to_wire()
        assert wire["metadata"]["financial_mode"] == "revenue_only"
        assert wire["summaryMetrics"]["monthlyRevenueDelta"] == 11000
        assert wire["topDrivers"][0]["monthlyRevenueImpact"] == 10000
        assert wire["otherItemsSummary"]["combinedMonthlyImpact"] == 0
        assert wire["overallFinancials"]["paybackMonths"] == 5.0
        assert wire["financial_breakdown"]["monthly_revenue_lift_total"] == 11000
        assert wire["userPreferences"]["timeHorizonMonths"] == 12

    def test_breakdown_details_follow_drivers(self, sample_payload):
        details = sample_payload.financial_breakdown.details
        assert [d.id for d in details] == ["a", "b"]
        assert details[0].annual_revenue_lift == 120000


class TestInvariant:
    def test_holds_without_tail(self, sample_payload):
        gap, tolerance = invariant_gap(sample_payload)
        assert abs(gap) <= tolerance
        assert tolerance == 11.0

    def test_holds_for_eight_records(self, make_record):
        records = [make_record(f"r{i}", (i + 1) * 1200) for i in range(8)]
        p = generate_payload(records, generated_at=FIXED_TS)
        gap, tolerance = invariant_gap(p)
        assert abs(gap) <= tolerance

    def test_small_tail_within_tolerance(self, make_record):
        records = [make_record(f"r{i}", 120000) for i in range(8)]
        records.append(make_record("tail", 60))  # 5/month
        p = generate_payload(records, generated_at=FIXED_TS)
        gap, tolerance = invariant_gap(p)
        assert gap == 5
        assert abs(gap) <= tolerance
        assert not any("mismatch" in w for w in p.overall_financials.warnings)

    def test_large_tail_reported(self, ten_records):
        p = generate_payload(ten_records, generated_at=FIXED_TS)
        gap, tolerance = invariant_gap(p)
        assert gap == 3000
        assert any("Revenue sum mismatch" in w for w in p.overall_financials.warnings)


class TestOverallFinancials:
    def test_zero_investment_is_insufficient_data(self, two_records):
        p = generate_payload(two_records, UserPreferences(max_investment=0), generated_at=FIXED_TS)
        fin = p.overall_financials
        assert fin.roi is None
        assert fin.payback_months is None
        assert fin.roi_arithmetic.startswith("Insufficient data")
        assert fin.payback_arithmetic.startswith("Insufficient data")

    def test_zero_lift_gives_zero_roi_and_no_payback(self, make_record):
        records = [make_record("flat", 0)]
        p = generate_payload(records, UserPreferences(max_investment=10000), generated_at=FIXED_TS)
        fin = p.overall_financials
        assert fin.roi == 0.0
        assert fin.payback_months is None
        assert any("Payback period undefined" in w for w in fin.warnings)

    def test_never_emits_infinity(self, make_record):
        records = [make_record("flat", 0)]
        p = generate_payload(records, UserPreferences(max_investment=10000), generated_at=FIXED_TS)
        # allow_nan=False raises on inf / nan
        json.dumps(p.to_wire(), allow_nan=False)
        assert p.to_wire()["overallFinancials"]["paybackMonths"] is None

    def test_long_payback_warning(self, two_records):
        p = generate_payload(two_records, UserPreferences(max_investment=300000), generated_at=FIXED_TS)
        assert p.overall_financials.payback_months == 27.3
        assert "Payback period exceeds 24 months" in p.overall_financials.warnings

    def test_roi_rounded_to_one_decimal(self, make_record):
        p = generate_payload(
            [make_record("x", 12000)], UserPreferences(max_investment=7000), generated_at=FIXED_TS,
        )
        # (1000 * 12) / 7000 * 100 = 171.428...
        assert p.overall_financials.roi == 171.4
        assert not math.isinf(p.overall_financials.payback_months)

    def test_large_fractional_investment_stays_fixed_point(self):
        fin = overall_financials(1234567.5, 1000)
        assert fin.roi_arithmetic == "(1000 * 12) / 1234567.5 * 100 = 1.0%"
        assert fin.payback_arithmetic == "1234567.5 / 1000 = 1234.6 months"
        assert "e+" not in fin.roi_arithmetic + fin.payback_arithmetic


class TestChecksum:
    def test_fnv1a_known_vectors(self):
        assert fnv1a32("") == "811c9dc5"
        assert fnv1a32("a") == "e40c292c"

    def test_checksum_is_short_hex(self, sample_payload):
        assert re.fullmatch(r"[0-9a-f]{8}", sample_payload.metadata.checksum)

    def test_checksum_deterministic(self, two_records):
        p1 = generate_payload(two_records, generated_at=FIXED_TS)
        p2 = generate_payload(two_records, generated_at=FIXED_TS)
        assert p1.metadata.checksum == p2.metadata.checksum

    def test_checksum_covers_timestamp(self, two_records):
        p1 = generate_payload(two_records, generated_at=FIXED_TS)
        p2 = generate_payload(two_records, generated_at="2026-01-02T00:00:00+00:00")
        assert p1.metadata.checksum != p2.metadata.checksum

    def test_falls_back_to_fnv(self, monkeypatch, sample_payload):
        expected_sha = compute_checksum(sample_payload)

        def _unavailable(*args, **kwargs):
            raise ValueError("digest disabled")

        monkeypatch.setattr(payload_mod.hashlib, "sha256", _unavailable)
        fallback = compute_checksum(sample_payload)
        assert re.fullmatch(r"[0-9a-f]{8}", fallback)
        assert fallback != expected_sha

    def test_hash_failure_does_not_block_payload(self, monkeypatch, two_records):
        def _broken(*args, **kwargs):
            raise ValueError("no hashing")

        monkeypatch.setattr(payload_mod.hashlib, "sha256", _broken)
        monkeypatch.setattr(payload_mod, "fnv1a32", _broken)
        p = generate_payload(two_records, generated_at=FIXED_TS)
        assert p is not None
        assert p.metadata.checksum is None
