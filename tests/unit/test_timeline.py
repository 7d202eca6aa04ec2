"""Tests for compliance timeline heuristics."""

from __future__ import annotations

import datetime as dt

import pytest

from conftest import InMemoryStore

from atoengine.core.errors import ValidationError
from atoengine.core.timeline import (
    NO_DATA_INSIGHT,
    calculate_compliance_trends,
    generate_timeline_insights,
    identify_significant_events,
)
from atoengine.models.timeline import ComplianceDataPoint, ComplianceTimeline

DAY1 = dt.date(2026, 4, 1)


def _points(*scores: float, **fields) -> list[ComplianceDataPoint]:
    return [
        ComplianceDataPoint(date=DAY1 + dt.timedelta(days=i), compliance_score=score, **fields)
        for i, score in enumerate(scores)
    ]


def _pair(first: dict, last: dict) -> list[ComplianceDataPoint]:
    first.setdefault("compliance_score", 80)
    last.setdefault("compliance_score", 80)
    return [
        ComplianceDataPoint(date=DAY1, **first),
        ComplianceDataPoint(date=DAY1 + dt.timedelta(days=1), **last),
    ]


def _insights(points: list[ComplianceDataPoint]) -> list[str]:
    timeline = ComplianceTimeline(
        tenant_id="t", start_date=DAY1, end_date=points[-1].date,
        data_points=points, trends=calculate_compliance_trends(points),
    )
    return generate_timeline_insights(timeline)


class TestSignificantEvents:
    def test_eleven_point_rise_is_one_event(self):
        events = identify_significant_events(_points(60, 71))
        assert events == ["Compliance score improved by 11.0% on 2026-04-02"]

    def test_nine_point_rise_is_no_event(self):
        assert identify_significant_events(_points(60, 69)) == []

    def test_single_point_has_no_events(self):
        assert identify_significant_events(_points(95)) == []

    def test_decline(self):
        events = identify_significant_events(_points(80, 70))
        assert events == ["Compliance score declined by 10.0% on 2026-04-02"]

    def test_milestone_and_period_swing(self):
        events = identify_significant_events(_points(50, 65, 92))
        assert "Compliance score improved by 15.0% on 2026-04-02" in events
        assert "Compliance score improved by 27.0% on 2026-04-03" in events
        assert "Achieved 92.0% compliance (high compliance milestone)" in events
        assert events[-1] == "Overall compliance improved by 42.0% over the period"

    def test_findings_and_controls_deltas(self):
        points = [
            ComplianceDataPoint(date=DAY1, compliance_score=70, controls_failed=10, active_findings=3),
            ComplianceDataPoint(
                date=DAY1 + dt.timedelta(days=1), compliance_score=70,
                controls_failed=2, active_findings=8, remediated_findings=15,
            ),
        ]
        assert identify_significant_events(points) == [
            "15 findings remediated on 2026-04-02",
            "5 new findings discovered on 2026-04-02",
            "8 controls brought into compliance on 2026-04-02",
        ]

    def test_controls_failed(self):
        points = [
            ComplianceDataPoint(date=DAY1, compliance_score=70, controls_failed=1),
            ComplianceDataPoint(date=DAY1 + dt.timedelta(days=1), compliance_score=70, controls_failed=6),
        ]
        assert identify_significant_events(points) == ["5 additional controls failed on 2026-04-02"]

    def test_period_decline_of_twenty(self):
        events = identify_significant_events(_points(90, 85, 80, 75, 70))
        assert events == ["Overall compliance declined by 20.0% over the period"]

    def test_period_decline_of_nineteen_is_no_event(self):
        assert identify_significant_events(_points(80, 75, 70, 65, 61)) == []

    def test_period_improvement_of_twenty(self):
        events = identify_significant_events(_points(60, 65, 70, 75, 80))
        assert events == ["Overall compliance improved by 20.0% over the period"]

    def test_milestone_crossing_ninety(self):
        events = identify_significant_events(_points(89, 90))
        assert events == ["Achieved 90.0% compliance (high compliance milestone)"]

    def test_milestone_needs_start_below_ninety(self):
        assert identify_significant_events(_points(90, 95)) == []


class TestTrends:
    def test_directions(self):
        points = [
            ComplianceDataPoint(date=DAY1, compliance_score=60, active_findings=9),
            ComplianceDataPoint(date=DAY1, compliance_score=75, active_findings=4, remediated_findings=51),
        ]
        trends = calculate_compliance_trends(points)
        assert trends.compliance_score_trend == "Improving"
        assert trends.findings_trend == "Decreasing"
        assert trends.remediation_rate == "High"

    def test_flat_series(self):
        trends = calculate_compliance_trends(_points(80, 80))
        assert trends.compliance_score_trend == "Stable"
        assert trends.findings_trend == "Stable"
        assert trends.remediation_rate == "None"


class TestInsights:
    def test_no_data(self):
        timeline = ComplianceTimeline(tenant_id="t", start_date=DAY1, end_date=DAY1)
        assert generate_timeline_insights(timeline) == [NO_DATA_INSIGHT]

    def test_declining_low_compliance(self):
        points = _points(70, 65, 60, 55, 50, 45, 40)
        timeline = ComplianceTimeline(
            tenant_id="t", start_date=DAY1, end_date=points[-1].date,
            data_points=points, trends=calculate_compliance_trends(points),
        )
        insights = generate_timeline_insights(timeline)
        assert insights[0].startswith("Compliance score declined by 30.0%")
        assert "No remediation activity detected - develop and execute remediation plan" in insights
        assert any(i.startswith("Compliance below 70%") for i in insights)
        assert any(i.startswith("Consider implementing automated compliance monitoring") for i in insights)
        assert insights[-1] == "Compliance is declining - review recent changes and strengthen controls"

    def test_stable_high_compliance(self):
        points = _points(95, 95, 95, 95)
        timeline = ComplianceTimeline(
            tenant_id="t", start_date=DAY1, end_date=points[-1].date,
            data_points=points, trends=calculate_compliance_trends(points),
        )
        insights = generate_timeline_insights(timeline)
        assert insights[0] == "Compliance score remained stable over the period"
        assert "Stable compliance posture maintained - continue current practices" in insights
        assert any(i.startswith("Excellent compliance posture at 95.0%") for i in insights)

    def test_strong_remediation_above_fifty(self):
        insights = _insights(_pair({}, {"remediated_findings": 51}))
        assert "Strong remediation efforts: 51 total findings remediated" in insights

    def test_fifty_remediated_is_moderate(self):
        insights = _insights(_pair({"remediated_findings": 20}, {"remediated_findings": 30}))
        assert (
            "Moderate remediation progress: 50 findings remediated - consider accelerating efforts"
            in insights
        )
        assert not any(i.startswith("Strong remediation") for i in insights)

    def test_single_remediation_is_moderate(self):
        insights = _insights(_pair({}, {"remediated_findings": 1}))
        assert any(i.startswith("Moderate remediation progress: 1 findings") for i in insights)

    @pytest.mark.parametrize("gained,expected", [
        (11, "Excellent progress: 11 additional controls brought into compliance"),
        (10, None),
    ])
    def test_controls_gained(self, gained, expected):
        insights = _insights(_pair({"controls_passed": 20}, {"controls_passed": 20 + gained}))
        matches = [i for i in insights if i.startswith("Excellent progress")]
        assert matches == ([expected] if expected else [])

    @pytest.mark.parametrize("lost,expected", [
        (6, "Control compliance degraded: 6 controls now failing"),
        (5, None),
    ])
    def test_controls_lost(self, lost, expected):
        insights = _insights(_pair({"controls_passed": 20}, {"controls_passed": 20 - lost}))
        matches = [i for i in insights if i.startswith("Control compliance degraded")]
        assert matches == ([expected] if expected else [])

    def test_fewer_active_findings_is_positive(self):
        insights = _insights(_pair({"active_findings": 5}, {"active_findings": 4}))
        assert "Positive trend: 1 fewer active findings than at the start of the period" in insights

    def test_unchanged_active_findings_has_no_findings_insight(self):
        insights = _insights(_pair({"active_findings": 5}, {"active_findings": 5}))
        assert not any(i.startswith(("Positive trend", "Rising findings")) for i in insights)

    @pytest.mark.parametrize("added,expected", [
        (11, "Rising findings: 11 new active findings - investigate root causes"),
        (10, None),
    ])
    def test_rising_findings(self, added, expected):
        insights = _insights(_pair({"active_findings": 2}, {"active_findings": 2 + added}))
        matches = [i for i in insights if i.startswith("Rising findings")]
        assert matches == ([expected] if expected else [])

    def test_high_volatility(self):
        insights = _insights(_points(50, 60, 50, 60))
        assert (
            "High compliance score volatility detected - establish consistent compliance practices"
            in insights
        )

    def test_volatility_of_exactly_eight_is_neither_high_nor_stable(self):
        insights = _insights(_points(50, 58, 50, 58))
        assert not any(i.startswith(("High compliance score volatility", "Stable compliance posture"))
                       for i in insights)

    @pytest.mark.parametrize("scores", [(50, 70, 50), (95, 95, 95)])
    def test_volatility_needs_more_than_three_points(self, scores):
        insights = _insights(_points(*scores))
        assert not any(i.startswith(("High compliance score volatility", "Stable compliance posture"))
                       for i in insights)

    def test_improving_trajectory(self):
        insights = _insights(_points(60, 75))
        assert insights[0] == "Compliance score improved by 15.0% over the period (from 60.0% to 75.0%)"
        assert insights[-1] == "Compliance trajectory is positive - maintain current remediation velocity"

    def test_no_trajectory_without_trends(self):
        points = _points(60, 75)
        timeline = ComplianceTimeline(
            tenant_id="t", start_date=DAY1, end_date=points[-1].date, data_points=points,
        )
        insights = generate_timeline_insights(timeline)
        assert not any(i.startswith("Compliance trajectory") for i in insights)


class TestGetTimeline:
    @pytest.mark.asyncio
    async def test_inclusive_daily_series(self, make_engine, store: InMemoryStore):
        store.points[("tenant-1", DAY1)] = ComplianceDataPoint(date=DAY1, compliance_score=60)
        last = DAY1 + dt.timedelta(days=2)
        store.points[("tenant-1", last)] = ComplianceDataPoint(
            date=last, compliance_score=71, events=["AssessmentCompleted: Score 71.0%"]
        )

        timeline = await make_engine().get_compliance_timeline("tenant-1", DAY1, last)

        assert [p.date for p in timeline.data_points] == [DAY1, DAY1 + dt.timedelta(days=1), last]
        assert timeline.data_points[-1].events == ["AssessmentCompleted: Score 71.0%"]
        assert timeline.trends.compliance_score_trend == "Improving"
        assert timeline.insights

    @pytest.mark.asyncio
    async def test_single_day(self, make_engine):
        timeline = await make_engine().get_compliance_timeline("tenant-1", DAY1, DAY1)
        assert len(timeline.data_points) == 1
        assert timeline.significant_events == []

    @pytest.mark.asyncio
    async def test_reversed_range_rejected(self, make_engine):
        with pytest.raises(ValidationError):
            await make_engine().get_compliance_timeline("tenant-1", DAY1, DAY1 - dt.timedelta(days=1))
