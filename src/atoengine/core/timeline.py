"""Compliance timeline and trend heuristics.

Builds a daily series from the historical store and applies a fixed, ordered
set of threshold rules to it. The thresholds are part of the reporting
contract; change them only together with downstream consumers.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Optional

from ..models.timeline import ComplianceDataPoint, ComplianceTimeline, ComplianceTrends
from ..providers.base import AssessmentStore
from .orchestrator import check_cancelled

logger = logging.getLogger(__name__)

SCORE_EVENT_DELTA = 10
REMEDIATION_EVENT_DELTA = 15
NEW_FINDINGS_EVENT_DELTA = 5
CONTROLS_FIXED_EVENT_DELTA = 8
CONTROLS_FAILED_EVENT_DELTA = -5
HIGH_COMPLIANCE_MILESTONE = 90
PERIOD_SWING_MILESTONE = 20

STRONG_REMEDIATION = 50
CONTROLS_GAINED_INSIGHT = 10
CONTROLS_LOST_INSIGHT = -5
RISING_FINDINGS_INSIGHT = 10
HIGH_VOLATILITY = 8
LOW_VOLATILITY = 2
LOW_COMPLIANCE = 70
HIGH_COMPLIANCE = 90
AUTOMATION_MIN_DAYS = 7
AUTOMATION_REMEDIATION_FLOOR = 20

NO_DATA_INSIGHT = "No historical data available for trend analysis"


def calculate_compliance_trends(points: list[ComplianceDataPoint]) -> ComplianceTrends:
    """Direction labels from the first and last data points."""
    if len(points) < 2:
        score_trend = "Stable"
        findings_trend = "Stable"
    else:
        first, last = points[0], points[-1]
        score_delta = last.compliance_score - first.compliance_score
        score_trend = "Improving" if score_delta > 0 else "Declining" if score_delta < 0 else "Stable"
        findings_delta = last.active_findings - first.active_findings
        findings_trend = (
            "Decreasing" if findings_delta < 0 else "Increasing" if findings_delta > 0 else "Stable"
        )

    remediated = sum(p.remediated_findings for p in points)
    if remediated > STRONG_REMEDIATION:
        remediation_rate = "High"
    elif remediated > 0:
        remediation_rate = "Moderate"
    else:
        remediation_rate = "None"

    return ComplianceTrends(
        compliance_score_trend=score_trend,
        findings_trend=findings_trend,
        remediation_rate=remediation_rate,
    )


def identify_significant_events(points: list[ComplianceDataPoint]) -> list[str]:
    events: list[str] = []
    if len(points) < 2:
        return events

    for previous, current in zip(points, points[1:]):
        day = f"{current.date:%Y-%m-%d}"

        score_delta = current.compliance_score - previous.compliance_score
        if score_delta >= SCORE_EVENT_DELTA:
            events.append(f"Compliance score improved by {score_delta:.1f}% on {day}")
        if score_delta <= -SCORE_EVENT_DELTA:
            events.append(f"Compliance score declined by {abs(score_delta):.1f}% on {day}")

        remediation_delta = current.remediated_findings - previous.remediated_findings
        if remediation_delta >= REMEDIATION_EVENT_DELTA:
            events.append(f"{remediation_delta} findings remediated on {day}")

        findings_delta = current.active_findings - previous.active_findings
        if findings_delta >= NEW_FINDINGS_EVENT_DELTA:
            events.append(f"{findings_delta} new findings discovered on {day}")

        # previous - current: positive means controls were fixed
        failed_delta = previous.controls_failed - current.controls_failed
        if failed_delta >= CONTROLS_FIXED_EVENT_DELTA:
            events.append(f"{failed_delta} controls brought into compliance on {day}")
        if failed_delta <= CONTROLS_FAILED_EVENT_DELTA:
            events.append(f"{abs(failed_delta)} additional controls failed on {day}")

    first, last = points[0], points[-1]
    if last.compliance_score >= HIGH_COMPLIANCE_MILESTONE > first.compliance_score:
        events.append(
            f"Achieved {last.compliance_score:.1f}% compliance (high compliance milestone)"
        )

    overall_delta = last.compliance_score - first.compliance_score
    if overall_delta >= PERIOD_SWING_MILESTONE:
        events.append(f"Overall compliance improved by {overall_delta:.1f}% over the period")
    elif overall_delta <= -PERIOD_SWING_MILESTONE:
        events.append(f"Overall compliance declined by {abs(overall_delta):.1f}% over the period")

    return events


def generate_timeline_insights(timeline: ComplianceTimeline) -> list[str]:
    points = timeline.data_points
    if not points:
        return [NO_DATA_INSIGHT]

    insights: list[str] = []
    first, last = points[0], points[-1]

    score_delta = last.compliance_score - first.compliance_score
    if score_delta > 0:
        insights.append(
            f"Compliance score improved by {score_delta:.1f}% over the period "
            f"(from {first.compliance_score:.1f}% to {last.compliance_score:.1f}%)"
        )
    elif score_delta < 0:
        insights.append(
            f"Compliance score declined by {abs(score_delta):.1f}% over the period - "
            "immediate action recommended"
        )
    else:
        insights.append("Compliance score remained stable over the period")

    remediated = sum(p.remediated_findings for p in points)
    if remediated > STRONG_REMEDIATION:
        insights.append(f"Strong remediation efforts: {remediated} total findings remediated")
    elif remediated > 0:
        insights.append(
            f"Moderate remediation progress: {remediated} findings remediated - "
            "consider accelerating efforts"
        )
    else:
        insights.append("No remediation activity detected - develop and execute remediation plan")

    controls_delta = last.controls_passed - first.controls_passed
    if controls_delta > CONTROLS_GAINED_INSIGHT:
        insights.append(
            f"Excellent progress: {controls_delta} additional controls brought into compliance"
        )
    elif controls_delta < CONTROLS_LOST_INSIGHT:
        insights.append(f"Control compliance degraded: {abs(controls_delta)} controls now failing")

    findings_delta = last.active_findings - first.active_findings
    if findings_delta < 0:
        insights.append(
            f"Positive trend: {abs(findings_delta)} fewer active findings than at the start of the period"
        )
    elif findings_delta > RISING_FINDINGS_INSIGHT:
        insights.append(
            f"Rising findings: {findings_delta} new active findings - investigate root causes"
        )

    if len(points) > 3:
        changes = [abs(b.compliance_score - a.compliance_score) for a, b in zip(points, points[1:])]
        volatility = sum(changes) / len(changes)
        if volatility > HIGH_VOLATILITY:
            insights.append(
                "High compliance score volatility detected - establish consistent compliance practices"
            )
        elif volatility < LOW_VOLATILITY:
            insights.append("Stable compliance posture maintained - continue current practices")

    if last.compliance_score < LOW_COMPLIANCE:
        insights.append(
            "Compliance below 70% - prioritize critical findings and develop "
            "comprehensive remediation plan"
        )
    elif last.compliance_score >= HIGH_COMPLIANCE:
        insights.append(
            f"Excellent compliance posture at {last.compliance_score:.1f}% - focus on "
            "maintaining this level and continuous improvement"
        )

    if len(points) >= AUTOMATION_MIN_DAYS and remediated < AUTOMATION_REMEDIATION_FLOOR:
        insights.append(
            "Consider implementing automated compliance monitoring and remediation "
            "to accelerate improvements"
        )

    trend = timeline.trends.compliance_score_trend if timeline.trends else None
    if trend == "Improving":
        insights.append("Compliance trajectory is positive - maintain current remediation velocity")
    elif trend == "Declining":
        insights.append("Compliance is declining - review recent changes and strengthen controls")

    return insights


class TimelineAnalyzer:
    def __init__(self, store: AssessmentStore):
        self.store = store

    async def build_data_point(self, tenant_id: str, day: dt.date) -> ComplianceDataPoint:
        return ComplianceDataPoint(
            date=day,
            compliance_score=await self.store.get_compliance_score_at(tenant_id, day),
            controls_failed=await self.store.get_failed_controls_at(tenant_id, day),
            controls_passed=await self.store.get_passed_controls_at(tenant_id, day),
            active_findings=await self.store.get_active_findings_at(tenant_id, day),
            remediated_findings=await self.store.get_remediated_findings_at(tenant_id, day),
            events=await self.store.get_events_at(tenant_id, day),
        )

    async def get_timeline(
        self,
        tenant_id: str,
        start_date: dt.date,
        end_date: dt.date,
        cancel: Optional[asyncio.Event] = None,
    ) -> ComplianceTimeline:
        """One data point per calendar day in ``[start_date, end_date]``."""
        timeline = ComplianceTimeline(
            tenant_id=tenant_id, start_date=start_date, end_date=end_date
        )

        day = start_date
        while day <= end_date:
            check_cancelled(cancel, "Timeline")
            timeline.data_points.append(await self.build_data_point(tenant_id, day))
            day += dt.timedelta(days=1)

        timeline.trends = calculate_compliance_trends(timeline.data_points)
        timeline.significant_events = identify_significant_events(timeline.data_points)
        timeline.insights = generate_timeline_insights(timeline)

        logger.info(
            "Built %d-day compliance timeline for tenant %s with %d significant events",
            len(timeline.data_points), tenant_id, len(timeline.significant_events),
        )
        return timeline
