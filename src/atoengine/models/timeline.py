"""Compliance timeline data models."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel


class ComplianceDataPoint(BaseModel):
    date: dt.date
    compliance_score: float = 0.0
    controls_failed: int = 0
    controls_passed: int = 0
    active_findings: int = 0
    remediated_findings: int = 0
    events: list[str] = []


class ComplianceTrends(BaseModel):
    compliance_score_trend: str
    findings_trend: str
    remediation_rate: str


class ComplianceTimeline(BaseModel):
    tenant_id: str
    start_date: dt.date
    end_date: dt.date
    data_points: list[ComplianceDataPoint] = []
    trends: ComplianceTrends | None = None
    significant_events: list[str] = []
    insights: list[str] = []
