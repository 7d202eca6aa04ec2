"""Standalone risk assessment data models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class CategoryRisk(BaseModel):
    category: str
    risk_score: float
    risk_level: str = "Minimal"
    vulnerabilities: list[str] = []
    mitigations: list[str] = []


class RiskMitigation(BaseModel):
    risk: str
    recommendation: str
    priority: str
    estimated_effort_hours: float = 0.0


class RiskAssessment(BaseModel):
    assessment_id: str
    tenant_id: str
    assessment_date: datetime
    risk_categories: dict[str, CategoryRisk] = {}
    overall_risk_score: float = 0.0
    risk_level: str = "Minimal"
    top_risks: list[str] = []
    mitigation_recommendations: list[RiskMitigation] = []
    risk_trend: Optional[str] = None
    executive_summary: Optional[str] = None
