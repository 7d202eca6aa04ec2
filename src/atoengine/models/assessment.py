"""Assessment run data models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from .finding import Finding, FindingSummary


class FamilyResult(BaseModel):
    """Scan results for one control family."""

    family: str
    family_name: str
    findings: list[Finding] = []
    control_ids: list[str] = []
    total_controls: int = 0
    passed_controls: int = 0
    compliance_score: float = 0.0


class RiskProfile(BaseModel):
    risk_level: str
    risk_score: float = 0.0
    top_risks: list[str] = []


class Assessment(BaseModel):
    assessment_id: str
    tenant_id: str
    resource_group: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    family_results: dict[str, FamilyResult] = {}
    overall_score: float = 0.0
    total_findings: int = 0
    critical_findings: int = 0
    high_findings: int = 0
    medium_findings: int = 0
    low_findings: int = 0
    informational_findings: int = 0
    executive_summary: Optional[str] = None
    risk_profile: Optional[RiskProfile] = None
    error: Optional[str] = None

    def all_findings(self) -> list[Finding]:
        return [f for result in self.family_results.values() for f in result.findings]

    def findings_summary(self) -> FindingSummary:
        return FindingSummary(
            critical=self.critical_findings,
            high=self.high_findings,
            medium=self.medium_findings,
            low=self.low_findings,
            informational=self.informational_findings,
            total=self.total_findings,
        )


class AssessmentProgress(BaseModel):
    total_families: int
    completed_families: int
    current_family: str
    message: str = ""


class AssessmentSummary(BaseModel):
    """One row of compliance history."""

    assessment_id: str
    tenant_id: str
    resource_group: Optional[str] = None
    completed_at: datetime
    overall_score: float
    summary: FindingSummary = FindingSummary()


class AuditEntry(BaseModel):
    timestamp: datetime
    tenant_id: str
    action: str
    reference_id: str = ""
    details: str = ""
