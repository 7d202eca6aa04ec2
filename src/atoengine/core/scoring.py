"""Compliance and risk scoring.

Pure functions shared by the assessment orchestrator and the standalone
risk-assessment flow.
"""

from __future__ import annotations

from typing import Iterable

from ..models.assessment import Assessment, FamilyResult, RiskProfile
from ..models.finding import Finding, Severity
from ..models.risk import CategoryRisk

SEVERITY_WEIGHTS: dict[Severity, float] = {
    Severity.CRITICAL: 10.0,
    Severity.HIGH: 7.5,
    Severity.MEDIUM: 5.0,
    Severity.LOW: 2.5,
    Severity.INFORMATIONAL: 1.0,
}

RISK_CATEGORIES: list[str] = [
    "Data Protection",
    "Access Control",
    "Network Security",
    "Incident Response",
    "Business Continuity",
    "Compliance",
    "Third-Party Risk",
    "Configuration Management",
]

SEVERITY_ORDER: dict[Severity, int] = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
    Severity.INFORMATIONAL: 4,
}


def finding_risk_weight(finding: Finding) -> float:
    return SEVERITY_WEIGHTS.get(finding.severity, 1.0)


def count_passed_controls(control_ids: Iterable[str], findings: Iterable[Finding]) -> int:
    """Controls in this family with no finding against them.

    Affected ids are intersected with the family's own control ids
    (case-insensitive) before counting, so findings that reference another
    family's controls never reduce this family's passed count.
    """
    control_ids = list(control_ids)
    family_ids = {cid.lower() for cid in control_ids}
    affected = {
        cid.lower()
        for finding in findings
        for cid in finding.affected_controls
        if cid.lower() in family_ids
    }
    return max(0, len(control_ids) - len(affected))


def score_family(result: FamilyResult) -> FamilyResult:
    """Fill in total/passed controls and the compliance score of a family."""
    result.total_controls = len(result.control_ids)
    result.passed_controls = count_passed_controls(result.control_ids, result.findings)
    result.compliance_score = (
        result.passed_controls / result.total_controls * 100 if result.total_controls > 0 else 0.0
    )
    return result


def calculate_overall_score(results: Iterable[FamilyResult]) -> float:
    """Passed controls over total controls across all families.

    Families weigh in proportion to their control count; this is not the
    mean of per-family percentages.
    """
    results = list(results)
    total = sum(r.total_controls for r in results)
    passed = sum(r.passed_controls for r in results)
    return passed / total * 100 if total > 0 else 0.0


def calculate_risk_score(assessment: Assessment) -> float:
    return (
        assessment.critical_findings * 10
        + assessment.high_findings * 7.5
        + assessment.medium_findings * 5
        + assessment.low_findings * 2.5
    )


def determine_assessment_risk_level(assessment: Assessment) -> str:
    if assessment.critical_findings > 0:
        return "Critical"
    if assessment.high_findings > 5:
        return "High"
    if assessment.medium_findings > 10:
        return "Medium"
    return "Low"


def identify_assessment_top_risks(assessment: Assessment, limit: int = 5) -> list[str]:
    weak = [r for r in assessment.family_results.values() if r.compliance_score < 70]
    weak.sort(key=lambda r: r.compliance_score)
    return [f"{r.family}: {r.compliance_score:.1f}% compliant" for r in weak[:limit]]


def calculate_risk_profile(assessment: Assessment) -> RiskProfile:
    return RiskProfile(
        risk_level=determine_assessment_risk_level(assessment),
        risk_score=calculate_risk_score(assessment),
        top_risks=identify_assessment_top_risks(assessment),
    )


def determine_risk_level(risk_score: float) -> str:
    """Bucket a 0-10 risk score. Lower bounds are inclusive."""
    if risk_score >= 8:
        return "Critical"
    if risk_score >= 6:
        return "High"
    if risk_score >= 4:
        return "Medium"
    if risk_score >= 2:
        return "Low"
    return "Minimal"


def calculate_overall_risk_score(categories: Iterable[CategoryRisk]) -> float:
    scores = [c.risk_score for c in categories]
    return sum(scores) / len(scores) if scores else 0.0


def identify_category_top_risks(categories: dict[str, CategoryRisk], limit: int = 5) -> list[str]:
    risky = [(name, c) for name, c in categories.items() if c.risk_score > 7]
    risky.sort(key=lambda item: item[1].risk_score, reverse=True)
    return [f"{name}: {c.risk_level}" for name, c in risky[:limit]]


def generate_executive_summary(assessment: Assessment) -> str:
    risk_level = assessment.risk_profile.risk_level if assessment.risk_profile else "Unknown"
    return (
        f"ATO Compliance Assessment completed with {assessment.overall_score:.1f}% compliance. "
        f"Found {assessment.critical_findings} critical, {assessment.high_findings} high, "
        f"{assessment.medium_findings} medium, and {assessment.low_findings} low severity findings. "
        f"Risk level: {risk_level}"
    )
