"""Markdown assessment report."""

from __future__ import annotations

from typing import Optional

from ..core.scoring import SEVERITY_ORDER
from ..models.assessment import Assessment
from ..models.certificate import ComplianceCertificate


def generate_assessment_report(
    assessment: Assessment,
    certificate: Optional[ComplianceCertificate] = None,
    dry_run: bool = False,
) -> str:
    """Render an assessment as a Markdown report."""
    lines: list[str] = []
    lines.append("# ATO Compliance Assessment Report")
    lines.append("")
    lines.append(f"**Tenant:** {assessment.tenant_id}")
    if assessment.resource_group:
        lines.append(f"**Resource group:** {assessment.resource_group}")
    lines.append(f"**Assessment:** {assessment.assessment_id}")
    lines.append(f"**Started:** {assessment.start_time:%Y-%m-%d %H:%M:%S} UTC")
    if assessment.end_time:
        duration = (assessment.end_time - assessment.start_time).total_seconds()
        lines.append(f"**Duration:** {round(duration, 1)}s")
    lines.append(f"**Overall score:** {assessment.overall_score:.1f}%")
    if assessment.risk_profile:
        lines.append(
            f"**Risk:** {assessment.risk_profile.risk_level} "
            f"(score {assessment.risk_profile.risk_score:.1f})"
        )
    if dry_run:
        lines.append("**Mode:** DRY RUN (mock collaborators)")
    lines.append("")

    if assessment.executive_summary:
        lines.append("## Executive Summary")
        lines.append("")
        lines.append(assessment.executive_summary)
        lines.append("")

    lines.append("## Findings by Severity")
    lines.append("")
    lines.append("| Severity | Count |")
    lines.append("|----------|-------|")
    lines.append(f"| Critical | {assessment.critical_findings} |")
    lines.append(f"| High | {assessment.high_findings} |")
    lines.append(f"| Medium | {assessment.medium_findings} |")
    lines.append(f"| Low | {assessment.low_findings} |")
    lines.append(f"| Informational | {assessment.informational_findings} |")
    lines.append(f"| **Total** | **{assessment.total_findings}** |")
    lines.append("")

    lines.append("## Control Families")
    lines.append("")
    lines.append("| Family | Name | Controls | Passed | Score | Findings |")
    lines.append("|--------|------|----------|--------|-------|----------|")
    for family, result in assessment.family_results.items():
        lines.append(
            f"| {family} | {result.family_name} | {result.total_controls} | "
            f"{result.passed_controls} | {result.compliance_score:.1f}% | {len(result.findings)} |"
        )
    lines.append("")

    if assessment.risk_profile and assessment.risk_profile.top_risks:
        lines.append("## Top Risks")
        lines.append("")
        for risk in assessment.risk_profile.top_risks:
            lines.append(f"- {risk}")
        lines.append("")

    findings = sorted(assessment.all_findings(), key=lambda f: SEVERITY_ORDER.get(f.severity, 5))
    if findings:
        lines.append("## Findings Detail")
        lines.append("")
        for f in findings:
            lines.append(f"### {f.id}: {f.title or f.rule_id} [{f.severity.value}]")
            if f.affected_controls:
                lines.append(f"**Controls:** {', '.join(f.affected_controls)}")
            if f.resource_id:
                lines.append(f"**Resource:** `{f.resource_id}`")
            if f.source != "scanner":
                lines.append(f"**Source:** {f.source.upper()}")
            lines.append(f"**Status:** {f.remediation_status.value}")
            if f.description:
                lines.append(f"\n{f.description}")
            if f.recommendation:
                lines.append(f"\n**Recommendation:** {f.recommendation}")
            lines.append("")

    if certificate:
        lines.append("## Certificate")
        lines.append("")
        lines.append(f"**Certificate:** {certificate.certificate_id}")
        lines.append(f"**Valid until:** {certificate.valid_until:%Y-%m-%d}")
        lines.append(f"**Verification hash:** `{certificate.verification_hash}`")
        lines.append("")

    lines.append("---")
    lines.append(f"*Generated by ato-engine for assessment {assessment.assessment_id}*")

    return "\n".join(lines)
