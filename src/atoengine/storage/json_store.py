"""File-backed assessment store.

Layout under the store root::

    assessments/<assessment_id>.json
    evidence/<package_id>.json
    certificates/<certificate_id>.json
    monitoring.json     per-tenant monitored controls and alerts
    audit.json          append-only audit entries
"""

from __future__ import annotations

import datetime as dt
import json
import logging
from pathlib import Path
from typing import Optional

from ..core.monitoring import calculate_alert_due_date
from ..core.scoring import SEVERITY_ORDER
from ..models.assessment import Assessment, AssessmentSummary, AuditEntry
from ..models.certificate import ComplianceCertificate
from ..models.evidence import EvidencePackage
from ..models.finding import Finding, RemediationStatus
from ..models.monitoring import ComplianceAlert, MonitoredControl

logger = logging.getLogger(__name__)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _end_of_day(day: dt.date) -> dt.datetime:
    return dt.datetime.combine(day, dt.time.max, tzinfo=dt.timezone.utc)


def _completed_at(assessment: Assessment) -> dt.datetime:
    return assessment.end_time or assessment.start_time


class JsonAssessmentStore:
    """Implements the assessment store contract over a directory of JSON files."""

    def __init__(self, root: Path):
        self.root = Path(root)

    # -- paths -----------------------------------------------------------

    @property
    def assessments_dir(self) -> Path:
        return self.root / "assessments"

    @property
    def evidence_dir(self) -> Path:
        return self.root / "evidence"

    @property
    def certificates_dir(self) -> Path:
        return self.root / "certificates"

    @property
    def monitoring_path(self) -> Path:
        return self.root / "monitoring.json"

    @property
    def audit_path(self) -> Path:
        return self.root / "audit.json"

    # -- low-level I/O ---------------------------------------------------

    @staticmethod
    def _write_json(path: Path, data) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

    @staticmethod
    def _read_json(path: Path, default):
        if not path.exists():
            return default
        return json.loads(path.read_text(encoding="utf-8-sig"))

    def _load_assessments(self, tenant_id: str) -> list[Assessment]:
        if not self.assessments_dir.exists():
            return []
        assessments = []
        for path in sorted(self.assessments_dir.glob("*.json")):
            assessment = Assessment.model_validate_json(path.read_text(encoding="utf-8"))
            if assessment.tenant_id == tenant_id:
                assessments.append(assessment)
        assessments.sort(key=_completed_at)
        return assessments

    def _write_assessment(self, assessment: Assessment) -> None:
        path = self.assessments_dir / f"{assessment.assessment_id}.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(assessment.model_dump_json(indent=2), encoding="utf-8")

    def _append_audit(self, entry: AuditEntry) -> None:
        entries = self._read_json(self.audit_path, [])
        entries.append(entry.model_dump(mode="json"))
        self._write_json(self.audit_path, entries)

    def _load_audit(self, tenant_id: str) -> list[AuditEntry]:
        return [
            AuditEntry.model_validate(e)
            for e in self._read_json(self.audit_path, [])
            if e.get("tenant_id") == tenant_id
        ]

    def _load_monitoring(self) -> dict:
        return self._read_json(self.monitoring_path, {})

    # -- saves -----------------------------------------------------------

    async def save_assessment(self, assessment: Assessment) -> None:
        self._write_assessment(assessment)
        self._update_monitoring(assessment)
        self._append_audit(AuditEntry(
            timestamp=_completed_at(assessment),
            tenant_id=assessment.tenant_id,
            action="AssessmentCompleted",
            reference_id=assessment.assessment_id,
            details=(
                f"Score {assessment.overall_score:.1f}%, {assessment.total_findings} findings "
                f"({assessment.critical_findings} critical, {assessment.high_findings} high)"
            ),
        ))
        logger.info(
            "Persisted assessment %s with %d findings",
            assessment.assessment_id, assessment.total_findings,
        )

    async def save_evidence_package(self, package: EvidencePackage) -> None:
        path = self.evidence_dir / f"{package.package_id}.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(package.model_dump_json(indent=2), encoding="utf-8")
        self._append_audit(AuditEntry(
            timestamp=package.collection_end_time or package.collection_start_time,
            tenant_id=package.tenant_id,
            action="EvidenceCollected",
            reference_id=package.package_id,
            details=(
                f"{len(package.evidence)} evidence items for {package.control_family} "
                f"({package.completeness_score:.1f}% complete)"
            ),
        ))

    async def save_certificate(self, certificate: ComplianceCertificate) -> None:
        path = self.certificates_dir / f"{certificate.certificate_id}.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(certificate.model_dump_json(indent=2), encoding="utf-8")
        self._append_audit(AuditEntry(
            timestamp=certificate.issued_at,
            tenant_id=certificate.tenant_id,
            action="CertificateIssued",
            reference_id=certificate.certificate_id,
            details=f"Valid until {certificate.valid_until:%Y-%m-%d}",
        ))

    def load_certificate(self, certificate_id: str) -> Optional[ComplianceCertificate]:
        path = self.certificates_dir / f"{certificate_id}.json"
        if not path.exists():
            return None
        return ComplianceCertificate.model_validate_json(path.read_text(encoding="utf-8"))

    def _update_monitoring(self, assessment: Assessment) -> None:
        """Refresh monitored-control state from a newly saved assessment.

        A control that was Compliant and is now affected by a finding is
        flagged as drifted and raises an alert at the worst affecting severity.
        """
        checked_at = _completed_at(assessment)
        monitoring = self._load_monitoring()
        tenant_state = monitoring.setdefault(assessment.tenant_id, {"controls": {}, "alerts": []})
        controls: dict = tenant_state["controls"]

        worst: dict[str, Finding] = {}
        auto: dict[str, bool] = {}
        for finding in assessment.all_findings():
            for cid in finding.affected_controls:
                current = worst.get(cid)
                if current is None or SEVERITY_ORDER[finding.severity] < SEVERITY_ORDER[current.severity]:
                    worst[cid] = finding
                auto[cid] = auto.get(cid, False) or finding.auto_remediable

        known_ids = [cid for r in assessment.family_results.values() for cid in r.control_ids]
        for cid in dict.fromkeys(known_ids + list(worst)):
            previous = controls.get(cid)
            if cid in worst:
                was_compliant = previous is not None and previous["compliance_status"] == "Compliant"
                drifted = was_compliant or bool(previous and previous["drift_detected"])
                if was_compliant:
                    finding = worst[cid]
                    alert = ComplianceAlert(
                        control_id=cid,
                        severity=finding.severity.value,
                        title=f"Control {cid} drifted out of compliance",
                        message=finding.title or finding.description,
                        detected_at=checked_at,
                        due_date=calculate_alert_due_date(finding.severity.value, checked_at),
                    )
                    tenant_state["alerts"].append(alert.model_dump(mode="json"))
                    logger.warning("Compliance drift detected on control %s (%s)", cid, finding.severity.value)
                status = "NonCompliant"
            else:
                drifted = False
                status = "Compliant"

            controls[cid] = MonitoredControl(
                control_id=cid,
                last_checked=checked_at,
                compliance_status=status,
                drift_detected=drifted,
                auto_remediation_enabled=auto.get(cid, False),
            ).model_dump(mode="json")

        self._write_json(self.monitoring_path, monitoring)

    # -- reads -----------------------------------------------------------

    async def get_assessments(self, tenant_id: str) -> list[Assessment]:
        return self._load_assessments(tenant_id)

    async def get_latest_assessment(self, tenant_id: str) -> Optional[Assessment]:
        completed = [a for a in self._load_assessments(tenant_id) if a.error is None]
        return completed[-1] if completed else None

    def _assessment_at(self, tenant_id: str, day: dt.date) -> Optional[Assessment]:
        cutoff = _end_of_day(day)
        candidates = [
            a for a in self._load_assessments(tenant_id)
            if a.error is None and _completed_at(a) <= cutoff
        ]
        return candidates[-1] if candidates else None

    async def get_compliance_score_at(self, tenant_id: str, day: dt.date) -> float:
        assessment = self._assessment_at(tenant_id, day)
        return assessment.overall_score if assessment else 0.0

    async def get_failed_controls_at(self, tenant_id: str, day: dt.date) -> int:
        assessment = self._assessment_at(tenant_id, day)
        if assessment is None:
            return 0
        return sum(r.total_controls - r.passed_controls for r in assessment.family_results.values())

    async def get_passed_controls_at(self, tenant_id: str, day: dt.date) -> int:
        assessment = self._assessment_at(tenant_id, day)
        if assessment is None:
            return 0
        return sum(r.passed_controls for r in assessment.family_results.values())

    async def get_active_findings_at(self, tenant_id: str, day: dt.date) -> int:
        assessment = self._assessment_at(tenant_id, day)
        if assessment is None:
            return 0
        cutoff = _end_of_day(day)
        return sum(
            1 for f in assessment.all_findings()
            if f.remediated_at is None or f.remediated_at > cutoff
        )

    async def get_remediated_findings_at(self, tenant_id: str, day: dt.date) -> int:
        return sum(
            1
            for a in self._load_assessments(tenant_id)
            for f in a.all_findings()
            if f.remediated_at is not None and f.remediated_at.date() == day
        )

    async def get_events_at(self, tenant_id: str, day: dt.date) -> list[str]:
        return [
            f"{e.action}: {e.details}" if e.details else e.action
            for e in self._load_audit(tenant_id)
            if e.timestamp.date() == day
        ]

    async def get_monitored_controls(self, tenant_id: str) -> list[MonitoredControl]:
        tenant_state = self._load_monitoring().get(tenant_id, {})
        return [MonitoredControl.model_validate(c) for c in tenant_state.get("controls", {}).values()]

    async def get_control_alerts(
        self, tenant_id: str, control_id: str, limit: int
    ) -> list[ComplianceAlert]:
        tenant_state = self._load_monitoring().get(tenant_id, {})
        alerts = [
            ComplianceAlert.model_validate(a)
            for a in tenant_state.get("alerts", [])
            if a.get("control_id") == control_id and not a.get("acknowledged", False)
        ]
        alerts.sort(key=lambda a: a.detected_at, reverse=True)
        return alerts[:limit]

    async def count_auto_remediated_findings(self, tenant_id: str) -> int:
        return sum(
            1
            for a in self._load_assessments(tenant_id)
            for f in a.all_findings()
            if f.auto_remediable and f.remediation_status == RemediationStatus.COMPLETED
        )

    async def get_compliance_history(
        self, tenant_id: str, start: dt.datetime, end: dt.datetime
    ) -> list[AssessmentSummary]:
        return [
            AssessmentSummary(
                assessment_id=a.assessment_id,
                tenant_id=a.tenant_id,
                resource_group=a.resource_group,
                completed_at=_completed_at(a),
                overall_score=a.overall_score,
                summary=a.findings_summary(),
            )
            for a in self._load_assessments(tenant_id)
            if a.error is None and start <= _completed_at(a) <= end
        ]

    async def get_audit_log(
        self, tenant_id: str, start: dt.datetime, end: dt.datetime
    ) -> list[AuditEntry]:
        entries = [e for e in self._load_audit(tenant_id) if start <= e.timestamp <= end]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries

    async def resolve_finding(self, tenant_id: str, finding_id: str) -> bool:
        """Mark every stored copy of a finding as remediated now."""
        resolved_at = _utcnow()
        found = False
        for assessment in self._load_assessments(tenant_id):
            changed = False
            for finding in assessment.all_findings():
                if finding.id == finding_id and finding.remediation_status != RemediationStatus.COMPLETED:
                    finding.remediation_status = RemediationStatus.COMPLETED
                    finding.remediated_at = resolved_at
                    changed = True
                found = found or finding.id == finding_id
            if changed:
                self._write_assessment(assessment)

        if found:
            self._append_audit(AuditEntry(
                timestamp=resolved_at,
                tenant_id=tenant_id,
                action="FindingResolved",
                reference_id=finding_id,
            ))
        else:
            logger.warning("Finding %s not found for tenant %s", finding_id, tenant_id)
        return found
