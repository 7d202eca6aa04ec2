"""Public entry point for the ATO compliance engine.

``ComplianceEngine`` wires the resource cache, the handler registries and the
individual flows together and validates caller input before any collaborator
is touched.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import time
import uuid
from typing import Callable, Optional, Union

from ..models.assessment import Assessment, AssessmentSummary, AuditEntry
from ..models.certificate import ComplianceCertificate
from ..models.evidence import EvidencePackage
from ..models.finding import Finding, RemediationStatus
from ..models.monitoring import ContinuousComplianceStatus
from ..models.risk import CategoryRisk, RiskAssessment, RiskMitigation
from ..models.timeline import ComplianceTimeline
from ..providers.base import (
    AssessmentStore,
    CategoryRiskAssessor,
    ComplianceScanner,
    ControlCatalog,
    DefaultComplianceScanner,
    DefaultEvidenceCollector,
    EvidenceCollector,
    InventoryService,
    NoopStigValidator,
    StigValidator,
)
from .cache import RESOURCE_CACHE_TTL_SECONDS, ResourceCache
from .catalog import ALL_FAMILIES, DEFAULT_HANDLER
from .certificate import CertificateIssuer, verify_certificate
from .errors import ValidationError
from .evidence import EvidenceOrchestrator
from .monitoring import MonitoringTracker
from .orchestrator import AssessmentOrchestrator, ProgressSink, check_cancelled
from .registry import HandlerRegistry
from .scoring import (
    RISK_CATEGORIES,
    calculate_overall_risk_score,
    determine_risk_level,
    identify_category_top_risks,
)
from .timeline import TimelineAnalyzer

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_DAYS = 30
MITIGATION_PRIORITY = "High"
MITIGATION_EFFORT_HOURS = 8.0

# Control families whose scores drive each standalone risk category.
CATEGORY_FAMILIES: dict[str, list[str]] = {
    "Data Protection": ["SC", "MP"],
    "Access Control": ["AC", "IA"],
    "Network Security": ["SC"],
    "Incident Response": ["IR"],
    "Business Continuity": ["CP"],
    "Compliance": ["CA", "PL", "PM"],
    "Third-Party Risk": ["SA", "PS"],
    "Configuration Management": ["CM", "SI"],
}

DateLike = Union[dt.date, dt.datetime]


class FindingsCategoryRiskAssessor:
    """Derives category risk from the latest assessment's family scores.

    Risk is ``10 * (1 - mean family score / 100)``; a tenant with no
    assessment, or a category with no scored families, carries no risk.
    """

    def __init__(self, store: AssessmentStore):
        self.store = store

    async def assess_category(self, tenant_id: str, category: str) -> CategoryRisk:
        assessment = await self.store.get_latest_assessment(tenant_id)
        families = CATEGORY_FAMILIES.get(category, [])
        if assessment is None:
            return CategoryRisk(category=category, risk_score=0.0)

        results = [
            assessment.family_results[f] for f in families
            if f in assessment.family_results and assessment.family_results[f].total_controls > 0
        ]
        if not results:
            return CategoryRisk(category=category, risk_score=0.0)

        mean_score = sum(r.compliance_score for r in results) / len(results)
        risk_score = round(10 * (1 - mean_score / 100), 2)

        vulnerabilities = [
            f"{r.family}: {r.compliance_score:.1f}% compliant" for r in results if r.compliance_score < 100
        ]
        mitigations: list[str] = []
        for result in results:
            for finding in result.findings:
                if finding.recommendation and finding.recommendation not in mitigations:
                    mitigations.append(finding.recommendation)

        return CategoryRisk(
            category=category,
            risk_score=risk_score,
            risk_level=determine_risk_level(risk_score),
            vulnerabilities=vulnerabilities,
            mitigations=mitigations[:5],
        )


def _require(value: Optional[str], name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")
    return value


def _as_date(value: DateLike) -> dt.date:
    return value.date() if isinstance(value, dt.datetime) else value


def _as_datetime(value: DateLike) -> dt.datetime:
    if isinstance(value, dt.datetime):
        return value if value.tzinfo else value.replace(tzinfo=dt.timezone.utc)
    return dt.datetime.combine(value, dt.time.min, tzinfo=dt.timezone.utc)


def _require_range(start: DateLike, end: DateLike) -> None:
    if _as_datetime(start) > _as_datetime(end):
        raise ValidationError(f"Start date {start} is after end date {end}")


def generate_risk_summary(assessment: RiskAssessment) -> str:
    return (
        f"Risk assessment identified overall risk level as {assessment.risk_level} "
        f"with risk score {assessment.overall_risk_score:.1f}/10. "
        f"Assessment completed at {assessment.assessment_date:%Y-%m-%d %H:%M:%S} UTC."
    )


def calculate_risk_trend(history: list[AssessmentSummary]) -> str:
    """Compare the two most recent history rows; a rising score means falling risk."""
    if len(history) < 2:
        return "Unknown"
    ordered = sorted(history, key=lambda h: h.completed_at)
    previous, latest = ordered[-2], ordered[-1]
    if latest.overall_score > previous.overall_score:
        return "Improving"
    if latest.overall_score < previous.overall_score:
        return "Declining"
    return "Stable"


class ComplianceEngine:
    """Facade over every compliance flow for one set of collaborators."""

    def __init__(
        self,
        inventory: InventoryService,
        catalog: ControlCatalog,
        store: AssessmentStore,
        scanners: Optional[dict[str, ComplianceScanner]] = None,
        collectors: Optional[dict[str, EvidenceCollector]] = None,
        stig_validator: Optional[StigValidator] = None,
        risk_assessor: Optional[CategoryRiskAssessor] = None,
        cache_ttl_seconds: float = RESOURCE_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.cache = ResourceCache(inventory, ttl_seconds=cache_ttl_seconds, clock=clock)

        scanner_map: dict[str, ComplianceScanner] = {DEFAULT_HANDLER: DefaultComplianceScanner()}
        scanner_map.update(scanners or {})
        self.scanners = HandlerRegistry(scanner_map, kind="scanner")

        collector_map: dict[str, EvidenceCollector] = {DEFAULT_HANDLER: DefaultEvidenceCollector()}
        collector_map.update(collectors or {})
        self.collectors = HandlerRegistry(collector_map, kind="evidence collector")

        self.risk_assessor = risk_assessor or FindingsCategoryRiskAssessor(store)

        self.assessments = AssessmentOrchestrator(
            self.cache, catalog, self.scanners, stig_validator or NoopStigValidator(), store
        )
        self.evidence = EvidenceOrchestrator(self.cache, self.collectors, store)
        self.monitoring = MonitoringTracker(store)
        self.timeline = TimelineAnalyzer(store)
        self.certificates = CertificateIssuer(store)

    async def run_comprehensive_assessment(
        self,
        tenant_id: str,
        resource_group: Optional[str] = None,
        progress: Optional[ProgressSink] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Assessment:
        _require(tenant_id, "Tenant id")
        if resource_group is not None and not resource_group.strip():
            resource_group = None
        return await self.assessments.run_comprehensive_assessment(
            tenant_id, resource_group, progress=progress, cancel=cancel
        )

    async def get_continuous_compliance_status(
        self, tenant_id: str, cancel: Optional[asyncio.Event] = None
    ) -> ContinuousComplianceStatus:
        _require(tenant_id, "Tenant id")
        return await self.monitoring.get_continuous_status(tenant_id, cancel=cancel)

    async def collect_compliance_evidence(
        self,
        tenant_id: str,
        family: str = ALL_FAMILIES,
        collected_by: str = "",
        progress: Optional[ProgressSink] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> EvidencePackage:
        _require(tenant_id, "Tenant id")
        _require(family, "Control family")
        return await self.evidence.collect_evidence(
            tenant_id, family.strip(), collected_by, progress=progress, cancel=cancel
        )

    async def get_compliance_timeline(
        self,
        tenant_id: str,
        start_date: DateLike,
        end_date: DateLike,
        cancel: Optional[asyncio.Event] = None,
    ) -> ComplianceTimeline:
        _require(tenant_id, "Tenant id")
        _require_range(start_date, end_date)
        return await self.timeline.get_timeline(
            tenant_id, _as_date(start_date), _as_date(end_date), cancel=cancel
        )

    async def perform_risk_assessment(
        self, tenant_id: str, cancel: Optional[asyncio.Event] = None
    ) -> RiskAssessment:
        _require(tenant_id, "Tenant id")
        logger.info("Performing risk assessment for tenant %s", tenant_id)

        assessment = RiskAssessment(
            assessment_id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            assessment_date=dt.datetime.now(dt.timezone.utc),
        )
        for category in RISK_CATEGORIES:
            check_cancelled(cancel, "Risk assessment")
            assessment.risk_categories[category] = await self.risk_assessor.assess_category(
                tenant_id, category
            )

        assessment.overall_risk_score = calculate_overall_risk_score(
            assessment.risk_categories.values()
        )
        assessment.risk_level = determine_risk_level(assessment.overall_risk_score)
        assessment.top_risks = identify_category_top_risks(assessment.risk_categories)
        assessment.mitigation_recommendations = [
            RiskMitigation(
                risk=risk,
                recommendation=f"Implement controls to address {risk}",
                priority=MITIGATION_PRIORITY,
                estimated_effort_hours=MITIGATION_EFFORT_HOURS,
            )
            for risk in assessment.top_risks
        ]

        history = await self.store.get_compliance_history(
            tenant_id, dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc), assessment.assessment_date
        )
        assessment.risk_trend = calculate_risk_trend(history)
        assessment.executive_summary = generate_risk_summary(assessment)
        return assessment

    async def generate_compliance_certificate(
        self, tenant_id: str, cancel: Optional[asyncio.Event] = None
    ) -> ComplianceCertificate:
        _require(tenant_id, "Tenant id")
        return await self.certificates.issue_certificate(tenant_id, cancel=cancel)

    def verify_certificate(self, certificate: ComplianceCertificate) -> bool:
        return verify_certificate(certificate)

    def _history_window(
        self, start: Optional[DateLike], end: Optional[DateLike]
    ) -> tuple[dt.datetime, dt.datetime]:
        end_dt = _as_datetime(end) if end is not None else dt.datetime.now(dt.timezone.utc)
        if start is None:
            start_dt = end_dt - dt.timedelta(days=DEFAULT_HISTORY_DAYS)
        else:
            start_dt = _as_datetime(start)
        if end is not None and not isinstance(end, dt.datetime):
            # A bare end date covers that whole day
            end_dt = end_dt + dt.timedelta(days=1) - dt.timedelta(microseconds=1)
        _require_range(start_dt, end_dt)
        return start_dt, end_dt

    async def get_compliance_history(
        self,
        tenant_id: str,
        start: Optional[DateLike] = None,
        end: Optional[DateLike] = None,
    ) -> list[AssessmentSummary]:
        _require(tenant_id, "Tenant id")
        start_dt, end_dt = self._history_window(start, end)
        return await self.store.get_compliance_history(tenant_id, start_dt, end_dt)

    async def get_assessment_audit_log(
        self,
        tenant_id: str,
        start: Optional[DateLike] = None,
        end: Optional[DateLike] = None,
    ) -> list[AuditEntry]:
        _require(tenant_id, "Tenant id")
        start_dt, end_dt = self._history_window(start, end)
        return await self.store.get_audit_log(tenant_id, start_dt, end_dt)

    async def get_unresolved_findings(self, tenant_id: str) -> list[Finding]:
        """Findings across the tenant's assessments whose remediation is not complete."""
        _require(tenant_id, "Tenant id")
        assessments = await self.store.get_assessments(tenant_id)
        return [
            f
            for assessment in assessments
            for f in assessment.all_findings()
            if f.remediation_status != RemediationStatus.COMPLETED
        ]

    async def get_finding_by_id(self, tenant_id: str, finding_id: str) -> Optional[Finding]:
        _require(tenant_id, "Tenant id")
        _require(finding_id, "Finding id")
        for assessment in await self.store.get_assessments(tenant_id):
            for finding in assessment.all_findings():
                if finding.id == finding_id:
                    return finding
        return None

    async def update_finding_status(
        self,
        tenant_id: str,
        finding_id: str,
        status: RemediationStatus = RemediationStatus.COMPLETED,
    ) -> bool:
        """Record a finding as remediated. Returns False if it was not found."""
        _require(tenant_id, "Tenant id")
        _require(finding_id, "Finding id")
        if RemediationStatus(status) != RemediationStatus.COMPLETED:
            raise ValidationError(
                f"Unsupported finding status {status}; only {RemediationStatus.COMPLETED.value} can be recorded"
            )
        return await self.store.resolve_finding(tenant_id, finding_id)
