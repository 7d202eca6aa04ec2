"""Collaborator contracts consumed by the engine, plus default handlers.

Every collaborator is asynchronous. Concrete cloud scanners, evidence
collectors and storage backends implement these protocols; the engine never
inspects their types.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional, Protocol, runtime_checkable

from ..models.assessment import Assessment, AssessmentSummary, AuditEntry
from ..models.certificate import ComplianceCertificate
from ..models.control import Control
from ..models.evidence import Evidence, EvidencePackage
from ..models.finding import Finding
from ..models.monitoring import ComplianceAlert, MonitoredControl
from ..models.risk import CategoryRisk

logger = logging.getLogger(__name__)


@runtime_checkable
class InventoryService(Protocol):
    async def list_resource_groups(self, tenant_id: str) -> list[dict]: ...


@runtime_checkable
class ControlCatalog(Protocol):
    async def get_controls_by_family(self, family: str) -> list[Control]: ...


@runtime_checkable
class ComplianceScanner(Protocol):
    """Scans a single control for one control family."""

    async def scan_control(self, tenant_id: str, control: Control) -> list[Finding]: ...

    async def scan_control_in_group(
        self, tenant_id: str, resource_group: str, control: Control
    ) -> list[Finding]: ...


@runtime_checkable
class EvidenceCollector(Protocol):
    """Gathers the five evidence categories for one control family."""

    async def collect_configuration_evidence(
        self, tenant_id: str, family: str, collected_by: str
    ) -> list[Evidence]: ...

    async def collect_log_evidence(
        self, tenant_id: str, family: str, collected_by: str
    ) -> list[Evidence]: ...

    async def collect_metric_evidence(
        self, tenant_id: str, family: str, collected_by: str
    ) -> list[Evidence]: ...

    async def collect_policy_evidence(
        self, tenant_id: str, family: str, collected_by: str
    ) -> list[Evidence]: ...

    async def collect_access_control_evidence(
        self, tenant_id: str, family: str, collected_by: str
    ) -> list[Evidence]: ...


@runtime_checkable
class StigValidator(Protocol):
    async def validate_family_stigs(
        self, tenant_id: str, resource_group: Optional[str], family: str
    ) -> list[Finding]: ...


@runtime_checkable
class CategoryRiskAssessor(Protocol):
    async def assess_category(self, tenant_id: str, category: str) -> CategoryRisk: ...


@runtime_checkable
class AssessmentStore(Protocol):
    """Historical and assessment persistence."""

    async def save_assessment(self, assessment: Assessment) -> None: ...

    async def save_evidence_package(self, package: EvidencePackage) -> None: ...

    async def save_certificate(self, certificate: ComplianceCertificate) -> None: ...

    async def get_latest_assessment(self, tenant_id: str) -> Optional[Assessment]: ...

    async def get_assessments(self, tenant_id: str) -> list[Assessment]: ...

    async def get_compliance_score_at(self, tenant_id: str, day: date) -> float: ...

    async def get_failed_controls_at(self, tenant_id: str, day: date) -> int: ...

    async def get_passed_controls_at(self, tenant_id: str, day: date) -> int: ...

    async def get_active_findings_at(self, tenant_id: str, day: date) -> int: ...

    async def get_remediated_findings_at(self, tenant_id: str, day: date) -> int: ...

    async def get_events_at(self, tenant_id: str, day: date) -> list[str]: ...

    async def get_monitored_controls(self, tenant_id: str) -> list[MonitoredControl]: ...

    async def get_control_alerts(
        self, tenant_id: str, control_id: str, limit: int
    ) -> list[ComplianceAlert]: ...

    async def count_auto_remediated_findings(self, tenant_id: str) -> int: ...

    async def get_compliance_history(
        self, tenant_id: str, start: datetime, end: datetime
    ) -> list[AssessmentSummary]: ...

    async def get_audit_log(
        self, tenant_id: str, start: datetime, end: datetime
    ) -> list[AuditEntry]: ...

    async def resolve_finding(self, tenant_id: str, finding_id: str) -> bool: ...


class DefaultComplianceScanner:
    """Fallback scanner for families without a dedicated implementation."""

    name = "default"

    async def scan_control(self, tenant_id: str, control: Control) -> list[Finding]:
        logger.debug("No dedicated scanner for control %s; reporting no findings", control.id)
        return []

    async def scan_control_in_group(
        self, tenant_id: str, resource_group: str, control: Control
    ) -> list[Finding]:
        return await self.scan_control(tenant_id, control)


class DefaultEvidenceCollector:
    """Fallback collector; produces no evidence."""

    name = "default"

    async def collect_configuration_evidence(
        self, tenant_id: str, family: str, collected_by: str
    ) -> list[Evidence]:
        return []

    async def collect_log_evidence(
        self, tenant_id: str, family: str, collected_by: str
    ) -> list[Evidence]:
        return []

    async def collect_metric_evidence(
        self, tenant_id: str, family: str, collected_by: str
    ) -> list[Evidence]:
        return []

    async def collect_policy_evidence(
        self, tenant_id: str, family: str, collected_by: str
    ) -> list[Evidence]:
        return []

    async def collect_access_control_evidence(
        self, tenant_id: str, family: str, collected_by: str
    ) -> list[Evidence]:
        return []


class NoopStigValidator:
    async def validate_family_stigs(
        self, tenant_id: str, resource_group: Optional[str], family: str
    ) -> list[Finding]:
        return []


def handler_name(handler: object) -> str:
    """Display name for a scanner or collector in progress messages."""
    return getattr(handler, "name", None) or type(handler).__name__
