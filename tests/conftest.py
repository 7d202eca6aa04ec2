"""Shared fixtures and in-memory collaborators for ATO engine tests."""

from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path
from typing import Optional

import pytest

from atoengine.core.engine import ComplianceEngine
from atoengine.models.assessment import Assessment, AssessmentSummary, AuditEntry, FamilyResult
from atoengine.models.control import Control
from atoengine.models.evidence import Evidence, EvidenceType
from atoengine.models.finding import Finding, RemediationStatus, Severity
from atoengine.models.monitoring import ComplianceAlert, MonitoredControl
from atoengine.models.timeline import ComplianceDataPoint


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeInventory:
    def __init__(self, groups: Optional[list[dict]] = None):
        self.groups = groups if groups is not None else [{"name": "rg-app"}, {"name": "rg-data"}]
        self.calls: list[str] = []

    async def list_resource_groups(self, tenant_id: str) -> list[dict]:
        self.calls.append(tenant_id)
        return list(self.groups)


class FakeCatalog:
    """``controls_per_family`` controls per family, named ``<family>-<n>``."""

    def __init__(
        self,
        controls_per_family: int = 2,
        overrides: Optional[dict[str, list[str]]] = None,
        fail_on: Optional[str] = None,
    ):
        self.controls_per_family = controls_per_family
        self.overrides = overrides or {}
        self.fail_on = fail_on
        self.calls: list[str] = []

    async def get_controls_by_family(self, family: str) -> list[Control]:
        self.calls.append(family)
        if family == self.fail_on:
            raise RuntimeError(f"catalog unavailable for {family}: token=s3cr3t")
        ids = self.overrides.get(
            family, [f"{family}-{n}" for n in range(1, self.controls_per_family + 1)]
        )
        return [Control(id=cid, family=family) for cid in ids]


class FakeScanner:
    """Returns canned findings keyed by control id and records every call."""

    def __init__(self, findings: Optional[dict[str, list[Finding]]] = None, name: str = "fake-scanner"):
        self.findings = findings or {}
        self.name = name
        self.calls: list[tuple[str, Optional[str], str]] = []

    async def scan_control(self, tenant_id: str, control: Control) -> list[Finding]:
        self.calls.append((tenant_id, None, control.id))
        return list(self.findings.get(control.id, []))

    async def scan_control_in_group(
        self, tenant_id: str, resource_group: str, control: Control
    ) -> list[Finding]:
        self.calls.append((tenant_id, resource_group, control.id))
        return list(self.findings.get(control.id, []))


class FakeCollector:
    """Produces ``counts[type]`` evidence items per evidence category."""

    def __init__(self, counts: Optional[dict[EvidenceType, int]] = None, name: str = "fake-collector", fail: bool = False):
        self.counts = counts or {}
        self.name = name
        self.fail = fail
        self.calls: list[tuple[str, str]] = []

    def _make(self, evidence_type: EvidenceType, tenant_id: str, family: str) -> list[Evidence]:
        self.calls.append((family, evidence_type.value))
        if self.fail:
            raise RuntimeError("collector offline")
        return [
            Evidence(evidence_type=evidence_type, control_id=f"{family}-1", resource_id=f"/{tenant_id}/{n}")
            for n in range(self.counts.get(evidence_type, 0))
        ]

    async def collect_configuration_evidence(self, tenant_id, family, collected_by):
        return self._make(EvidenceType.CONFIGURATION, tenant_id, family)

    async def collect_log_evidence(self, tenant_id, family, collected_by):
        return self._make(EvidenceType.LOGS, tenant_id, family)

    async def collect_metric_evidence(self, tenant_id, family, collected_by):
        return self._make(EvidenceType.METRICS, tenant_id, family)

    async def collect_policy_evidence(self, tenant_id, family, collected_by):
        return self._make(EvidenceType.POLICIES, tenant_id, family)

    async def collect_access_control_evidence(self, tenant_id, family, collected_by):
        return self._make(EvidenceType.ACCESS_CONTROL, tenant_id, family)


class FakeStigValidator:
    def __init__(self, findings: Optional[dict[str, list[Finding]]] = None):
        self.findings = findings or {}

    async def validate_family_stigs(self, tenant_id, resource_group, family):
        return list(self.findings.get(family, []))


class InMemoryStore:
    """Assessment store backed by plain lists and dicts."""

    def __init__(self, fail_saves: bool = False):
        self.fail_saves = fail_saves
        self.assessments: list[Assessment] = []
        self.packages: list = []
        self.certificates: list = []
        self.monitored: dict[str, list[MonitoredControl]] = {}
        self.alerts: dict[tuple[str, str], list[ComplianceAlert]] = {}
        self.points: dict[tuple[str, dt.date], ComplianceDataPoint] = {}
        self.history: list[AssessmentSummary] = []
        self.audit: list[AuditEntry] = []
        self.auto_remediated = 0
        self.fail_auto_remediation = False
        self.history_calls: list[tuple[dt.datetime, dt.datetime]] = []
        self.resolved: list[str] = []

    async def save_assessment(self, assessment):
        if self.fail_saves:
            raise RuntimeError("store down")
        self.assessments.append(assessment)

    async def save_evidence_package(self, package):
        if self.fail_saves:
            raise RuntimeError("store down")
        self.packages.append(package)

    async def save_certificate(self, certificate):
        if self.fail_saves:
            raise RuntimeError("store down")
        self.certificates.append(certificate)

    async def get_latest_assessment(self, tenant_id):
        matches = [a for a in self.assessments if a.tenant_id == tenant_id and a.error is None]
        return matches[-1] if matches else None

    async def get_assessments(self, tenant_id):
        return [a for a in self.assessments if a.tenant_id == tenant_id]

    def _point(self, tenant_id, day) -> ComplianceDataPoint:
        return self.points.get((tenant_id, day)) or ComplianceDataPoint(date=day)

    async def get_compliance_score_at(self, tenant_id, day):
        return self._point(tenant_id, day).compliance_score

    async def get_failed_controls_at(self, tenant_id, day):
        return self._point(tenant_id, day).controls_failed

    async def get_passed_controls_at(self, tenant_id, day):
        return self._point(tenant_id, day).controls_passed

    async def get_active_findings_at(self, tenant_id, day):
        return self._point(tenant_id, day).active_findings

    async def get_remediated_findings_at(self, tenant_id, day):
        return self._point(tenant_id, day).remediated_findings

    async def get_events_at(self, tenant_id, day):
        return list(self._point(tenant_id, day).events)

    async def get_monitored_controls(self, tenant_id):
        return list(self.monitored.get(tenant_id, []))

    async def get_control_alerts(self, tenant_id, control_id, limit):
        return list(self.alerts.get((tenant_id, control_id), []))[:limit]

    async def count_auto_remediated_findings(self, tenant_id):
        if self.fail_auto_remediation:
            raise RuntimeError("count query failed")
        return self.auto_remediated

    async def get_compliance_history(self, tenant_id, start, end):
        self.history_calls.append((start, end))
        return [h for h in self.history if h.tenant_id == tenant_id and start <= h.completed_at <= end]

    async def get_audit_log(self, tenant_id, start, end):
        return [e for e in self.audit if e.tenant_id == tenant_id and start <= e.timestamp <= end]

    async def resolve_finding(self, tenant_id, finding_id):
        self.resolved.append(finding_id)
        for assessment in await self.get_assessments(tenant_id):
            for finding in assessment.all_findings():
                if finding.id == finding_id:
                    finding.remediation_status = RemediationStatus.COMPLETED
                    return True
        return False


def make_finding(control_id: str, severity: Severity = Severity.HIGH, **kwargs) -> Finding:
    kwargs.setdefault("title", f"Issue on {control_id}")
    return Finding(severity=severity, affected_controls=[control_id], **kwargs)


def make_assessment(
    tenant_id: str = "tenant-1",
    score: float = 100.0,
    families: Optional[dict[str, FamilyResult]] = None,
    end_time: Optional[dt.datetime] = None,
    **kwargs,
) -> Assessment:
    end_time = end_time or dt.datetime(2026, 3, 1, 12, 0, tzinfo=dt.timezone.utc)
    kwargs.setdefault("assessment_id", f"a-{end_time:%Y%m%d%H%M%S}")
    return Assessment(
        tenant_id=tenant_id,
        start_time=end_time - dt.timedelta(minutes=5),
        end_time=end_time,
        overall_score=score,
        family_results=families or {},
        **kwargs,
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def inventory() -> FakeInventory:
    return FakeInventory()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def make_engine(inventory: FakeInventory, catalog: FakeCatalog, store: InMemoryStore, fake_clock: FakeClock):
    """Factory for a ComplianceEngine wired to the in-memory fakes."""

    def _make(**overrides) -> ComplianceEngine:
        kwargs = {
            "inventory": inventory,
            "catalog": catalog,
            "store": store,
            "clock": fake_clock,
        }
        kwargs.update(overrides)
        return ComplianceEngine(**kwargs)

    return _make


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    project = tmp_path / "ato-project"
    project.mkdir()
    return project


@pytest.fixture(autouse=True)
def reset_engine_logger():
    """CLI runs attach handlers to the ``atoengine`` logger; drop them between tests."""
    yield
    logger = logging.getLogger("atoengine")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
