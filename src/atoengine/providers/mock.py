"""Deterministic collaborators for dry runs.

Every call returns the same canned data so a dry run exercises the whole
engine without a cloud tenant.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from ..core.catalog import CONTROL_FAMILIES
from ..models.control import Control
from ..models.evidence import Evidence, EvidenceType
from ..models.finding import Finding, Severity

MOCK_CONTROLS_PER_FAMILY = 4

MOCK_RESOURCE_GROUPS: list[dict] = [
    {"name": "rg-app-prod", "location": "usgovvirginia"},
    {"name": "rg-data-prod", "location": "usgovvirginia"},
    {"name": "rg-network-hub", "location": "usgovtexas"},
]

# control id -> (severity, title, recommendation, auto_remediable)
MOCK_FINDINGS: dict[str, list[tuple[Severity, str, str, bool]]] = {
    "AC-2": [(
        Severity.HIGH,
        "Stale privileged role assignments",
        "Remove role assignments unused for 90 days and enable access reviews.",
        False,
    )],
    "AU-3": [(
        Severity.MEDIUM,
        "Diagnostic settings missing on key vault",
        "Send key vault audit events to the central log workspace.",
        True,
    )],
    "SC-4": [(
        Severity.MEDIUM,
        "Storage account allows public network access",
        "Disable public network access and use private endpoints.",
        True,
    )],
    "CM-2": [(
        Severity.LOW,
        "Resources missing baseline tags",
        "Apply the baseline tag policy at the subscription scope.",
        True,
    )],
    "CP-3": [(
        Severity.LOW,
        "Backup retention shorter than 30 days",
        "Extend backup retention to at least 30 days.",
        True,
    )],
    "IA-2": [(
        Severity.HIGH,
        "MFA not enforced for guest accounts",
        "Require MFA for all guest users through conditional access.",
        False,
    )],
    "SI-2": [(
        Severity.INFORMATIONAL,
        "Pending OS updates on two virtual machines",
        "Enable automatic guest patching.",
        True,
    )],
}

# family -> evidence types its mock collector produces
MOCK_EVIDENCE_TYPES: dict[str, list[EvidenceType]] = {
    "AC": [EvidenceType.CONFIGURATION, EvidenceType.LOGS, EvidenceType.POLICIES, EvidenceType.ACCESS_CONTROL],
    "AU": [EvidenceType.CONFIGURATION, EvidenceType.LOGS, EvidenceType.METRICS, EvidenceType.POLICIES],
    "SC": [EvidenceType.CONFIGURATION, EvidenceType.POLICIES],
    "CM": [EvidenceType.CONFIGURATION, EvidenceType.POLICIES, EvidenceType.METRICS],
}


def _timestamp() -> datetime:
    return datetime.now(timezone.utc)


class MockInventoryService:
    name = "mock-inventory"

    async def list_resource_groups(self, tenant_id: str) -> list[dict]:
        return [dict(rg, tenant_id=tenant_id) for rg in MOCK_RESOURCE_GROUPS]


class MockControlCatalog:
    name = "mock-catalog"

    def __init__(self, controls_per_family: int = MOCK_CONTROLS_PER_FAMILY):
        self.controls_per_family = controls_per_family

    async def get_controls_by_family(self, family: str) -> list[Control]:
        return [
            Control(id=f"{family}-{n}", family=family, title=f"{family} control {n}")
            for n in range(1, self.controls_per_family + 1)
        ]


class MockComplianceScanner:
    name = "mock-scanner"

    async def scan_control(self, tenant_id: str, control: Control) -> list[Finding]:
        return self._findings(control, resource_group=None)

    async def scan_control_in_group(
        self, tenant_id: str, resource_group: str, control: Control
    ) -> list[Finding]:
        return self._findings(control, resource_group=resource_group)

    def _findings(self, control: Control, resource_group: Optional[str]) -> list[Finding]:
        findings = []
        for index, (severity, title, recommendation, auto) in enumerate(
            MOCK_FINDINGS.get(control.id, []), start=1
        ):
            findings.append(Finding(
                id=f"MOCK-{control.id}-{index:03d}",
                severity=severity,
                affected_controls=[control.id],
                title=title,
                description=f"{title} ({control.id})",
                recommendation=recommendation,
                resource_id=f"/mock/{resource_group or 'rg-app-prod'}/{control.id.lower()}",
                resource_group=resource_group,
                rule_id=f"mock.{control.id.lower()}",
                auto_remediable=auto,
            ))
        return findings


class MockEvidenceCollector:
    name = "mock-collector"

    def __init__(self, family: str):
        self.family = family

    def _evidence(self, evidence_type: EvidenceType, tenant_id: str, collected_by: str) -> list[Evidence]:
        if evidence_type not in MOCK_EVIDENCE_TYPES.get(self.family, []):
            return []
        return [Evidence(
            evidence_type=evidence_type,
            control_id=f"{self.family}-1",
            resource_id=f"/tenants/{tenant_id}/mock/{self.family.lower()}",
            collected_at=_timestamp(),
            data={"collected_by": collected_by, "source": "dry-run"},
            config_snapshot='{"enabled": true}' if evidence_type == EvidenceType.CONFIGURATION else None,
            log_excerpt="sign-in succeeded with MFA" if evidence_type == EvidenceType.LOGS else None,
        )]

    async def collect_configuration_evidence(self, tenant_id: str, family: str, collected_by: str) -> list[Evidence]:
        return self._evidence(EvidenceType.CONFIGURATION, tenant_id, collected_by)

    async def collect_log_evidence(self, tenant_id: str, family: str, collected_by: str) -> list[Evidence]:
        return self._evidence(EvidenceType.LOGS, tenant_id, collected_by)

    async def collect_metric_evidence(self, tenant_id: str, family: str, collected_by: str) -> list[Evidence]:
        return self._evidence(EvidenceType.METRICS, tenant_id, collected_by)

    async def collect_policy_evidence(self, tenant_id: str, family: str, collected_by: str) -> list[Evidence]:
        return self._evidence(EvidenceType.POLICIES, tenant_id, collected_by)

    async def collect_access_control_evidence(self, tenant_id: str, family: str, collected_by: str) -> list[Evidence]:
        return self._evidence(EvidenceType.ACCESS_CONTROL, tenant_id, collected_by)


class MockStigValidator:
    name = "mock-stig"

    async def validate_family_stigs(
        self, tenant_id: str, resource_group: Optional[str], family: str
    ) -> list[Finding]:
        if family != "AC":
            return []
        return [Finding(
            id="MOCK-STIG-V-254239",
            severity=Severity.MEDIUM,
            affected_controls=["AC-2"],
            title="Account lockout threshold not configured",
            recommendation="Set the account lockout threshold to 3 attempts.",
            rule_id="V-254239",
            source="stig",
            resource_group=resource_group,
        )]


def build_mock_collaborators() -> dict:
    """Keyword arguments for ``ComplianceEngine`` in dry-run mode (store excluded)."""
    scanner = MockComplianceScanner()
    return {
        "inventory": MockInventoryService(),
        "catalog": MockControlCatalog(),
        "scanners": {family: scanner for family in CONTROL_FAMILIES},
        "collectors": {family: MockEvidenceCollector(family) for family in MOCK_EVIDENCE_TYPES},
        "stig_validator": MockStigValidator(),
    }
