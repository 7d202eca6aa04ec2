"""Finding data models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Severity(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    INFORMATIONAL = "Informational"


class RemediationStatus(str, Enum):
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"


class Finding(BaseModel):
    """A compliance issue reported by a scanner or the STIG validator."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    severity: Severity
    affected_controls: list[str] = []
    title: str = ""
    description: str = ""
    recommendation: str = ""
    resource_id: str = ""
    resource_group: Optional[str] = None
    rule_id: str = ""
    source: str = "scanner"
    auto_remediable: bool = False
    remediation_status: RemediationStatus = RemediationStatus.NOT_STARTED
    detected_at: datetime = Field(default_factory=_utcnow)
    remediated_at: Optional[datetime] = None


class FindingSummary(BaseModel):
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    informational: int = 0
    total: int = 0

    @classmethod
    def from_findings(cls, findings: list[Finding]) -> FindingSummary:
        return cls(
            critical=sum(1 for f in findings if f.severity == Severity.CRITICAL),
            high=sum(1 for f in findings if f.severity == Severity.HIGH),
            medium=sum(1 for f in findings if f.severity == Severity.MEDIUM),
            low=sum(1 for f in findings if f.severity == Severity.LOW),
            informational=sum(1 for f in findings if f.severity == Severity.INFORMATIONAL),
            total=len(findings),
        )
