"""Evidence collection data models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class EvidenceType(str, Enum):
    CONFIGURATION = "Configuration"
    LOGS = "Logs"
    METRICS = "Metrics"
    POLICIES = "Policies"
    ACCESS_CONTROL = "AccessControl"


class Evidence(BaseModel):
    evidence_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    evidence_type: EvidenceType
    control_id: str
    resource_id: str
    collected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: dict[str, Any] = {}
    screenshot: Optional[str] = None
    log_excerpt: Optional[str] = None
    config_snapshot: Optional[str] = None


class EvidencePackage(BaseModel):
    package_id: str
    tenant_id: str
    control_family: str
    collected_by: str
    collection_start_time: datetime
    collection_end_time: Optional[datetime] = None
    evidence: list[Evidence] = []
    summary: Optional[str] = None
    completeness_score: float = 0.0
    attestation_statement: Optional[str] = None
    error: Optional[str] = None


class EvidenceCollectionProgress(BaseModel):
    control_family: str
    total_items: int
    collected_items: int
    current_evidence_type: str
    message: str = ""
