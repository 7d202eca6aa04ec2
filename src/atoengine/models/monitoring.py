"""Continuous monitoring data models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class MonitoredControl(BaseModel):
    control_id: str
    last_checked: datetime
    compliance_status: str = "Unknown"
    drift_detected: bool = False
    auto_remediation_enabled: bool = False


class ComplianceAlert(BaseModel):
    alert_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    control_id: str
    severity: str
    title: str = ""
    message: str = ""
    detected_at: datetime
    due_date: Optional[datetime] = None
    acknowledged: bool = False


class ControlMonitoringStatus(BaseModel):
    control_id: str
    last_checked: datetime
    status: str = "Unknown"
    drift_detected: bool = False
    auto_remediation_enabled: bool = False
    alerts: list[ComplianceAlert] = []


class ContinuousComplianceStatus(BaseModel):
    tenant_id: str
    timestamp: datetime
    monitoring_enabled: bool = True
    control_statuses: dict[str, ControlMonitoringStatus] = {}
    compliance_drift_percentage: float = 0.0
    alert_count: int = 0
    auto_remediation_count: int = 0
