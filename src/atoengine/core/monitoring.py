"""Continuous compliance monitoring status."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from ..models.monitoring import ComplianceAlert, ContinuousComplianceStatus, ControlMonitoringStatus
from ..providers.base import AssessmentStore
from .orchestrator import check_cancelled

logger = logging.getLogger(__name__)

MAX_ALERTS_PER_CONTROL = 10

# Days to remediate by alert severity; anything else gets DEFAULT_DUE_DAYS.
ALERT_DUE_DAYS: dict[str, int] = {
    "critical": 7,
    "high": 30,
    "medium": 90,
}
DEFAULT_DUE_DAYS = 180


def calculate_alert_due_date(severity: str, detected_at: datetime) -> datetime:
    days = ALERT_DUE_DAYS.get((severity or "").lower(), DEFAULT_DUE_DAYS)
    return detected_at + timedelta(days=days)


def calculate_compliance_drift(statuses: Iterable[ControlMonitoringStatus]) -> float:
    statuses = list(statuses)
    if not statuses:
        return 0.0
    drifted = sum(1 for s in statuses if s.drift_detected)
    return drifted / len(statuses) * 100


def apply_due_dates(alerts: list[ComplianceAlert]) -> list[ComplianceAlert]:
    for alert in alerts:
        if alert.due_date is None:
            alert.due_date = calculate_alert_due_date(alert.severity, alert.detected_at)
    return alerts


class MonitoringTracker:
    def __init__(self, store: AssessmentStore):
        self.store = store

    async def get_continuous_status(
        self, tenant_id: str, cancel: Optional[asyncio.Event] = None
    ) -> ContinuousComplianceStatus:
        status = ContinuousComplianceStatus(
            tenant_id=tenant_id,
            timestamp=datetime.now(timezone.utc),
            monitoring_enabled=True,
        )

        for control in await self.store.get_monitored_controls(tenant_id):
            check_cancelled(cancel, "Monitoring status")
            alerts = await self.store.get_control_alerts(
                tenant_id, control.control_id, MAX_ALERTS_PER_CONTROL
            )
            status.control_statuses[control.control_id] = ControlMonitoringStatus(
                control_id=control.control_id,
                last_checked=control.last_checked,
                status=control.compliance_status,
                drift_detected=control.drift_detected,
                auto_remediation_enabled=control.auto_remediation_enabled,
                alerts=apply_due_dates(alerts[:MAX_ALERTS_PER_CONTROL]),
            )

        status.compliance_drift_percentage = calculate_compliance_drift(
            status.control_statuses.values()
        )
        status.alert_count = sum(len(s.alerts) for s in status.control_statuses.values())
        status.auto_remediation_count = await self._auto_remediation_count(tenant_id)

        logger.info(
            "Monitoring status for tenant %s: %d controls, %.1f%% drift, %d alerts",
            tenant_id, len(status.control_statuses),
            status.compliance_drift_percentage, status.alert_count,
        )
        return status

    async def _auto_remediation_count(self, tenant_id: str) -> int:
        try:
            return await self.store.count_auto_remediated_findings(tenant_id)
        except Exception as e:
            logger.warning("Failed to get auto-remediation count for tenant %s: %s", tenant_id, e)
            return 0
