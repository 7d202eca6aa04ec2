"""Tests for continuous monitoring status."""

from __future__ import annotations

import datetime as dt

import pytest

from conftest import InMemoryStore

from atoengine.core.monitoring import calculate_alert_due_date, calculate_compliance_drift
from atoengine.models.monitoring import ComplianceAlert, MonitoredControl

NOW = dt.datetime(2026, 5, 1, 8, 0, tzinfo=dt.timezone.utc)


def _control(cid: str, drift: bool = False, status: str = "Compliant") -> MonitoredControl:
    return MonitoredControl(control_id=cid, last_checked=NOW, compliance_status=status, drift_detected=drift)


class TestDueDates:
    @pytest.mark.parametrize(
        "severity,days",
        [("Critical", 7), ("HIGH", 30), ("medium", 90), ("Low", 180), ("Informational", 180), ("", 180)],
    )
    def test_due_date_by_severity(self, severity, days):
        assert calculate_alert_due_date(severity, NOW) == NOW + dt.timedelta(days=days)


class TestDrift:
    def test_no_controls_is_zero(self):
        assert calculate_compliance_drift([]) == 0.0


class TestContinuousStatus:
    @pytest.mark.asyncio
    async def test_empty_tenant(self, make_engine):
        status = await make_engine().get_continuous_compliance_status("tenant-1")
        assert status.monitoring_enabled is True
        assert status.control_statuses == {}
        assert status.compliance_drift_percentage == 0.0
        assert status.alert_count == 0

    @pytest.mark.asyncio
    async def test_drift_and_alerts(self, make_engine, store: InMemoryStore):
        store.monitored["tenant-1"] = [
            _control("AC-1"),
            _control("AC-2", drift=True, status="NonCompliant"),
            _control("AU-1"),
            _control("SC-1"),
        ]
        store.alerts[("tenant-1", "AC-2")] = [
            ComplianceAlert(control_id="AC-2", severity="Critical", detected_at=NOW),
            ComplianceAlert(
                control_id="AC-2", severity="High", detected_at=NOW, due_date=NOW + dt.timedelta(days=1)
            ),
        ]
        store.auto_remediated = 3

        status = await make_engine().get_continuous_compliance_status("tenant-1")

        assert status.compliance_drift_percentage == 25.0
        assert status.alert_count == 2
        assert status.auto_remediation_count == 3
        alerts = status.control_statuses["AC-2"].alerts
        assert alerts[0].due_date == NOW + dt.timedelta(days=7)
        assert alerts[1].due_date == NOW + dt.timedelta(days=1)
        assert status.control_statuses["AC-2"].status == "NonCompliant"

    @pytest.mark.asyncio
    async def test_alerts_capped_per_control(self, make_engine, store: InMemoryStore):
        store.monitored["tenant-1"] = [_control("AC-1", drift=True)]
        store.alerts[("tenant-1", "AC-1")] = [
            ComplianceAlert(control_id="AC-1", severity="Low", detected_at=NOW) for _ in range(12)
        ]
        status = await make_engine().get_continuous_compliance_status("tenant-1")
        assert status.alert_count == 10

    @pytest.mark.asyncio
    async def test_auto_remediation_failure_reports_zero(self, make_engine, store: InMemoryStore, caplog):
        store.fail_auto_remediation = True
        status = await make_engine().get_continuous_compliance_status("tenant-1")
        assert status.auto_remediation_count == 0
        assert "auto-remediation count" in caplog.text
