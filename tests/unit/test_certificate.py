"""Tests for certificate issuance and verification."""

from __future__ import annotations

import datetime as dt

import pytest

from conftest import InMemoryStore, make_assessment, make_finding

from atoengine.core.certificate import (
    CertificateIssuer,
    add_months,
    build_attestation,
    compute_certificate_hash,
    verify_certificate,
)
from atoengine.core.errors import CertificateIssuanceError
from atoengine.models.assessment import FamilyResult
from atoengine.models.finding import Severity

ISSUED = dt.datetime(2026, 8, 31, 10, 0, tzinfo=dt.timezone.utc)


def _ac_result() -> FamilyResult:
    return FamilyResult(
        family="AC",
        family_name="Access Control",
        control_ids=["AC-1", "AC-2", "AC-3"],
        findings=[make_finding("AC-1", Severity.HIGH), make_finding("AC-2", Severity.LOW)],
        total_controls=3,
        passed_controls=1,
        compliance_score=100 / 3,
    )


class TestAddMonths:
    def test_plain(self):
        assert add_months(dt.datetime(2026, 1, 15), 6) == dt.datetime(2026, 7, 15)

    def test_clamps_to_month_end(self):
        assert add_months(ISSUED, 6) == dt.datetime(2027, 2, 28, 10, 0, tzinfo=dt.timezone.utc)

    def test_leap_year(self):
        assert add_months(dt.datetime(2027, 8, 31), 6) == dt.datetime(2028, 2, 29)

    def test_crosses_year(self):
        assert add_months(dt.datetime(2026, 11, 30), 3) == dt.datetime(2027, 2, 28)


class TestAttestation:
    def test_exceptions_and_validated_controls(self):
        attestation = build_attestation(_ac_result(), ISSUED)
        assert attestation.compliance_level == "Partial"
        assert attestation.exceptions == ["AC-2"]
        assert attestation.validated_controls == ["AC-3"]

    def test_compliant_at_80(self):
        result = FamilyResult(family="AU", family_name="AU", control_ids=["AU-1"], compliance_score=80.0)
        assert build_attestation(result, ISSUED).compliance_level == "Compliant"


class TestIssueCertificate:
    @pytest.mark.asyncio
    async def test_below_threshold_refused(self, store: InMemoryStore):
        store.assessments.append(make_assessment(score=79.9))

        with pytest.raises(CertificateIssuanceError) as exc_info:
            await CertificateIssuer(store).issue_certificate("tenant-1")

        assert str(exc_info.value) == (
            "Cannot generate certificate. Compliance score 79.9% is below required 80%"
        )
        assert exc_info.value.score == 79.9
        assert store.certificates == []

    @pytest.mark.asyncio
    async def test_no_assessment_refused(self, store: InMemoryStore):
        with pytest.raises(CertificateIssuanceError, match="below required 80%"):
            await CertificateIssuer(store).issue_certificate("tenant-1")
        assert store.certificates == []

    @pytest.mark.asyncio
    async def test_issued_at_exactly_80(self, store: InMemoryStore):
        store.assessments.append(make_assessment(score=80.0, families={"AC": _ac_result()}))

        certificate = await CertificateIssuer(store).issue_certificate("tenant-1", now=ISSUED)

        assert certificate.compliance_score == 80.0
        assert certificate.valid_until == add_months(ISSUED, 6)
        assert certificate.control_families_covered == ["AC"]
        assert len(certificate.attestations) == 1
        assert certificate.verification_hash == compute_certificate_hash(certificate)
        assert store.certificates == [certificate]

    @pytest.mark.asyncio
    async def test_uses_latest_completed_assessment(self, store: InMemoryStore):
        store.assessments.append(make_assessment(score=90.0))
        store.assessments.append(make_assessment(score=10.0, error="scan failed"))
        certificate = await CertificateIssuer(store).issue_certificate("tenant-1")
        assert certificate.compliance_score == 90.0

    @pytest.mark.asyncio
    async def test_save_failure_still_returns(self):
        store = InMemoryStore(fail_saves=True)
        store.assessments.append(make_assessment(score=95.0))
        certificate = await CertificateIssuer(store).issue_certificate("tenant-1")
        assert verify_certificate(certificate)


class TestVerify:
    @pytest.mark.asyncio
    async def test_tamper_detected(self, store: InMemoryStore):
        store.assessments.append(make_assessment(score=92.0, families={"AC": _ac_result()}))
        certificate = await CertificateIssuer(store).issue_certificate("tenant-1", now=ISSUED)
        assert verify_certificate(certificate)

        tampered = certificate.model_copy(deep=True)
        tampered.compliance_score = 99.0
        assert not verify_certificate(tampered)

        tampered = certificate.model_copy(deep=True)
        tampered.attestations[0].exceptions.append("AC-3")
        assert not verify_certificate(tampered)

    @pytest.mark.asyncio
    async def test_hash_survives_json_round_trip(self, store: InMemoryStore):
        store.assessments.append(make_assessment(score=92.0, families={"AC": _ac_result()}))
        certificate = await CertificateIssuer(store).issue_certificate("tenant-1", now=ISSUED)
        reloaded = type(certificate).model_validate_json(certificate.model_dump_json())
        assert verify_certificate(reloaded)

    @pytest.mark.asyncio
    async def test_engine_generate_and_verify(self, make_engine, store: InMemoryStore):
        store.assessments.append(make_assessment(score=85.0))
        engine = make_engine()
        certificate = await engine.generate_compliance_certificate("tenant-1")
        assert engine.verify_certificate(certificate)
        certificate.verification_hash = None
        assert not engine.verify_certificate(certificate)
