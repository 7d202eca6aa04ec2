"""Compliance certificate issuance and verification."""

from __future__ import annotations

import asyncio
import base64
import calendar
import hashlib
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from ..models.assessment import FamilyResult
from ..models.certificate import Attestation, ComplianceCertificate
from ..models.finding import Severity
from ..providers.base import AssessmentStore
from ..utils.sanitize import sanitize_error
from .errors import CertificateIssuanceError
from .orchestrator import check_cancelled

logger = logging.getLogger(__name__)

CERTIFICATE_MIN_SCORE = 80.0
FAMILY_COMPLIANT_SCORE = 80.0
CERTIFICATE_VALIDITY_MONTHS = 6


def add_months(moment: datetime, months: int) -> datetime:
    """Calendar month arithmetic; the day is clamped to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def compute_certificate_hash(certificate: ComplianceCertificate) -> str:
    """Base64 SHA-256 over the canonical JSON of the certificate.

    ``verification_hash`` is never part of the hashed payload.
    """
    payload = certificate.model_dump(mode="json", exclude={"verification_hash"})
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    digest = hashlib.sha256(canonical.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_certificate(certificate: ComplianceCertificate) -> bool:
    if not certificate.verification_hash:
        return False
    return compute_certificate_hash(certificate) == certificate.verification_hash


def build_attestation(result: FamilyResult, attested_at: datetime) -> Attestation:
    affected = {
        cid.lower() for finding in result.findings for cid in finding.affected_controls
    }

    exceptions: list[str] = []
    seen: set[str] = set()
    for finding in result.findings:
        if finding.severity != Severity.LOW:
            continue
        for cid in finding.affected_controls:
            if cid not in seen:
                seen.add(cid)
                exceptions.append(cid)

    return Attestation(
        control_family=result.family,
        compliance_level="Compliant" if result.compliance_score >= FAMILY_COMPLIANT_SCORE else "Partial",
        attestation_date=attested_at,
        validated_controls=[cid for cid in result.control_ids if cid.lower() not in affected],
        exceptions=exceptions,
    )


class CertificateIssuer:
    def __init__(self, store: AssessmentStore):
        self.store = store

    async def issue_certificate(
        self,
        tenant_id: str,
        now: Optional[datetime] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> ComplianceCertificate:
        """Issue a certificate from the tenant's latest completed assessment.

        Raises:
            CertificateIssuanceError: no assessment exists, or its overall score
                is below 80. Nothing is persisted in that case.
        """
        logger.info("Generating compliance certificate for tenant %s", tenant_id)
        check_cancelled(cancel, "Certificate generation")

        assessment = await self.store.get_latest_assessment(tenant_id)
        score = assessment.overall_score if assessment is not None else 0.0
        if assessment is None or score < CERTIFICATE_MIN_SCORE:
            raise CertificateIssuanceError(
                f"Cannot generate certificate. Compliance score {round(score, 2)}% "
                f"is below required {CERTIFICATE_MIN_SCORE:.0f}%",
                score=score,
            )

        issued_at = now or datetime.now(timezone.utc)
        certificate = ComplianceCertificate(
            certificate_id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            issued_at=issued_at,
            valid_until=add_months(issued_at, CERTIFICATE_VALIDITY_MONTHS),
            compliance_score=score,
            control_families_covered=list(assessment.family_results.keys()),
            attestations=[
                build_attestation(result, issued_at)
                for result in assessment.family_results.values()
            ],
        )
        certificate.verification_hash = compute_certificate_hash(certificate)

        try:
            await self.store.save_certificate(certificate)
        except Exception as e:
            logger.warning(
                "Failed to store compliance certificate %s: %s",
                certificate.certificate_id, sanitize_error(str(e)),
            )

        logger.info(
            "Generated compliance certificate %s valid until %s",
            certificate.certificate_id, certificate.valid_until.isoformat(),
        )
        return certificate
