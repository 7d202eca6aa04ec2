"""Compliance certificate data models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class Attestation(BaseModel):
    control_family: str
    compliance_level: str
    attestation_date: datetime
    validated_controls: list[str] = []
    exceptions: list[str] = []


class ComplianceCertificate(BaseModel):
    certificate_id: str
    tenant_id: str
    issued_at: datetime
    valid_until: datetime
    compliance_score: float
    control_families_covered: list[str] = []
    attestations: list[Attestation] = []
    verification_hash: Optional[str] = None
