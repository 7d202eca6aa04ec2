"""NIST 800-53 control family catalog and evidence targets."""

from __future__ import annotations

DEFAULT_HANDLER = "Default"
ALL_FAMILIES = "All"

FAMILY_NAMES: dict[str, str] = {
    "AC": "Access Control",
    "AU": "Audit and Accountability",
    "SC": "System and Communications Protection",
    "SI": "System and Information Integrity",
    "CM": "Configuration Management",
    "CP": "Contingency Planning",
    "IA": "Identification and Authentication",
    "IR": "Incident Response",
    "MA": "Maintenance",
    "MP": "Media Protection",
    "PE": "Physical and Environmental Protection",
    "PL": "Planning",
    "PS": "Personnel Security",
    "RA": "Risk Assessment",
    "SA": "System and Services Acquisition",
    "CA": "Security Assessment and Authorization",
    "AT": "Awareness and Training",
    "PM": "Program Management",
}

# Assessment order.
CONTROL_FAMILIES: list[str] = list(FAMILY_NAMES.keys())

# Distinct evidence types expected per family.
EVIDENCE_TARGETS: dict[str, int] = {
    "AC": 5,
    "AU": 4,
    "SC": 5,
    "IA": 4,
    "CM": 4,
    "IR": 3,
    "RA": 3,
    "CA": 4,
    "SI": 4,
    "CP": 3,
}
DEFAULT_EVIDENCE_TARGET = 3


def get_family_name(family: str) -> str:
    return FAMILY_NAMES.get(family.upper(), family)


def get_evidence_target(family: str) -> int:
    return EVIDENCE_TARGETS.get(family.upper(), DEFAULT_EVIDENCE_TARGET)
