"""Engine exception hierarchy."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..models.assessment import Assessment


class ComplianceEngineError(Exception):
    """Base class for all engine errors."""


class ValidationError(ComplianceEngineError):
    """Invalid caller input, raised before any collaborator is called."""


class AssessmentFailedError(ComplianceEngineError):
    """A comprehensive assessment aborted.

    The partially built assessment (with ``error`` and ``end_time`` set) is
    available on ``assessment``; the original exception is the ``__cause__``.
    """

    def __init__(self, message: str, assessment: Optional[Assessment] = None):
        super().__init__(message)
        self.assessment = assessment


class AssessmentCancelledError(ComplianceEngineError):
    """Cooperative cancellation was requested.

    When raised from an assessment run, ``assessment`` holds the families
    completed so far with ``error`` and ``end_time`` set.
    """

    def __init__(self, message: str, assessment: Optional[Assessment] = None):
        super().__init__(message)
        self.assessment = assessment


class CertificateIssuanceError(ComplianceEngineError):
    """Certificate preconditions were not met."""

    def __init__(self, message: str, score: float = 0.0):
        super().__init__(message)
        self.score = score
