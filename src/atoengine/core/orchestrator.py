"""Comprehensive assessment orchestrator.

Drives one assessment across every control family in catalog order:
warm the resource cache, scan each family's controls with the family's
scanner, merge STIG findings, score, aggregate and persist.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from ..models.assessment import Assessment, AssessmentProgress, FamilyResult
from ..models.finding import Finding, FindingSummary
from ..providers.base import AssessmentStore, ComplianceScanner, ControlCatalog, StigValidator
from ..utils.sanitize import sanitize_error
from .cache import ResourceCache
from .catalog import CONTROL_FAMILIES, get_family_name
from .errors import AssessmentCancelledError, AssessmentFailedError
from .registry import HandlerRegistry
from .scoring import calculate_overall_score, calculate_risk_profile, generate_executive_summary, score_family

logger = logging.getLogger(__name__)

ProgressSink = Callable[[Any], None]


def emit_progress(progress: Optional[ProgressSink], event: Any) -> None:
    """Hand a progress event to the sink. Sink failures never stop a run."""
    if progress is None:
        return
    try:
        progress(event)
    except Exception:
        logger.warning("Progress callback raised; continuing", exc_info=True)


def check_cancelled(cancel: Optional[asyncio.Event], what: str) -> None:
    if cancel is not None and cancel.is_set():
        raise AssessmentCancelledError(f"{what} cancelled")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AssessmentOrchestrator:
    def __init__(
        self,
        cache: ResourceCache,
        catalog: ControlCatalog,
        scanners: HandlerRegistry[ComplianceScanner],
        stig_validator: StigValidator,
        store: AssessmentStore,
        families: Optional[list[str]] = None,
    ):
        self.cache = cache
        self.catalog = catalog
        self.scanners = scanners
        self.stig_validator = stig_validator
        self.store = store
        self.families = list(families or CONTROL_FAMILIES)

    async def run_comprehensive_assessment(
        self,
        tenant_id: str,
        resource_group: Optional[str] = None,
        progress: Optional[ProgressSink] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Assessment:
        """Run a full assessment and return the persisted record.

        Raises:
            AssessmentCancelledError: ``cancel`` was set before a family started.
            AssessmentFailedError: a collaborator failed; the partial assessment
                is attached and the original error is chained.
        """
        start = time.time()
        scope = f"resource group '{resource_group}'" if resource_group else "tenant"
        logger.info("Starting comprehensive assessment for %s in tenant %s", scope, tenant_id)

        assessment = Assessment(
            assessment_id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            resource_group=resource_group,
            start_time=_utcnow(),
        )
        total = len(self.families)

        try:
            # Full-tenant inventory is cached even for resource-group runs
            await self.cache.get_resources(tenant_id)

            emit_progress(progress, AssessmentProgress(
                total_families=total,
                completed_families=0,
                current_family="Initialization",
                message="Starting control family assessments",
            ))

            for index, family in enumerate(self.families):
                check_cancelled(cancel, "Assessment")

                emit_progress(progress, AssessmentProgress(
                    total_families=total,
                    completed_families=index,
                    current_family=family,
                    message=f"Assessing control family {family}",
                ))

                result = await self._assess_family(tenant_id, resource_group, family)
                assessment.family_results[family] = result

                emit_progress(progress, AssessmentProgress(
                    total_families=total,
                    completed_families=index + 1,
                    current_family=family,
                    message=(
                        f"Completed {family}: {result.compliance_score:.1f}% compliant, "
                        f"{len(result.findings)} findings"
                    ),
                ))

            aggregate_results(assessment)
            assessment.risk_profile = calculate_risk_profile(assessment)
            assessment.executive_summary = generate_executive_summary(assessment)
            assessment.end_time = _utcnow()

        except AssessmentCancelledError as e:
            assessment.error = str(e)
            assessment.end_time = _utcnow()
            logger.warning(
                "Assessment %s cancelled after %d of %d families",
                assessment.assessment_id, len(assessment.family_results), total,
            )
            e.assessment = assessment
            raise
        except Exception as e:
            assessment.error = sanitize_error(str(e)) or type(e).__name__
            assessment.end_time = _utcnow()
            logger.error(
                "Assessment %s failed for %s in tenant %s: %s",
                assessment.assessment_id, scope, tenant_id, assessment.error,
            )
            raise AssessmentFailedError(
                f"Compliance assessment failed for tenant {tenant_id}: {assessment.error}",
                assessment=assessment,
            ) from e

        await self._persist(assessment)

        logger.info(
            "Completed assessment for %s in tenant %s. Overall score: %.1f%%, "
            "total findings: %d, duration: %.1fs",
            scope, tenant_id, assessment.overall_score, assessment.total_findings,
            time.time() - start,
        )
        return assessment

    async def _assess_family(
        self, tenant_id: str, resource_group: Optional[str], family: str
    ) -> FamilyResult:
        scanner = self.scanners.resolve(family)
        controls = await self.catalog.get_controls_by_family(family)

        findings: list[Finding] = []
        for control in controls:
            if resource_group:
                found = await scanner.scan_control_in_group(tenant_id, resource_group, control)
            else:
                found = await scanner.scan_control(tenant_id, control)
            findings.extend(found)

        logger.debug("Running STIG validation for family %s", family)
        stig_findings = await self.stig_validator.validate_family_stigs(
            tenant_id, resource_group, family
        )
        findings.extend(stig_findings)

        logger.info(
            "Family %s assessment complete: %d control findings, %d STIG findings",
            family, len(findings) - len(stig_findings), len(stig_findings),
        )

        result = FamilyResult(
            family=family,
            family_name=get_family_name(family),
            findings=findings,
            control_ids=[c.id for c in controls],
        )
        return score_family(result)

    async def _persist(self, assessment: Assessment) -> None:
        try:
            await self.store.save_assessment(assessment)
        except Exception as e:
            logger.error(
                "Failed to store assessment %s: %s",
                assessment.assessment_id, sanitize_error(str(e)),
            )


def aggregate_results(assessment: Assessment) -> Assessment:
    """Overall score and flat severity sums across all family results."""
    results = list(assessment.family_results.values())
    summary = FindingSummary.from_findings(
        [f for result in results for f in result.findings]
    )
    assessment.overall_score = calculate_overall_score(results)
    assessment.total_findings = summary.total
    assessment.critical_findings = summary.critical
    assessment.high_findings = summary.high
    assessment.medium_findings = summary.medium
    assessment.low_findings = summary.low
    assessment.informational_findings = summary.informational
    return assessment
