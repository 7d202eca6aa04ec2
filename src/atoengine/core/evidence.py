"""Evidence collection orchestrator."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from ..models.evidence import Evidence, EvidenceCollectionProgress, EvidencePackage
from ..providers.base import AssessmentStore, EvidenceCollector, handler_name
from ..utils.sanitize import sanitize_error
from .cache import ResourceCache
from .catalog import ALL_FAMILIES, get_evidence_target
from .orchestrator import ProgressSink, check_cancelled, emit_progress
from .registry import HandlerRegistry

logger = logging.getLogger(__name__)

# Collection order per collector: (progress label, collector method name).
EVIDENCE_CATEGORIES: list[tuple[str, str]] = [
    ("Configuration", "collect_configuration_evidence"),
    ("Logs", "collect_log_evidence"),
    ("Metrics", "collect_metric_evidence"),
    ("Policies", "collect_policy_evidence"),
    ("Access Control", "collect_access_control_evidence"),
]


def calculate_evidence_completeness(family: str, evidence: list[Evidence]) -> float:
    """Distinct evidence types over the family's target, capped at 100."""
    if not evidence:
        return 0.0
    collected_types = len({e.evidence_type for e in evidence})
    target = get_evidence_target(family)
    return round(min(100.0, collected_types / target * 100), 2)


def generate_evidence_summary(evidence: list[Evidence]) -> str:
    by_type = Counter(e.evidence_type.value for e in evidence)
    parts = ", ".join(f"{count} {etype}" for etype, count in by_type.items())
    return f"Collected {len(evidence)} pieces of evidence: {parts}"


def generate_attestation_statement(package: EvidencePackage) -> str:
    return (
        f"Evidence package {package.package_id} collected on "
        f"{package.collection_start_time:%Y-%m-%d} for control family {package.control_family} "
        f"with {package.completeness_score:.1f}% completeness. "
        f"This evidence supports compliance attestation for tenant {package.tenant_id}."
    )


class EvidenceOrchestrator:
    def __init__(
        self,
        cache: ResourceCache,
        collectors: HandlerRegistry[EvidenceCollector],
        store: AssessmentStore,
    ):
        self.cache = cache
        self.collectors = collectors
        self.store = store

    def select_collectors(self, family: str) -> list[EvidenceCollector]:
        """All -> every specialized collector; otherwise the family's (or Default)."""
        if family.lower() == ALL_FAMILIES.lower():
            selected = self.collectors.specialized()
            logger.info(
                "Collecting evidence from %d specialized collectors for '%s' control families",
                len(selected), ALL_FAMILIES,
            )
            return selected
        return [self.collectors.resolve(family)]

    async def collect_evidence(
        self,
        tenant_id: str,
        family: str = ALL_FAMILIES,
        collected_by: str = "",
        progress: Optional[ProgressSink] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> EvidencePackage:
        start = time.time()
        logger.info("Collecting compliance evidence for control family %s", family)

        package = EvidencePackage(
            package_id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            control_family=family,
            collected_by=collected_by,
            collection_start_time=datetime.now(timezone.utc),
        )

        try:
            await self.cache.get_resources(tenant_id)

            collectors = self.select_collectors(family)
            total = len(EVIDENCE_CATEGORIES) * len(collectors)
            completed = 0

            emit_progress(progress, EvidenceCollectionProgress(
                control_family=family,
                total_items=total,
                collected_items=0,
                current_evidence_type="Initialization",
                message="Starting evidence collection",
            ))

            collected: list[Evidence] = []
            for collector in collectors:
                check_cancelled(cancel, "Evidence collection")
                name = handler_name(collector)

                for label, method_name in EVIDENCE_CATEGORIES:
                    emit_progress(progress, EvidenceCollectionProgress(
                        control_family=family,
                        total_items=total,
                        collected_items=completed,
                        current_evidence_type=label,
                        message=f"Collecting {label.lower()} evidence ({name})",
                    ))

                    collect: Callable[[str, str, str], Awaitable[list[Evidence]]] = getattr(
                        collector, method_name
                    )
                    collected.extend(await collect(tenant_id, family, collected_by))
                    completed += 1

                    emit_progress(progress, EvidenceCollectionProgress(
                        control_family=family,
                        total_items=total,
                        collected_items=completed,
                        current_evidence_type=label,
                        message=f"Collected {label.lower()} evidence ({name})",
                    ))

            emit_progress(progress, EvidenceCollectionProgress(
                control_family=family,
                total_items=total,
                collected_items=completed,
                current_evidence_type="Complete",
                message="Evidence collection completed",
            ))

            package.evidence = collected
            package.summary = generate_evidence_summary(collected)
            package.completeness_score = calculate_evidence_completeness(family, collected)
            package.attestation_statement = generate_attestation_statement(package)
            package.collection_end_time = datetime.now(timezone.utc)

        except Exception as e:
            package.error = sanitize_error(str(e)) or type(e).__name__
            package.collection_end_time = datetime.now(timezone.utc)
            logger.error("Error collecting evidence for control family %s: %s", family, package.error)
            raise

        await self._persist(package)

        logger.info(
            "Collected %d pieces of evidence for control family %s in %.1fs (completeness: %.2f%%)",
            len(package.evidence), family, time.time() - start, package.completeness_score,
        )
        return package

    async def _persist(self, package: EvidencePackage) -> None:
        try:
            await self.store.save_evidence_package(package)
        except Exception as e:
            logger.warning(
                "Failed to store evidence package %s: %s",
                package.package_id, sanitize_error(str(e)),
            )
