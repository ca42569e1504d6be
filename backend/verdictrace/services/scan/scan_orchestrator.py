"""
Cluster Detection Scanner

Entry point of the detection engine. One run:
1. Pull cluster candidates (product x failure mode) from the aggregation adapter
2. Drop clusters below the minimum document count
3. Score velocity, confidence and tier
4. Drop clusters below the confidence threshold
5. Sample exemplars and generate the narrative (templated fallback)
6. Create or refresh the case for the cluster
7. Return a ScanSummary

This is the only code path that creates cases. Candidates are processed one
at a time; each upsert is its own transaction, so a cancelled or failed run
never leaves a partial case behind.
"""
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from ...exceptions import AggregationFetchError, CasePersistError, NarrativeDegraded
from ...models.signals import (
    ClusterCandidate,
    ClusterResult,
    Exemplar,
    ScanConfig,
    ScanSummary,
    ScanWindow,
    ScoredCluster,
)
from ..cases import CaseResolver
from ..detection import score_cluster
from ..narrative import NarrativeGenerator, template_narrative
from ..notifications import CaseNotifier
from ..search import AggregationAdapter, ComplaintSearch


logger = logging.getLogger(__name__)


class ScanOrchestrator:
    """
    Runs cluster detection scans.

    Usage:
        orchestrator = ScanOrchestrator(db)
        summary = orchestrator.run_scan(SettingsService(db).get_scan_config())
    """

    def __init__(
        self,
        db: Session,
        adapter: Optional[AggregationAdapter] = None,
        complaint_search: Optional[ComplaintSearch] = None,
        narrative_generator: Optional[NarrativeGenerator] = None,
        resolver: Optional[CaseResolver] = None,
    ):
        self.db = db
        self.adapter = adapter or AggregationAdapter()
        self.complaint_search = complaint_search or ComplaintSearch()
        self.narrative_generator = narrative_generator or NarrativeGenerator()
        self.resolver = resolver or CaseResolver(db, notifier=CaseNotifier(db))

    def run_scan(
        self,
        config: ScanConfig,
        now: Optional[datetime] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ScanSummary:
        """
        Run one scan.

        Args:
            config: Thresholds and window for this run
            now: End of the scan window (default: current time)
            cancel_event: When set, the run stops before the next cluster

        Returns:
            ScanSummary with counters, per-cluster results and log lines

        Raises:
            AggregationFetchError: candidates could not be fetched; no case
                was touched. The partial ScanSummary (aborted=True) is
                attached as the exception's summary attribute
        """
        end = now or datetime.now(timezone.utc)
        window = ScanWindow(
            start=end - timedelta(days=config.window_days),
            end=end,
            bucket_interval=config.bucket_interval,
        )
        summary = ScanSummary(
            confidence_threshold=config.confidence_threshold,
            cluster_min_docs=config.cluster_min_docs,
        )

        self._log(summary, "Starting cluster detection scan...")
        self._log(summary, f"Confidence threshold: {config.confidence_threshold}")
        self._log(summary, f"Minimum cluster docs: {config.cluster_min_docs}")

        try:
            candidates = self.adapter.fetch_candidates(window)
        except AggregationFetchError as e:
            summary.aborted = True
            self._log(summary, f"Aggregation failed, scan aborted: {e}", "err")
            e.summary = summary
            raise

        summary.clusters_fetched = len(candidates)
        self._log(summary, f"Found {len(candidates)} cluster candidates.")

        for candidate in candidates:
            if cancel_event is not None and cancel_event.is_set():
                summary.cancelled = True
                self._log(summary, "Scan cancelled before all clusters were processed.", "warn")
                break
            self._process(candidate, config, window, summary)

        self._log(
            summary,
            f"Scan complete. {summary.clusters_evaluated} clusters evaluated, "
            f"{summary.clusters_above_gate} above gate, {summary.cases_created} new cases created, "
            f"{summary.cases_updated} updated, {summary.cases_failed} failed.",
            "ok",
        )
        return summary

    def _process(
        self,
        candidate: ClusterCandidate,
        config: ScanConfig,
        window: ScanWindow,
        summary: ScanSummary,
    ) -> None:
        # Below minimum volume: counted only
        if candidate.count < config.cluster_min_docs:
            summary.clusters_below_min_docs += 1
            return

        summary.clusters_evaluated += 1
        scored = score_cluster(candidate)

        self._log(
            summary,
            f"Cluster: {candidate.product_sku} / {candidate.failure_mode} - {candidate.count} complaints, "
            f"{candidate.injury_count} injuries, {candidate.geo_spread} regions, "
            f"confidence={scored.confidence_score}",
        )

        if scored.confidence_score < config.confidence_threshold:
            summary.clusters_below_threshold += 1
            self._log(
                summary,
                f"  Below threshold ({scored.confidence_score} < {config.confidence_threshold}) - skipping.",
            )
            return

        summary.clusters_above_gate += 1
        self._log(summary, "  Above threshold - generating Evidence Pack.", "ok")

        exemplars = self._exemplars(scored, config, summary)
        narrative = self._narrative(scored, exemplars, summary)

        result = ClusterResult(
            product_sku=candidate.product_sku,
            failure_mode=candidate.failure_mode,
            count=candidate.count,
            injuries=candidate.injury_count,
            confidence=scored.confidence_score,
            tier=scored.tier.label,
            action="failed",
        )
        try:
            upsert = self.resolver.upsert(
                scored,
                exemplars,
                narrative,
                window,
                config.confidence_threshold,
                query_trace=self.adapter.query_trace(
                    candidate.product_sku, candidate.failure_mode, config.exemplar_count
                ),
            )
        except CasePersistError as e:
            summary.cases_failed += 1
            result.error = str(e)
            self._log(summary, f"  Case write failed: {e}", "err")
            summary.results.append(result)
            return

        result.case_id = upsert.case.id
        if upsert.created:
            summary.cases_created += 1
            result.action = "created"
            self._log(summary, f"  New case created: {upsert.case.id}", "ok")
        else:
            summary.cases_updated += 1
            result.action = "updated"
            self._log(summary, f"  Case {upsert.case.id} updated.", "ok")
        summary.results.append(result)

    def _exemplars(self, scored: ScoredCluster, config: ScanConfig, summary: ScanSummary) -> List[Exemplar]:
        try:
            return self.complaint_search.recent_exemplars(
                scored.product_sku, scored.failure_mode, config.exemplar_count
            )
        except AggregationFetchError as e:
            self._log(summary, f"  Exemplar lookup failed, continuing without exemplars: {e}", "warn")
            return []

    def _narrative(self, scored: ScoredCluster, exemplars: List[Exemplar], summary: ScanSummary) -> str:
        try:
            return self.narrative_generator.generate(scored, exemplars)
        except NarrativeDegraded as e:
            summary.narratives_degraded += 1
            self._log(summary, f"  Narrative degraded ({e}) - using templated narrative.", "warn")
            return template_narrative(scored)

    @staticmethod
    def _log(summary: ScanSummary, message: str, level: str = "info") -> None:
        summary.add_log(message, level)
        if level == "err":
            logger.error(message)
        elif level == "warn":
            logger.warning(message)
        else:
            logger.info(message)


def run_scan(db: Session, config: ScanConfig, **kwargs) -> ScanSummary:
    """
    Convenience function to run one scan with the default collaborators.

    Args:
        db: Database session
        config: Thresholds for this run

    Returns:
        ScanSummary
    """
    return ScanOrchestrator(db).run_scan(config, **kwargs)
