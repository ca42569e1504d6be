"""
Case Resolver & Upsert Engine

Maintains at most one live case per (product_sku, failure_mode):
- resolve() finds the live case for a key, if any
- upsert() refreshes that case's metrics or opens a new one

Lookup-then-create is guarded twice: a process-wide lock per key
serializes upserts within one process, and the UNIQUE
(product_sku, failure_mode, live_flag) constraint rejects a second live
case written by any other process.
"""
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...exceptions import CasePersistError, NotificationFailed
from ...models.db_models import CaseDB, to_naive_utc, utcnow
from ...models.signals import (
    AuditAction,
    Exemplar,
    ScanWindow,
    ScoredCluster,
    SYSTEM_ACTOR,
    TERMINAL_STATUSES,
    status_for_tier,
)
from ..notifications.notifier import KIND_CREATED
from .audit_trail import AuditTrail


logger = logging.getLogger(__name__)


# key -> [lock, number of callers using it]; dropped when the count reaches 0
_key_locks: Dict[Tuple[str, str], list] = {}
_key_locks_guard = threading.Lock()


@contextmanager
def key_lock(product_sku: str, failure_mode: str):
    """Hold the process-wide lock for one (product, failure mode) key."""
    key = (product_sku, failure_mode)
    with _key_locks_guard:
        entry = _key_locks.get(key)
        if entry is None:
            entry = _key_locks[key] = [threading.Lock(), 0]
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _key_locks_guard:
            entry[1] -= 1
            if entry[1] == 0:
                del _key_locks[key]


@dataclass
class UpsertResult:
    """Outcome of one upsert."""
    case: CaseDB
    created: bool
    notified: bool = False


def case_title(product_sku: str, failure_mode: str) -> str:
    return f"{product_sku} - {failure_mode[:1].upper()}{failure_mode[1:]} Cluster"


class CaseResolver:
    """
    Finds and writes investigation cases for scored clusters.

    Usage:
        resolver = CaseResolver(db, notifier)
        result = resolver.upsert(scored, exemplars, narrative, window, threshold)
    """

    def __init__(self, db: Session, notifier=None, audit: Optional[AuditTrail] = None):
        self.db = db
        self.notifier = notifier
        self.audit = audit or AuditTrail()

    def resolve(self, product_sku: str, failure_mode: str) -> Optional[CaseDB]:
        """The live (not resolved, not dismissed) case for both keys, if any."""
        matches = (
            self.db.query(CaseDB)
            .filter(
                CaseDB.product_sku == product_sku,
                CaseDB.failure_mode == failure_mode,
                CaseDB.status.notin_(list(TERMINAL_STATUSES)),
            )
            .order_by(CaseDB.created_at)
            .all()
        )
        if len(matches) > 1:
            logger.error(
                f"{len(matches)} live cases for {product_sku}/{failure_mode}; using oldest {matches[0].id}"
            )
        return matches[0] if matches else None

    def upsert(
        self,
        scored: ScoredCluster,
        exemplars: List[Exemplar],
        narrative: str,
        window: ScanWindow,
        confidence_threshold: float,
        query_trace: Optional[Dict[str, Any]] = None,
    ) -> UpsertResult:
        """
        Refresh the live case for this cluster, or create one.

        The notifier is called once, only when a case is created, after the
        commit. Its failure is logged and does not undo the case.

        Raises:
            CasePersistError: the write could not be committed
        """
        with key_lock(scored.product_sku, scored.failure_mode):
            try:
                existing = self.resolve(scored.product_sku, scored.failure_mode)
                if existing is not None:
                    case = self._refresh(existing, scored, exemplars, narrative, query_trace)
                    created = False
                else:
                    case = self._create(scored, exemplars, narrative, window, confidence_threshold, query_trace)
                    created = True
                self.db.commit()
            except IntegrityError as e:
                self.db.rollback()
                raise CasePersistError(
                    f"Live case conflict for {scored.product_sku}/{scored.failure_mode}: {e.orig}"
                ) from e
            except SQLAlchemyError as e:
                self.db.rollback()
                raise CasePersistError(
                    f"Could not persist case for {scored.product_sku}/{scored.failure_mode}: {e}"
                ) from e

        result = UpsertResult(case=case, created=created)
        if created:
            result.notified = self._notify_created(case)
        return result

    def _apply_metrics(
        self,
        case: CaseDB,
        scored: ScoredCluster,
        exemplars: List[Exemplar],
        narrative: str,
        query_trace: Optional[Dict[str, Any]],
    ) -> None:
        c = scored.candidate
        case.severity_tier = int(scored.tier)
        case.status = status_for_tier(scored.tier)
        case.confidence_score = scored.confidence_score
        case.complaint_count = c.count
        case.injury_count = c.injury_count
        case.geo_regions = list(c.regions)
        case.narrative = narrative
        case.exemplar_ids = [e.complaint_id for e in exemplars]
        case.trend_data = c.trend_data
        if query_trace is not None:
            case.query_trace = query_trace

    def _refresh(self, case, scored, exemplars, narrative, query_trace) -> CaseDB:
        # Recomputed tier/status replace whatever a human last set
        self._apply_metrics(case, scored, exemplars, narrative, query_trace)
        case.updated_at = utcnow()
        self.audit.append(
            case,
            AuditAction.RESCAN_UPDATE,
            SYSTEM_ACTOR,
            f"Rescan detected {scored.candidate.count} complaints (was previously flagged). "
            f"Confidence: {scored.confidence_score}.",
        )
        logger.info(f"Case {case.id} updated by rescan")
        return case

    def _create(self, scored, exemplars, narrative, window, confidence_threshold, query_trace) -> CaseDB:
        now = utcnow()
        case = CaseDB(
            id=str(uuid4()),
            title=case_title(scored.product_sku, scored.failure_mode),
            product_sku=scored.product_sku,
            failure_mode=scored.failure_mode,
            live_flag=True,
            date_range_start=to_naive_utc(window.start),
            date_range_end=to_naive_utc(window.end),
            created_at=now,
            updated_at=now,
            audit_log=[],
        )
        self._apply_metrics(case, scored, exemplars, narrative, query_trace)
        self.db.add(case)
        self.audit.append(
            case,
            AuditAction.CREATED,
            SYSTEM_ACTOR,
            f"Auto-generated from cluster detection. Confidence {scored.confidence_score} "
            f"exceeded threshold {confidence_threshold}.",
        )
        logger.info(f"New case {case.id} created for {scored.product_sku}/{scored.failure_mode}")
        return case

    def _notify_created(self, case: CaseDB) -> bool:
        if self.notifier is None:
            return False
        try:
            self.notifier.notify(
                case,
                title=f"New case: {case.product_sku} - {case.failure_mode}",
                message=(
                    f"Cluster detected with {case.complaint_count} complaints, "
                    f"{case.injury_count} injuries. Tier: {case.tier.label}"
                ),
                kind=KIND_CREATED,
            )
            return True
        except NotificationFailed as e:
            logger.warning(str(e))
            return False
