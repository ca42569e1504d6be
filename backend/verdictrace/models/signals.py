"""
VerdictTrace - Signal Models

In-memory structures that flow through a scan. None of these are
persisted directly: candidates and scored clusters live for one run,
the persisted form is CaseDB.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Tuple


# =============================================================================
# ENUMS
# =============================================================================

class SeverityTier(IntEnum):
    """Ordered severity classification. Higher is more urgent."""
    MONITOR = 1
    INVESTIGATE = 2
    ESCALATE = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        return self.name.capitalize()


class CaseStatus(str, Enum):
    """Case lifecycle status."""
    OPEN = "open"
    INVESTIGATING = "investigating"
    ESCALATED = "escalated"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({CaseStatus.RESOLVED, CaseStatus.DISMISSED})


class AuditAction(str, Enum):
    """Audit trail action tags."""
    CREATED = "created"
    RESCAN_UPDATE = "rescan_update"
    ESCALATE = "escalate"
    DISMISS = "dismiss"
    RESOLVE = "resolve"
    COMMENT = "comment"


def status_for_tier(tier: SeverityTier) -> CaseStatus:
    """Status a scan assigns to a case at the given tier."""
    return CaseStatus.ESCALATED if tier >= SeverityTier.ESCALATE else CaseStatus.OPEN


# =============================================================================
# SCAN INPUTS
# =============================================================================

@dataclass(frozen=True)
class ScanWindow:
    """Time window and histogram granularity for one scan."""
    start: datetime
    end: datetime
    bucket_interval: str = "1w"


@dataclass(frozen=True)
class ScanConfig:
    """
    Thresholds for one scan run.

    Read once from the settings table at the start of a scan and passed
    in explicitly, so a run is deterministic for fixed inputs.
    """
    confidence_threshold: float = 0.70
    cluster_min_docs: int = 5
    window_days: int = 90
    bucket_interval: str = "1w"
    exemplar_count: int = 5


@dataclass(frozen=True)
class AuditActor:
    """Who performed an audited action."""
    actor_id: str
    actor_name: str


SYSTEM_ACTOR = AuditActor(actor_id="system", actor_name="VerdictTrace Scanner")


# =============================================================================
# CLUSTERS
# =============================================================================

@dataclass(frozen=True)
class ClusterCandidate:
    """
    Complaints sharing a product SKU and failure mode within a scan window.

    trend holds (period_label, count) pairs in chronological order.
    """
    product_sku: str
    failure_mode: str
    count: int
    injury_count: int
    regions: Tuple[str, ...] = ()
    trend: Tuple[Tuple[str, int], ...] = ()

    def __post_init__(self):
        if self.count < 0:
            raise ValueError(f"count must be >= 0, got {self.count}")
        if not 0 <= self.injury_count <= self.count:
            raise ValueError(
                f"injury_count must be within [0, {self.count}], got {self.injury_count}"
            )
        if self.count > 0 and not self.regions:
            raise ValueError("regions must be non-empty when count > 0")

    @property
    def geo_spread(self) -> int:
        return len(set(self.regions))

    @property
    def period_counts(self) -> List[int]:
        return [count for _, count in self.trend]

    @property
    def trend_data(self) -> Dict[str, int]:
        return {period: count for period, count in self.trend}


@dataclass(frozen=True)
class ScoredCluster:
    """ClusterCandidate plus derived velocity, confidence and tier."""
    candidate: ClusterCandidate
    velocity: float
    confidence_score: float
    tier: SeverityTier

    @property
    def product_sku(self) -> str:
        return self.candidate.product_sku

    @property
    def failure_mode(self) -> str:
        return self.candidate.failure_mode

    def metrics(self) -> Dict[str, Any]:
        """Cluster metrics as sent to the narrative generator."""
        c = self.candidate
        rate = c.injury_count / c.count if c.count else 0.0
        return {
            "product_sku": c.product_sku,
            "failure_mode": c.failure_mode,
            "complaint_count": c.count,
            "injury_count": c.injury_count,
            "injury_rate": f"{round(rate * 100, 1)}%",
            "geo_regions": list(c.regions),
            "geo_spread": c.geo_spread,
            "velocity": self.velocity,
            "confidence_score": self.confidence_score,
            "tier": self.tier.label,
        }


@dataclass(frozen=True)
class Exemplar:
    """A representative complaint attached to a case as evidence."""
    complaint_id: str
    title: str = ""
    summary: str = ""
    location: str = ""
    injury: bool = False

    def excerpt(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "summary": self.summary,
            "location": self.location,
            "injury": self.injury,
        }


# =============================================================================
# SCAN OUTPUT
# =============================================================================

@dataclass
class ClusterResult:
    """Per-cluster outcome row for clusters that passed the gate."""
    product_sku: str
    failure_mode: str
    count: int
    injuries: int
    confidence: float
    tier: str
    action: str  # created | updated | failed
    case_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ScanSummary:
    """Result of one scan run."""
    confidence_threshold: float
    cluster_min_docs: int
    clusters_fetched: int = 0
    clusters_below_min_docs: int = 0
    clusters_evaluated: int = 0
    clusters_below_threshold: int = 0
    clusters_above_gate: int = 0
    cases_created: int = 0
    cases_updated: int = 0
    cases_failed: int = 0
    narratives_degraded: int = 0
    cancelled: bool = False
    aborted: bool = False
    results: List[ClusterResult] = field(default_factory=list)
    log: List[str] = field(default_factory=list)

    _PREFIX = {"info": "ℹ", "ok": "✓", "warn": "⚠", "err": "✗"}

    def add_log(self, message: str, level: str = "info") -> None:
        self.log.append(f"{self._PREFIX.get(level, '•')} {message}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "confidence_threshold": self.confidence_threshold,
            "cluster_min_docs": self.cluster_min_docs,
            "clusters_fetched": self.clusters_fetched,
            "clusters_below_min_docs": self.clusters_below_min_docs,
            "clusters_evaluated": self.clusters_evaluated,
            "clusters_below_threshold": self.clusters_below_threshold,
            "clusters_above_gate": self.clusters_above_gate,
            "cases_created": self.cases_created,
            "cases_updated": self.cases_updated,
            "cases_failed": self.cases_failed,
            "narratives_degraded": self.narratives_degraded,
            "cancelled": self.cancelled,
            "aborted": self.aborted,
            "results": [vars(r) for r in self.results],
            "log": list(self.log),
        }
