"""VerdictTrace - Models"""
from .signals import (
    SeverityTier,
    CaseStatus,
    AuditAction,
    TERMINAL_STATUSES,
    status_for_tier,
    ScanWindow,
    ScanConfig,
    AuditActor,
    SYSTEM_ACTOR,
    ClusterCandidate,
    ScoredCluster,
    Exemplar,
    ClusterResult,
    ScanSummary,
)

__all__ = [
    "SeverityTier",
    "CaseStatus",
    "AuditAction",
    "TERMINAL_STATUSES",
    "status_for_tier",
    "ScanWindow",
    "ScanConfig",
    "AuditActor",
    "SYSTEM_ACTOR",
    "ClusterCandidate",
    "ScoredCluster",
    "Exemplar",
    "ClusterResult",
    "ScanSummary",
]
