"""
Signal Detection

Pure scoring functions over cluster metrics:
- compute_velocity: recent acceleration (0-1)
- compute_confidence_score: evidentiary strength gate (0-1)
- classify_tier: ordered severity tier
"""
from .velocity import compute_velocity
from .confidence import compute_confidence_score, injury_rate
from .tier_classifier import classify_tier

from ...models.signals import ClusterCandidate, ScoredCluster


def score_cluster(candidate: ClusterCandidate) -> ScoredCluster:
    """Derive velocity, confidence and tier for a candidate."""
    velocity = compute_velocity(candidate.period_counts)
    confidence = compute_confidence_score(
        candidate.count,
        injury_rate(candidate.count, candidate.injury_count),
        candidate.geo_spread,
        velocity,
    )
    tier = classify_tier(
        candidate.count,
        candidate.injury_count,
        candidate.geo_spread,
        velocity,
    )
    return ScoredCluster(
        candidate=candidate,
        velocity=velocity,
        confidence_score=confidence,
        tier=tier,
    )


__all__ = [
    "compute_velocity",
    "compute_confidence_score",
    "injury_rate",
    "classify_tier",
    "score_cluster",
]
