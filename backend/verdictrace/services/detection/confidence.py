"""
Confidence Scorer

Weighted combination of volume, injury rate, geographic spread and
velocity into a single 0-1 score. The weights are fixed so historical
scores stay reproducible; injury evidence carries the most weight.

This score is computed independently of the severity tier. A cluster can
meet the Critical tier thresholds and still fail the confidence gate.
"""
import math

VOLUME_WEIGHT = 0.30
INJURY_WEIGHT = 0.35
GEO_WEIGHT = 0.20
VELOCITY_WEIGHT = 0.15

# Volume saturates at this many reports (log scale)
VOLUME_SATURATION = 50
# Geographic spread saturates at this many distinct regions
GEO_SATURATION = 5


def injury_rate(count: int, injury_count: int) -> float:
    """Proportion of complaints mentioning an injury (0 when there are none)."""
    return injury_count / count if count > 0 else 0.0


def volume_score(count: int) -> float:
    return min(1.0, math.log(count + 1) / math.log(VOLUME_SATURATION))


def geo_score(geo_spread: int) -> float:
    return min(1.0, geo_spread / GEO_SATURATION)


def compute_confidence_score(
    count: int,
    injury_rate: float,
    geo_spread: int,
    velocity: float,
) -> float:
    """
    Compute the confidence gate score.

    Args:
        count: Number of complaints in the cluster
        injury_rate: Proportion of complaints mentioning injury (0-1)
        geo_spread: Number of distinct geographic regions
        velocity: Velocity score (0-1)

    Returns:
        Score in [0, 1], rounded to 3 decimals
    """
    score = (
        volume_score(count) * VOLUME_WEIGHT
        + injury_rate * INJURY_WEIGHT
        + geo_score(geo_spread) * GEO_WEIGHT
        + velocity * VELOCITY_WEIGHT
    )
    return round(max(0.0, min(1.0, score)), 3)
