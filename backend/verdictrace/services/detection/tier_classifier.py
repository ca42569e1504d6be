"""
Tier Classifier

Ordered rule evaluation, first match wins. Pure and total.
"""
from ...models.signals import SeverityTier


def classify_tier(
    count: int,
    injury_count: int,
    geo_spread: int,
    velocity: float,
) -> SeverityTier:
    """Map raw cluster metrics to a severity tier."""
    # Critical: injuries + wide spread + high volume
    if injury_count >= 3 and geo_spread >= 3 and count >= 20:
        return SeverityTier.CRITICAL

    # Escalate: any injuries + moderate spread or volume
    if injury_count >= 1 and (geo_spread >= 2 or count >= 10):
        return SeverityTier.ESCALATE

    # Investigate: moderate volume, any injury, or fast growth
    if injury_count >= 1 or count >= 10 or velocity > 0.5:
        return SeverityTier.INVESTIGATE

    return SeverityTier.MONITOR
