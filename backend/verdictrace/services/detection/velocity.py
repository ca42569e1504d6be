"""
Velocity Estimator

Measures recent acceleration in complaint volume from a chronological
sequence of per-period counts. Negative or flat trends clamp to 0,
extreme spikes clamp to 1.
"""
from typing import Sequence

# Number of trailing periods treated as "recent"
RECENT_PERIODS = 2


def _mean(values: Sequence[int]) -> float:
    return sum(values) / len(values) if values else 0.0


def compute_velocity(counts: Sequence[int]) -> float:
    """
    Compute a 0-1 velocity score.

    Args:
        counts: Per-period complaint counts, oldest first

    Returns:
        0.0 for fewer than two periods; otherwise the relative growth of the
        last two periods over all earlier periods, clamped to [0, 1]
    """
    if len(counts) < 2:
        return 0.0

    recent = counts[-RECENT_PERIODS:]
    older = counts[:-RECENT_PERIODS]

    recent_avg = _mean(recent)
    older_avg = _mean(older)

    if older_avg == 0:
        return 1.0 if recent_avg > 0 else 0.0

    ratio = (recent_avg - older_avg) / older_avg
    return max(0.0, min(1.0, ratio))
