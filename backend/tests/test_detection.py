"""
Tests for the pure scoring functions.

1. Velocity (recent acceleration, clamped)
2. Confidence score (fixed weights, 3-decimal rounding)
3. Tier classification (ordered rules)
4. Gate and tier computed independently
"""
import math

import pytest

from verdictrace.models.signals import ClusterCandidate, SeverityTier
from verdictrace.services.detection import (
    classify_tier,
    compute_confidence_score,
    compute_velocity,
    injury_rate,
    score_cluster,
)

from helpers import make_candidate


# =============================================================================
# VELOCITY
# =============================================================================

class TestVelocity:

    def test_spike_clamps_to_one(self):
        """older avg 3.333, recent avg 11 -> ratio ~2.3 -> 1.0"""
        assert compute_velocity([2, 3, 5, 10, 12]) == 1.0

    def test_single_period_is_zero(self):
        assert compute_velocity([5]) == 0.0

    def test_empty_is_zero(self):
        assert compute_velocity([]) == 0.0

    def test_all_zero_is_zero(self):
        assert compute_velocity([0, 0]) == 0.0

    def test_two_periods_with_activity_is_one(self):
        """No older periods means olderAvg = 0."""
        assert compute_velocity([3, 7]) == 1.0

    def test_flat_trend_is_zero(self):
        assert compute_velocity([4, 4, 4, 4]) == 0.0

    def test_declining_trend_clamps_to_zero(self):
        assert compute_velocity([10, 10, 5, 5]) == 0.0

    def test_moderate_growth_is_ratio(self):
        assert compute_velocity([4, 4, 5, 5]) == pytest.approx(0.25)

    def test_quiet_history_then_activity_is_one(self):
        assert compute_velocity([0, 0, 3, 1]) == 1.0


# =============================================================================
# CONFIDENCE
# =============================================================================

class TestConfidenceScore:

    def test_strong_cluster_passes_default_gate(self):
        """count=50, 10 injuries, 5 regions, velocity 1.0 -> 0.72"""
        score = compute_confidence_score(50, injury_rate(50, 10), 5, 1.0)
        assert score == pytest.approx(0.72)
        assert score >= 0.70

    def test_small_cluster_fails_default_gate(self):
        """volume ln6/ln50 ~ 0.458, one region -> 0.137 + 0.04"""
        score = compute_confidence_score(5, 0.0, 1, 0.0)
        expected = round(0.3 * math.log(6) / math.log(50) + 0.2 * (1 / 5), 3)
        assert score == pytest.approx(expected)
        assert score == pytest.approx(0.177)
        assert score < 0.70

    def test_empty_cluster_scores_zero(self):
        assert compute_confidence_score(0, injury_rate(0, 0), 0, 0.0) == 0.0

    def test_everything_saturated_is_one(self):
        assert compute_confidence_score(1000, 1.0, 12, 1.0) == 1.0

    def test_rounded_to_three_decimals(self):
        score = compute_confidence_score(17, injury_rate(17, 2), 2, 0.4)
        assert score == round(score, 3)

    def test_injury_rate_zero_count(self):
        assert injury_rate(0, 0) == 0.0

    def test_injury_weighted_highest(self):
        """Same evidence moved from geo to injury raises the score."""
        base = compute_confidence_score(10, 0.0, 5, 0.0)
        injured = compute_confidence_score(10, 1.0, 0, 0.0)
        assert injured > base


# =============================================================================
# TIER
# =============================================================================

class TestTierClassifier:

    def test_critical(self):
        assert classify_tier(50, 10, 5, 0.0) == SeverityTier.CRITICAL

    def test_single_injury_low_volume_is_investigate(self):
        assert classify_tier(8, 1, 1, 0.0) == SeverityTier.INVESTIGATE

    def test_quiet_cluster_is_monitor(self):
        assert classify_tier(3, 0, 1, 0.0) == SeverityTier.MONITOR

    def test_injury_with_volume_is_escalate(self):
        assert classify_tier(10, 1, 1, 0.0) == SeverityTier.ESCALATE

    def test_injury_with_spread_is_escalate(self):
        assert classify_tier(5, 1, 2, 0.0) == SeverityTier.ESCALATE

    def test_critical_needs_three_regions(self):
        assert classify_tier(20, 3, 2, 0.0) == SeverityTier.ESCALATE

    def test_critical_needs_twenty_complaints(self):
        assert classify_tier(19, 3, 3, 0.0) == SeverityTier.ESCALATE

    def test_velocity_above_half_is_investigate(self):
        assert classify_tier(5, 0, 1, 0.6) == SeverityTier.INVESTIGATE

    def test_velocity_exactly_half_is_monitor(self):
        assert classify_tier(5, 0, 1, 0.5) == SeverityTier.MONITOR

    def test_tiers_are_ordered(self):
        assert SeverityTier.MONITOR < SeverityTier.INVESTIGATE < SeverityTier.ESCALATE < SeverityTier.CRITICAL
        assert SeverityTier.CRITICAL.label == "Critical"


# =============================================================================
# GATE VS TIER
# =============================================================================

class TestGateIndependence:

    def test_critical_tier_can_fail_confidence_gate(self):
        """count=20, 3 injuries, 3 regions, flat trend: Critical but ~0.406 confidence."""
        scored = score_cluster(make_candidate(
            count=20,
            injury_count=3,
            regions=("NA", "EU", "APAC"),
            counts=(5, 5, 5, 5),
        ))

        assert scored.velocity == 0.0
        assert scored.tier == SeverityTier.CRITICAL
        assert scored.confidence_score == pytest.approx(0.406)
        assert scored.confidence_score < 0.70

    def test_score_cluster_matches_pure_functions(self):
        candidate = make_candidate()
        scored = score_cluster(candidate)

        velocity = compute_velocity(candidate.period_counts)
        assert scored.velocity == velocity
        assert scored.confidence_score == compute_confidence_score(
            candidate.count, injury_rate(candidate.count, candidate.injury_count),
            candidate.geo_spread, velocity,
        )
        assert scored.tier == classify_tier(
            candidate.count, candidate.injury_count, candidate.geo_spread, velocity,
        )


# =============================================================================
# CANDIDATE INVARIANTS
# =============================================================================

class TestClusterCandidate:

    def test_injuries_cannot_exceed_count(self):
        with pytest.raises(ValueError):
            ClusterCandidate("SKU", "fire", count=2, injury_count=3, regions=("NA",))

    def test_regions_required_when_count_positive(self):
        with pytest.raises(ValueError):
            ClusterCandidate("SKU", "fire", count=2, injury_count=0, regions=())

    def test_empty_cluster_allowed_without_regions(self):
        candidate = ClusterCandidate("SKU", "fire", count=0, injury_count=0)
        assert candidate.geo_spread == 0

    def test_trend_keeps_chronological_order(self):
        candidate = make_candidate(counts=(1, 2, 3))
        assert candidate.period_counts == [1, 2, 3]
        assert list(candidate.trend_data) == ["2024-01-01", "2024-02-01", "2024-03-01"]
