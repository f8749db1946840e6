"""
Tests for recruiter assignment weighting and the weighted draw.
"""

import random
from collections import Counter
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from core.assignment.weights import (
    RecruiterCandidate,
    activity_weight,
    highest_tier,
    tier_weight,
    weighted_select,
    workload_weight,
)
from database.models.subscriptions import PlanTier

REFERENCE = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestTierWeight:
    @pytest.mark.parametrize(
        "tier,expected",
        [(PlanTier.STARTER, 1), (PlanTier.PRO, 2), (PlanTier.PARTNER, 3), (None, 1)],
    )
    def test_tier_weight(self, tier, expected):
        assert tier_weight(tier) == expected

    def test_accepts_raw_value(self):
        assert tier_weight("partner") == 3

    def test_highest_tier(self):
        assert highest_tier([PlanTier.STARTER, PlanTier.PARTNER, PlanTier.PRO]) == PlanTier.PARTNER

    def test_highest_tier_empty(self):
        assert highest_tier([]) is None


class TestActivityWeight:
    """Test recency windows (30 and 90 days)."""

    @pytest.mark.parametrize(
        "days_ago,expected",
        [(0, 3), (10, 3), (30, 3), (31, 2), (60, 2), (90, 2), (91, 1), (400, 1)],
    )
    def test_windows(self, days_ago, expected):
        last_activity = REFERENCE - timedelta(days=days_ago)
        assert activity_weight(last_activity, REFERENCE, 30, 90) == expected

    def test_never_active(self):
        assert activity_weight(None, REFERENCE, 30, 90) == 1

    def test_naive_timestamp_treated_as_utc(self):
        naive = (REFERENCE - timedelta(days=5)).replace(tzinfo=None)
        assert activity_weight(naive, REFERENCE, 30, 90) == 3

    def test_uses_configured_windows(self):
        last_activity = REFERENCE - timedelta(days=45)
        assert activity_weight(last_activity, REFERENCE) == 2


class TestWorkloadWeight:
    @pytest.mark.parametrize(
        "pending,expected", [(0, 3), (1, 2), (2, 2), (3, 1), (25, 1)]
    )
    def test_workload_weight(self, pending, expected):
        assert workload_weight(pending) == expected


class TestRecruiterCandidateWeight:
    def test_weight_is_product_of_factors(self):
        candidate = RecruiterCandidate(
            recruiter_id="r1",
            tier=PlanTier.PRO,
            last_activity_at=REFERENCE - timedelta(days=60),
            pending_prescreens=0,
            reference_time=REFERENCE,
        )
        assert candidate.weight == 2 * 2 * 3

    def test_minimum_weight(self):
        candidate = RecruiterCandidate(recruiter_id="r1", pending_prescreens=10, reference_time=REFERENCE)
        assert candidate.weight == 1

    def test_maximum_weight(self):
        candidate = RecruiterCandidate(
            recruiter_id="r1",
            tier=PlanTier.PARTNER,
            last_activity_at=REFERENCE,
            reference_time=REFERENCE,
        )
        assert candidate.weight == 27


def _candidates_with_weights_1_3_9():
    busy = 5  # workload factor 1
    return [
        RecruiterCandidate("w1", PlanTier.STARTER, None, busy, REFERENCE),
        RecruiterCandidate("w3", PlanTier.PARTNER, None, busy, REFERENCE),
        RecruiterCandidate("w9", PlanTier.PARTNER, REFERENCE - timedelta(days=1), busy, REFERENCE),
    ]


class TestWeightedSelect:
    """Test the proportional draw."""

    def test_empty_pool(self):
        assert weighted_select([]) is None

    def test_single_candidate_always_selected(self):
        only = RecruiterCandidate("solo", reference_time=REFERENCE)
        rng = random.Random(7)
        assert all(weighted_select([only], rng) is only for _ in range(50))

    def test_weights_fixture(self):
        assert [c.weight for c in _candidates_with_weights_1_3_9()] == [1, 3, 9]

    def test_draw_zero_selects_first(self):
        candidates = _candidates_with_weights_1_3_9()
        rng = Mock()
        rng.random.return_value = 0.0
        assert weighted_select(candidates, rng).recruiter_id == "w1"

    def test_draw_near_one_selects_last(self):
        candidates = _candidates_with_weights_1_3_9()
        rng = Mock()
        rng.random.return_value = 0.9999
        assert weighted_select(candidates, rng).recruiter_id == "w9"

    def test_boundary_belongs_to_lower_candidate(self):
        # r = 1/13 * 13 = 1.0 lands exactly on the end of w1's interval
        candidates = _candidates_with_weights_1_3_9()
        rng = Mock()
        rng.random.return_value = 1 / 13
        assert weighted_select(candidates, rng).recruiter_id in ("w1", "w3")

    def test_frequencies_converge_to_weights(self):
        candidates = _candidates_with_weights_1_3_9()
        rng = random.Random(42)
        draws = 13_000

        counts = Counter(weighted_select(candidates, rng).recruiter_id for _ in range(draws))

        assert counts["w1"] / draws == pytest.approx(1 / 13, abs=0.02)
        assert counts["w3"] / draws == pytest.approx(3 / 13, abs=0.02)
        assert counts["w9"] / draws == pytest.approx(9 / 13, abs=0.02)

    def test_seeded_rng_is_deterministic(self):
        candidates = _candidates_with_weights_1_3_9()
        first = [weighted_select(candidates, random.Random(3)).recruiter_id for _ in range(5)]
        second = [weighted_select(candidates, random.Random(3)).recruiter_id for _ in range(5)]
        assert first == second
