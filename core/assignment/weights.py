"""
Weighting for recruiter pre-screen assignment.

A recruiter's weight is the product of three factors, each in 1..3:

- tier: subscription plan (starter 1, pro 2, partner 3)
- activity: recency of the recruiter's last candidate-side application
- workload: how many pre-screens already sit with the recruiter

Higher weight means a proportionally higher chance of being picked.
No database access happens here.
"""

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

from core.config import settings
from core.utils.datetime import is_within_days
from database.models.subscriptions import PlanTier

TIER_WEIGHTS: dict[PlanTier, int] = {
    PlanTier.STARTER: 1,
    PlanTier.PRO: 2,
    PlanTier.PARTNER: 3,
}
DEFAULT_TIER_WEIGHT = 1


def tier_weight(tier: Optional[PlanTier]) -> int:
    if tier is None:
        return DEFAULT_TIER_WEIGHT
    return TIER_WEIGHTS.get(PlanTier(tier), DEFAULT_TIER_WEIGHT)


def highest_tier(tiers: Iterable[PlanTier]) -> Optional[PlanTier]:
    """Pick the best plan among a recruiter's active subscriptions."""
    best = None
    for tier in tiers:
        tier = PlanTier(tier)
        if best is None or TIER_WEIGHTS[tier] > TIER_WEIGHTS[best]:
            best = tier
    return best


def activity_weight(
    last_activity_at: Optional[datetime],
    reference: Optional[datetime] = None,
    recent_days: Optional[int] = None,
    active_days: Optional[int] = None,
) -> int:
    """
    3 if the recruiter submitted within the recent window, 2 within the
    active window, 1 otherwise (including never).
    """
    recent_days = recent_days if recent_days is not None else settings.assignment_recent_activity_days
    active_days = active_days if active_days is not None else settings.assignment_active_activity_days

    if is_within_days(last_activity_at, recent_days, reference):
        return 3
    if is_within_days(last_activity_at, active_days, reference):
        return 2
    return 1


def workload_weight(pending_prescreens: int) -> int:
    """Fewer pending pre-screens means a higher weight."""
    if pending_prescreens <= 0:
        return 3
    if pending_prescreens <= 2:
        return 2
    return 1


@dataclass
class RecruiterCandidate:
    """One recruiter in the assignment working set."""

    recruiter_id: str
    tier: Optional[PlanTier] = None
    last_activity_at: Optional[datetime] = None
    pending_prescreens: int = 0
    reference_time: Optional[datetime] = None

    @property
    def weight(self) -> int:
        return (
            tier_weight(self.tier)
            * activity_weight(self.last_activity_at, self.reference_time)
            * workload_weight(self.pending_prescreens)
        )


def weighted_select(
    candidates: Sequence[RecruiterCandidate],
    rng: Optional[random.Random] = None,
) -> Optional[RecruiterCandidate]:
    """
    Draw one candidate with probability proportional to its weight.

    Args:
        candidates: Working set; order is significant only for ties at the
            boundary of the draw
        rng: Random source, injectable for deterministic tests

    Returns:
        The selected candidate, or None for an empty pool
    """
    if not candidates:
        return None

    rng = rng or random.Random()
    weights = [candidate.weight for candidate in candidates]
    remaining = rng.random() * sum(weights)

    for candidate, weight in zip(candidates, weights):
        remaining -= weight
        if remaining <= 0:
            return candidate

    # Floating point drift can leave a sliver after the last subtraction
    return candidates[-1]
