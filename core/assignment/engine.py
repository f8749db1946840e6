"""
Recruiter assignment for pre-screen requests.

Selection runs over two pools in order:

1. Recruiters with an active relationship to the company.
2. Any active recruiter on the platform (bounded). Picking from this pool
   creates a relationship with the company so the next request finds the
   recruiter in the first pool.

Within a pool the draw is weighted (see ``core.assignment.weights``).
"""

import logging
import random
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.assignment.weights import RecruiterCandidate, highest_tier, weighted_select
from core.config import settings
from core.utils.datetime import now
from database.models.applications import Application, ApplicationStage
from database.models.jobs import Job
from database.models.recruiters import (
    Recruiter,
    RecruiterCompany,
    RecruiterCompanyRole,
    RecruiterCompanyStatus,
    RecruiterStatus,
)
from database.models.subscriptions import ACTIVE_SUBSCRIPTION_STATUSES, Subscription

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssignmentResult:
    recruiter_id: str
    created_relationship: bool


class RecruiterAssignmentEngine:
    """Pick a company-side recruiter for a company."""

    def __init__(
        self,
        db: AsyncSession,
        rng: Optional[random.Random] = None,
        fallback_pool_size: Optional[int] = None,
    ):
        self.db = db
        self.rng = rng or random.Random()
        self.fallback_pool_size = fallback_pool_size or settings.assignment_fallback_pool_size

    async def select_recruiter(self, company_id: str) -> Optional[AssignmentResult]:
        """
        Select a recruiter for ``company_id``.

        The relationship row for a fallback pick is added and flushed but not
        committed; the caller owns the transaction.

        Returns:
            AssignmentResult, or None when no active recruiter exists
        """
        pool = await self._load_company_pool(company_id)
        if pool:
            chosen = weighted_select(await self._load_candidates(pool), self.rng)
            logger.info(
                f"Assigned recruiter {chosen.recruiter_id} to company {company_id} "
                f"from {len(pool)} related recruiters"
            )
            return AssignmentResult(recruiter_id=chosen.recruiter_id, created_relationship=False)

        pool = await self._load_fallback_pool()
        if not pool:
            logger.warning(f"No active recruiters available for company {company_id}")
            return None

        chosen = weighted_select(await self._load_candidates(pool), self.rng)
        self.db.add(
            RecruiterCompany(
                recruiter_id=chosen.recruiter_id,
                company_id=company_id,
                role=RecruiterCompanyRole.RECRUITER,
                status=RecruiterCompanyStatus.ACTIVE,
                can_manage_company_jobs=False,
            )
        )
        await self.db.flush()

        logger.info(
            f"Assigned fallback recruiter {chosen.recruiter_id} to company {company_id}; "
            "created relationship"
        )
        return AssignmentResult(recruiter_id=chosen.recruiter_id, created_relationship=True)

    async def _load_company_pool(self, company_id: str) -> list[str]:
        result = await self.db.execute(
            select(RecruiterCompany.recruiter_id)
            .join(Recruiter, Recruiter.id == RecruiterCompany.recruiter_id)
            .where(
                RecruiterCompany.company_id == company_id,
                RecruiterCompany.status == RecruiterCompanyStatus.ACTIVE,
                Recruiter.status == RecruiterStatus.ACTIVE,
            )
            .order_by(RecruiterCompany.created_at, RecruiterCompany.recruiter_id)
        )
        return _unique(result.scalars().all())

    async def _load_fallback_pool(self) -> list[str]:
        result = await self.db.execute(
            select(Recruiter.id)
            .where(Recruiter.status == RecruiterStatus.ACTIVE)
            .order_by(Recruiter.created_at, Recruiter.id)
            .limit(self.fallback_pool_size)
        )
        return list(result.scalars().all())

    async def _load_candidates(self, recruiter_ids: Sequence[str]) -> list[RecruiterCandidate]:
        """Gather tier, last activity and pending pre-screens for each recruiter."""
        tiers: dict[str, list] = {}
        result = await self.db.execute(
            select(Subscription.recruiter_id, Subscription.plan_tier).where(
                Subscription.recruiter_id.in_(recruiter_ids),
                Subscription.status.in_(ACTIVE_SUBSCRIPTION_STATUSES),
            )
        )
        for recruiter_id, plan_tier in result.all():
            tiers.setdefault(recruiter_id, []).append(plan_tier)

        result = await self.db.execute(
            select(Application.candidate_recruiter_id, func.max(Application.created_at))
            .where(Application.candidate_recruiter_id.in_(recruiter_ids))
            .group_by(Application.candidate_recruiter_id)
        )
        last_activity = dict(result.all())

        result = await self.db.execute(
            select(Job.company_recruiter_id, func.count(Application.id))
            .join(Application, Application.job_id == Job.id)
            .where(
                Job.company_recruiter_id.in_(recruiter_ids),
                Application.stage == ApplicationStage.SCREEN,
            )
            .group_by(Job.company_recruiter_id)
        )
        pending = dict(result.all())

        reference = now()
        return [
            RecruiterCandidate(
                recruiter_id=recruiter_id,
                tier=highest_tier(tiers.get(recruiter_id, [])),
                last_activity_at=last_activity.get(recruiter_id),
                pending_prescreens=pending.get(recruiter_id, 0),
                reference_time=reference,
            )
            for recruiter_id in recruiter_ids
        ]


def _unique(ids: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    ordered = []
    for recruiter_id in ids:
        if recruiter_id not in seen:
            seen.add(recruiter_id)
            ordered.append(recruiter_id)
    return ordered
