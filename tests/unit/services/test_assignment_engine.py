"""
Tests for the recruiter assignment engine.
"""

import random
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from core.assignment.engine import RecruiterAssignmentEngine
from core.utils.datetime import now
from database.models.applications import ApplicationStage
from database.models.recruiters import (
    RecruiterCompany,
    RecruiterCompanyStatus,
    RecruiterStatus,
)
from database.models.subscriptions import PlanTier, SubscriptionStatus


class TestSelectRecruiter:
    """Test pool selection order."""

    @pytest.mark.asyncio
    async def test_company_pool_preferred(self, db_session, seed):
        company = await seed.company()
        related = await seed.recruiter()
        await seed.recruiter()
        await seed.relationship(related, company)
        engine = RecruiterAssignmentEngine(db_session, rng=random.Random(1))

        with patch.object(engine, "_load_fallback_pool", new=AsyncMock()) as fallback:
            result = await engine.select_recruiter(company.id)

        assert result.recruiter_id == related.id
        assert result.created_relationship is False
        fallback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_company_pool_draws_only_related(self, db_session, seed):
        company = await seed.company()
        related = [await seed.recruiter() for _ in range(3)]
        for recruiter in related:
            await seed.relationship(recruiter, company)
        outsider = await seed.recruiter()
        engine = RecruiterAssignmentEngine(db_session, rng=random.Random(5))

        picks = {(await engine.select_recruiter(company.id)).recruiter_id for _ in range(30)}

        assert picks <= {r.id for r in related}
        assert outsider.id not in picks

    @pytest.mark.asyncio
    async def test_inactive_relationships_and_recruiters_skipped(self, db_session, seed):
        company = await seed.company()
        ended = await seed.recruiter()
        await seed.relationship(ended, company, status=RecruiterCompanyStatus.TERMINATED)
        suspended = await seed.recruiter(status=RecruiterStatus.SUSPENDED)
        await seed.relationship(suspended, company)
        available = await seed.recruiter()
        engine = RecruiterAssignmentEngine(db_session, rng=random.Random(2))

        result = await engine.select_recruiter(company.id)

        # Nothing usable in the company pool, so the platform pool decides
        assert result.recruiter_id in {ended.id, available.id}
        assert result.recruiter_id != suspended.id
        assert result.created_relationship is True

    @pytest.mark.asyncio
    async def test_fallback_creates_relationship(self, db_session, seed):
        company = await seed.company()
        recruiter = await seed.recruiter()
        engine = RecruiterAssignmentEngine(db_session, rng=random.Random(3))

        result = await engine.select_recruiter(company.id)

        assert result.recruiter_id == recruiter.id
        assert result.created_relationship is True
        rows = (
            await db_session.execute(
                select(RecruiterCompany).where(RecruiterCompany.company_id == company.id)
            )
        ).scalars().all()
        assert len(rows) == 1
        assert rows[0].recruiter_id == recruiter.id
        assert rows[0].status == RecruiterCompanyStatus.ACTIVE
        assert rows[0].can_manage_company_jobs is False

    @pytest.mark.asyncio
    async def test_second_request_uses_created_relationship(self, db_session, seed):
        company = await seed.company()
        recruiter = await seed.recruiter()
        engine = RecruiterAssignmentEngine(db_session, rng=random.Random(3))

        await engine.select_recruiter(company.id)
        await db_session.commit()
        second = await engine.select_recruiter(company.id)

        assert second.recruiter_id == recruiter.id
        assert second.created_relationship is False

    @pytest.mark.asyncio
    async def test_fallback_pool_is_bounded(self, db_session, seed):
        for _ in range(4):
            await seed.recruiter()
        engine = RecruiterAssignmentEngine(db_session, fallback_pool_size=2)

        pool = await engine._load_fallback_pool()

        assert len(pool) == 2

    @pytest.mark.asyncio
    async def test_no_active_recruiters(self, db_session, seed):
        company = await seed.company()
        await seed.recruiter(status=RecruiterStatus.PENDING)
        engine = RecruiterAssignmentEngine(db_session)

        assert await engine.select_recruiter(company.id) is None


class TestLoadCandidates:
    """Test gathering the weighting inputs."""

    @pytest.mark.asyncio
    async def test_signals_collected(self, db_session, seed):
        company = await seed.company()
        busy = await seed.recruiter()
        idle = await seed.recruiter()
        await seed.subscription(busy, PlanTier.PARTNER)
        await seed.subscription(busy, PlanTier.PRO, status=SubscriptionStatus.CANCELED)
        await seed.subscription(idle, PlanTier.PRO, status=SubscriptionStatus.CANCELED)

        # Recent candidate-side activity
        other_company = await seed.company()
        other_job = await seed.job(other_company)
        await seed.application(
            other_job,
            await seed.candidate(),
            candidate_recruiter_id=busy.id,
            created_at=now() - timedelta(days=5),
        )

        # Three pre-screens already with the busy recruiter
        job = await seed.job(company, company_recruiter_id=busy.id)
        for _ in range(3):
            await seed.application(job, await seed.candidate(), stage=ApplicationStage.SCREEN)
        await seed.application(job, await seed.candidate(), stage=ApplicationStage.INTERVIEW)

        engine = RecruiterAssignmentEngine(db_session)
        candidates = {c.recruiter_id: c for c in await engine._load_candidates([busy.id, idle.id])}

        assert candidates[busy.id].tier == PlanTier.PARTNER
        assert candidates[busy.id].pending_prescreens == 3
        assert candidates[busy.id].last_activity_at is not None
        assert candidates[busy.id].weight == 3 * 3 * 1

        assert candidates[idle.id].tier is None
        assert candidates[idle.id].pending_prescreens == 0
        assert candidates[idle.id].last_activity_at is None
        assert candidates[idle.id].weight == 1 * 1 * 3
