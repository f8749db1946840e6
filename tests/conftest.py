"""Shared fixtures and utilities for tests."""

import os
from datetime import timedelta
from typing import Any, Optional

# Settings are read at import time, so the test environment goes in first
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("EVENTS_ENABLED", "false")
os.environ.setdefault("JSON_LOGS", "false")
os.environ.setdefault("EVENT_BUS_URL", "memory://")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from core.access.context import (
    AccessContext,
    ROLE_CANDIDATE,
    ROLE_COMPANY_ADMIN,
    ROLE_PLATFORM_ADMIN,
    ROLE_RECRUITER,
)
from core.utils.datetime import now
from database.engine import Base
from database.models.applications import Application, ApplicationStage
from database.models.audit import ApplicationAuditLog  # noqa: F401
from database.models.candidates import Candidate
from database.models.jobs import Job, JobStatus
from database.models.organizations import Company
from database.models.recruiters import (
    Recruiter,
    RecruiterCompany,
    RecruiterCompanyStatus,
    RecruiterStatus,
)
from database.models.subscriptions import PlanTier, Subscription, SubscriptionStatus
from database.models.users import Membership, MembershipRole, User


class RecordingPublisher:
    """Event publisher double that keeps every published event in memory."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def publish(self, event_type: str, payload: dict[str, Any]) -> bool:
        self.events.append((event_type, payload))
        return True

    @property
    def event_types(self) -> list[str]:
        return [event_type for event_type, _ in self.events]

    def payloads(self, event_type: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.events if name == event_type]


class Seed:
    """Row factories for the pipeline tables. Every call commits."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        return obj

    async def user(self, external_id: Optional[str] = None) -> User:
        n = self._next()
        return await self._save(
            User(external_id=external_id or f"ext-{n}", email=f"user{n}@example.com", name=f"User {n}")
        )

    async def company(self, identity_organization_id: Optional[str] = None) -> Company:
        n = self._next()
        return await self._save(
            Company(name=f"Company {n}", identity_organization_id=identity_organization_id or f"org-{n}")
        )

    async def membership(
        self, user: User, role: MembershipRole, organization_id: Optional[str] = None
    ) -> Membership:
        return await self._save(
            Membership(user_id=user.id, organization_id=organization_id, role=role)
        )

    async def candidate(self, user: Optional[User] = None) -> Candidate:
        n = self._next()
        return await self._save(
            Candidate(
                user_id=user.id if user else None,
                full_name=f"Candidate {n}",
                email=f"candidate{n}@example.com",
            )
        )

    async def recruiter(
        self, user: Optional[User] = None, status: RecruiterStatus = RecruiterStatus.ACTIVE
    ) -> Recruiter:
        user = user or await self.user()
        return await self._save(Recruiter(user_id=user.id, status=status))

    async def relationship(
        self,
        recruiter: Recruiter,
        company: Company,
        status: RecruiterCompanyStatus = RecruiterCompanyStatus.ACTIVE,
    ) -> RecruiterCompany:
        return await self._save(
            RecruiterCompany(recruiter_id=recruiter.id, company_id=company.id, status=status)
        )

    async def subscription(
        self,
        recruiter: Recruiter,
        plan_tier: PlanTier = PlanTier.STARTER,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    ) -> Subscription:
        return await self._save(
            Subscription(recruiter_id=recruiter.id, plan_tier=plan_tier, status=status)
        )

    async def job(
        self,
        company: Company,
        status: JobStatus = JobStatus.ACTIVE,
        company_recruiter_id: Optional[str] = None,
    ) -> Job:
        n = self._next()
        return await self._save(
            Job(
                company_id=company.id,
                title=f"Engineer {n}",
                status=status,
                company_recruiter_id=company_recruiter_id,
            )
        )

    async def application(
        self,
        job: Job,
        candidate: Candidate,
        stage: ApplicationStage = ApplicationStage.DRAFT,
        candidate_recruiter_id: Optional[str] = None,
        proposal_expires_in: Optional[timedelta] = None,
        created_at=None,
    ) -> Application:
        application = Application(
            job=job,
            candidate_id=candidate.id,
            stage=stage,
            candidate_recruiter_id=candidate_recruiter_id,
        )
        if proposal_expires_in is not None:
            application.proposal_expires_at = now() + proposal_expires_in
        if created_at is not None:
            application.created_at = created_at
        return await self._save(application)


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite engine with every pipeline table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seed(db_session):
    return Seed(db_session)


@pytest.fixture
def publisher():
    return RecordingPublisher()


def candidate_context(candidate: Candidate, user_id: Optional[str] = None) -> AccessContext:
    """Context of a caller who owns ``candidate``."""
    return AccessContext(
        identity=f"ext-{candidate.id}",
        identity_user_id=user_id or candidate.user_id or f"user-{candidate.id}",
        candidate_id=candidate.id,
        roles=frozenset({ROLE_CANDIDATE}),
    )


def recruiter_context(recruiter: Recruiter) -> AccessContext:
    return AccessContext(
        identity=f"ext-{recruiter.id}",
        identity_user_id=recruiter.user_id,
        recruiter_id=recruiter.id,
        roles=frozenset({ROLE_RECRUITER}),
    )


def company_context(company: Company, user_id: str = "company-admin-user") -> AccessContext:
    """Context of a company admin of ``company``."""
    return AccessContext(
        identity=f"ext-{user_id}",
        identity_user_id=user_id,
        organization_ids=frozenset({company.identity_organization_id}),
        company_ids=frozenset({company.id}),
        roles=frozenset({ROLE_COMPANY_ADMIN}),
    )


def platform_admin_context(user_id: str = "platform-admin-user") -> AccessContext:
    return AccessContext(
        identity=f"ext-{user_id}",
        identity_user_id=user_id,
        roles=frozenset({ROLE_PLATFORM_ADMIN}),
        is_platform_admin=True,
    )
