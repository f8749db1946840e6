"""
Access context resolution.

Turns the opaque identity handed over by the gateway into the caller's
capabilities: candidate id, recruiter id, organization and company ids,
role set and platform-admin flag. The context is derived from live
relational state on every request and is never cached.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models.candidates import Candidate
from database.models.organizations import Company
from database.models.recruiters import Recruiter, RecruiterStatus
from database.models.users import Membership, MembershipRole, User

logger = logging.getLogger(__name__)


ROLE_CANDIDATE = "candidate"
ROLE_RECRUITER = "recruiter"
ROLE_COMPANY_ADMIN = MembershipRole.COMPANY_ADMIN.value
ROLE_HIRING_MANAGER = MembershipRole.HIRING_MANAGER.value
ROLE_PLATFORM_ADMIN = MembershipRole.PLATFORM_ADMIN.value


@dataclass(frozen=True)
class AccessContext:
    """Request-scoped capabilities of a caller."""

    identity: str
    identity_user_id: Optional[str] = None
    candidate_id: Optional[str] = None
    recruiter_id: Optional[str] = None
    organization_ids: frozenset[str] = field(default_factory=frozenset)
    company_ids: frozenset[str] = field(default_factory=frozenset)
    roles: frozenset[str] = field(default_factory=frozenset)
    is_platform_admin: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.identity_user_id is not None

    def has_role(self, role: str) -> bool:
        return role in self.roles


def build_access_context(
    identity: str,
    user: Optional[User],
    candidate: Optional[Candidate] = None,
    recruiter: Optional[Recruiter] = None,
    memberships: Iterable[Membership] = (),
    companies: Iterable[Company] = (),
) -> AccessContext:
    """
    Assemble an access context from already-loaded rows.

    Args:
        identity: Opaque identity the caller presented
        user: Matching user row, or None for an unknown identity
        candidate: Candidate profile owned by the user
        recruiter: Recruiter profile owned by the user (ignored unless active)
        memberships: The user's organization memberships
        companies: Companies backed by the user's organizations

    Returns:
        Immutable AccessContext
    """
    if user is None:
        return AccessContext(identity=identity)

    roles: set[str] = set()
    candidate_id = None
    recruiter_id = None

    if candidate is not None:
        candidate_id = candidate.id
        roles.add(ROLE_CANDIDATE)

    if recruiter is not None and recruiter.status == RecruiterStatus.ACTIVE:
        recruiter_id = recruiter.id
        roles.add(ROLE_RECRUITER)

    organization_ids: set[str] = set()
    for membership in memberships:
        role = membership.role.value if isinstance(membership.role, MembershipRole) else str(membership.role)
        roles.add(role)
        if membership.organization_id:
            organization_ids.add(membership.organization_id)

    company_ids = frozenset(
        company.id
        for company in companies
        if company.identity_organization_id in organization_ids
    )

    return AccessContext(
        identity=identity,
        identity_user_id=user.id,
        candidate_id=candidate_id,
        recruiter_id=recruiter_id,
        organization_ids=frozenset(organization_ids),
        company_ids=company_ids,
        roles=frozenset(roles),
        is_platform_admin=ROLE_PLATFORM_ADMIN in roles,
    )


async def resolve_access_context(db: AsyncSession, identity: str) -> AccessContext:
    """
    Resolve the caller's access context from the relational store.

    Args:
        db: Database session
        identity: Opaque identity string supplied by the gateway

    Returns:
        AccessContext; empty (no ids, no roles) for an unknown identity
    """
    result = await db.execute(select(User).where(User.external_id == identity))
    user = result.scalar_one_or_none()
    if user is None:
        logger.info(f"No user found for identity {identity}; resolving empty access context")
        return build_access_context(identity, None)

    result = await db.execute(select(Candidate).where(Candidate.user_id == user.id))
    candidate = result.scalar_one_or_none()

    result = await db.execute(select(Recruiter).where(Recruiter.user_id == user.id))
    recruiter = result.scalar_one_or_none()

    result = await db.execute(select(Membership).where(Membership.user_id == user.id))
    memberships = list(result.scalars().all())

    organization_ids = {m.organization_id for m in memberships if m.organization_id}
    companies: list[Company] = []
    if organization_ids:
        result = await db.execute(
            select(Company).where(Company.identity_organization_id.in_(list(organization_ids)))
        )
        companies = list(result.scalars().all())

    return build_access_context(
        identity,
        user,
        candidate=candidate,
        recruiter=recruiter,
        memberships=memberships,
        companies=companies,
    )
