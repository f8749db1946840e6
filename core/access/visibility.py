"""
Visibility policy for applications and their notes.

Callers sit on the candidate side of an application (the candidate or the
candidate's recruiter), on the company side (members of the owning
company), on both, or on neither. Platform admins sit on both.
"""

import logging
from typing import Optional

from core.access.context import (
    AccessContext,
    ROLE_CANDIDATE,
    ROLE_COMPANY_ADMIN,
    ROLE_HIRING_MANAGER,
    ROLE_PLATFORM_ADMIN,
    ROLE_RECRUITER,
)
from core.exceptions import InvalidInput
from database.models.applications import Application, NoteCreatorType, NoteVisibility

logger = logging.getLogger(__name__)

CT = NoteCreatorType
V = NoteVisibility

ALL_VISIBILITIES: frozenset[NoteVisibility] = frozenset(V)
CANDIDATE_SIDE_VISIBILITIES = frozenset({V.SHARED, V.CANDIDATE_ONLY})
COMPANY_SIDE_VISIBILITIES = frozenset({V.SHARED, V.COMPANY_ONLY})

# Which creator types a caller holding a role may write as
ROLE_CREATOR_TYPES: dict[str, frozenset[NoteCreatorType]] = {
    ROLE_CANDIDATE: frozenset({CT.CANDIDATE}),
    ROLE_RECRUITER: frozenset({CT.CANDIDATE_RECRUITER, CT.COMPANY_RECRUITER}),
    ROLE_COMPANY_ADMIN: frozenset({CT.COMPANY_ADMIN, CT.HIRING_MANAGER}),
    ROLE_HIRING_MANAGER: frozenset({CT.HIRING_MANAGER}),
    ROLE_PLATFORM_ADMIN: frozenset({CT.PLATFORM_ADMIN}),
}

# Which visibilities each creator type may publish with
CREATOR_TYPE_VISIBILITIES: dict[NoteCreatorType, frozenset[NoteVisibility]] = {
    CT.CANDIDATE: CANDIDATE_SIDE_VISIBILITIES,
    CT.CANDIDATE_RECRUITER: CANDIDATE_SIDE_VISIBILITIES,
    CT.COMPANY_RECRUITER: COMPANY_SIDE_VISIBILITIES,
    CT.HIRING_MANAGER: COMPANY_SIDE_VISIBILITIES,
    CT.COMPANY_ADMIN: COMPANY_SIDE_VISIBILITIES,
    CT.PLATFORM_ADMIN: ALL_VISIBILITIES,
}


def is_candidate_side(context: AccessContext, application: Application) -> bool:
    if context.is_platform_admin:
        return True
    if context.candidate_id and context.candidate_id == application.candidate_id:
        return True
    return bool(
        context.recruiter_id
        and application.candidate_recruiter_id
        and context.recruiter_id == application.candidate_recruiter_id
    )


def is_company_side(context: AccessContext, application: Application) -> bool:
    if context.is_platform_admin:
        return True
    return application.job.company_id in context.company_ids


def can_view_application(context: AccessContext, application: Application) -> bool:
    return is_candidate_side(context, application) or is_company_side(context, application)


def visible_note_visibilities(
    context: AccessContext, application: Application
) -> frozenset[NoteVisibility]:
    """
    Visibilities of the notes on ``application`` the caller may read.

    Candidate side sees shared and candidate_only, company side sees shared
    and company_only. A caller on neither side sees shared notes only.
    """
    if context.is_platform_admin:
        return ALL_VISIBILITIES

    visibilities = {V.SHARED}
    if is_candidate_side(context, application):
        visibilities |= CANDIDATE_SIDE_VISIBILITIES
    if is_company_side(context, application):
        visibilities |= COMPANY_SIDE_VISIBILITIES
    return frozenset(visibilities)


def allowed_creator_types(context: AccessContext) -> frozenset[NoteCreatorType]:
    """Union of the creator types granted by every role the caller holds."""
    allowed: set[NoteCreatorType] = set()
    for role in context.roles:
        allowed |= ROLE_CREATOR_TYPES.get(role, frozenset())
    return frozenset(allowed)


def validate_note_authoring(
    context: AccessContext,
    created_by_type: NoteCreatorType,
    visibility: NoteVisibility,
) -> None:
    """
    Check that the caller may write a note as ``created_by_type`` with
    ``visibility``.

    Raises:
        InvalidInput: If the role does not grant the creator type, or the
            creator type may not publish with that visibility
    """
    created_by_type = NoteCreatorType(created_by_type)
    visibility = NoteVisibility(visibility)

    if created_by_type not in allowed_creator_types(context):
        logger.warning(
            f"Identity {context.identity} attempted to write a note as {created_by_type.value}"
        )
        raise InvalidInput(
            f"Creator type '{created_by_type.value}' is not allowed for your roles",
            {
                "created_by_type": created_by_type.value,
                "roles": sorted(context.roles),
            },
        )

    if visibility not in CREATOR_TYPE_VISIBILITIES[created_by_type]:
        raise InvalidInput(
            f"Visibility '{visibility.value}' is not allowed for creator type "
            f"'{created_by_type.value}'",
            {
                "created_by_type": created_by_type.value,
                "visibility": visibility.value,
            },
        )


def actor_role(context: AccessContext, application: Optional[Application] = None) -> Optional[str]:
    """
    Role recorded as ``performed_by_role`` in the audit log.

    Picks the capacity in which the caller acted on ``application`` when one
    is given, otherwise the caller's most privileged role.
    """
    if context.is_platform_admin:
        return ROLE_PLATFORM_ADMIN

    if application is not None:
        if context.candidate_id and context.candidate_id == application.candidate_id:
            return ROLE_CANDIDATE
        if context.recruiter_id and context.recruiter_id == application.candidate_recruiter_id:
            return "candidate_recruiter"
        if application.job.company_id in context.company_ids:
            if context.has_role(ROLE_COMPANY_ADMIN):
                return ROLE_COMPANY_ADMIN
            if context.has_role(ROLE_HIRING_MANAGER):
                return ROLE_HIRING_MANAGER

    for role in (ROLE_COMPANY_ADMIN, ROLE_HIRING_MANAGER, ROLE_RECRUITER, ROLE_CANDIDATE):
        if context.has_role(role):
            return role
    return None
