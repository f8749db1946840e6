"""
Stage transition policy for applications.

The policy is evaluated in priority order:

1. ``withdrawn``, ``draft`` and ``recruiter_request`` are reachable from
   every non-terminal stage (candidate self-service cancel, send back for
   edits, recruiter asks for more detail).
2. Every other move must appear in ``ALLOWED_TRANSITIONS``.

Terminal stages never move again. Rejecting additionally requires a
decline reason or details.
"""

from typing import Iterable, Optional

from core.exceptions import InvalidInput, InvalidTransition, MissingDeclineReason
from database.models.applications import ApplicationStage, TERMINAL_STAGES

S = ApplicationStage

# Targets reachable from any non-terminal stage
ALWAYS_REACHABLE: frozenset[ApplicationStage] = frozenset(
    {S.WITHDRAWN, S.DRAFT, S.RECRUITER_REQUEST}
)

ALLOWED_TRANSITIONS: dict[ApplicationStage, frozenset[ApplicationStage]] = {
    S.DRAFT: frozenset({S.AI_REVIEW, S.SCREEN, S.REJECTED}),
    S.AI_REVIEW: frozenset({S.AI_REVIEWED, S.REJECTED}),
    S.AI_REVIEWED: frozenset({S.DRAFT, S.SCREEN, S.SUBMITTED, S.RECRUITER_REVIEW, S.REJECTED}),
    S.RECRUITER_REQUEST: frozenset({S.AI_REVIEW, S.RECRUITER_REVIEW, S.REJECTED}),
    S.RECRUITER_PROPOSED: frozenset(
        {S.AI_REVIEW, S.DRAFT, S.RECRUITER_REVIEW, S.SCREEN, S.SUBMITTED, S.REJECTED, S.EXPIRED}
    ),
    S.RECRUITER_REVIEW: frozenset({S.SUBMITTED, S.SCREEN, S.REJECTED}),
    S.SCREEN: frozenset({S.SUBMITTED, S.COMPANY_REVIEW, S.RECRUITER_REVIEW, S.REJECTED}),
    S.SUBMITTED: frozenset({S.SCREEN, S.COMPANY_REVIEW, S.INTERVIEW, S.REJECTED}),
    S.COMPANY_REVIEW: frozenset({S.COMPANY_FEEDBACK, S.INTERVIEW, S.OFFER, S.REJECTED}),
    S.COMPANY_FEEDBACK: frozenset({S.COMPANY_REVIEW, S.INTERVIEW, S.OFFER, S.REJECTED}),
    S.INTERVIEW: frozenset({S.COMPANY_FEEDBACK, S.OFFER, S.REJECTED}),
    S.OFFER: frozenset({S.HIRED, S.REJECTED}),
    S.HIRED: frozenset(),
    S.REJECTED: frozenset(),
    S.WITHDRAWN: frozenset(),
    S.EXPIRED: frozenset(),
}

# Entry points of the derived operations
AI_REVIEW_SOURCES = frozenset({S.DRAFT})
SUBMIT_SOURCES = frozenset({S.AI_REVIEWED, S.SCREEN})
RECRUITER_SUBMIT_SOURCES = frozenset({S.RECRUITER_REVIEW})
ACCEPT_SOURCES = frozenset({S.SUBMITTED})
RETURN_TO_DRAFT_SOURCES = frozenset({S.AI_REVIEWED, S.RECRUITER_REQUEST, S.SCREEN})
HIRE_SOURCES = frozenset({S.OFFER})


def coerce_stage(value) -> ApplicationStage:
    """Turn a raw stage value into an ``ApplicationStage``, rejecting unknown names."""
    if isinstance(value, ApplicationStage):
        return value
    try:
        return ApplicationStage(value)
    except ValueError:
        raise InvalidInput(f"Unknown stage: {value}", {"stage": value})


def is_transition_allowed(from_stage: ApplicationStage, to_stage: ApplicationStage) -> bool:
    """Check a stage pair against the policy without raising."""
    if from_stage in TERMINAL_STAGES:
        return False
    if to_stage in ALWAYS_REACHABLE:
        return True
    return to_stage in ALLOWED_TRANSITIONS.get(from_stage, frozenset())


def validate_transition(
    from_stage,
    to_stage,
    decline_reason: Optional[str] = None,
    decline_details: Optional[str] = None,
) -> ApplicationStage:
    """
    Validate a stage change.

    Args:
        from_stage: Current stage
        to_stage: Requested stage
        decline_reason: Required (or decline_details) when rejecting
        decline_details: Free-text alternative to decline_reason

    Returns:
        The validated target stage

    Raises:
        InvalidTransition: If the pair is not permitted
        MissingDeclineReason: If rejecting without a reason
    """
    from_stage = coerce_stage(from_stage)
    to_stage = coerce_stage(to_stage)

    if not is_transition_allowed(from_stage, to_stage):
        reason = "stage is terminal" if from_stage in TERMINAL_STAGES else None
        raise InvalidTransition(from_stage.value, to_stage.value, reason)

    if to_stage == S.REJECTED and not (_has_text(decline_reason) or _has_text(decline_details)):
        raise MissingDeclineReason()

    return to_stage


def require_stage(
    current, allowed: Iterable[ApplicationStage], target, operation: str
) -> None:
    """
    Guard a derived operation that may only start from certain stages.

    Raises:
        InvalidTransition: If ``current`` is not one of ``allowed``
    """
    current = coerce_stage(current)
    target = coerce_stage(target)
    if current not in allowed:
        allowed_names = ", ".join(sorted(stage.value for stage in allowed))
        raise InvalidTransition(
            current.value, target.value, f"{operation} requires stage in [{allowed_names}]"
        )


def _has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())
