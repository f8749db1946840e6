"""
Application pipeline service.

Every stage-changing operation follows the same sequence:

    read -> validate -> compare-and-set stage write -> commit -> audit -> publish

Validation failures are raised before anything is written. The audit entry
and the domain events are written after the primary commit and on a
best-effort basis; their failures are logged and never reach the caller.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional
import logging
import random

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.base import PipelineService
from core.access.context import AccessContext
from core.access.visibility import (
    can_view_application,
    is_candidate_side,
    is_company_side,
)
from core.assignment.engine import RecruiterAssignmentEngine
from core.config import settings
from core.events import EventPublisher, jsonable
from core.exceptions import (
    Forbidden,
    InvalidInput,
    InvalidTransition,
    MissingDeclineReason,
    NoRecruiterAvailable,
    NotFound,
    TransitionConflict,
)
from core.pipeline.stages import (
    ACCEPT_SOURCES,
    AI_REVIEW_SOURCES,
    HIRE_SOURCES,
    RECRUITER_SUBMIT_SOURCES,
    RETURN_TO_DRAFT_SOURCES,
    SUBMIT_SOURCES,
    coerce_stage,
    require_stage,
    validate_transition,
)
from core.utils.datetime import add_hours, is_past, now
from database.models.applications import (
    AIRecommendation,
    Application,
    ApplicationStage,
    TERMINAL_STAGES,
)
from database.models.audit import ApplicationAuditAction, ApplicationAuditLog
from database.models.candidates import Candidate
from database.models.jobs import Job, JobStatus
from database.models.recruiters import Recruiter, RecruiterStatus

logger = logging.getLogger(__name__)

# Stages only the hiring company moves an application into
COMPANY_CONTROLLED_STAGES = frozenset(
    {
        ApplicationStage.COMPANY_REVIEW,
        ApplicationStage.COMPANY_FEEDBACK,
        ApplicationStage.INTERVIEW,
        ApplicationStage.OFFER,
    }
)

# Stages entered only through their own operation, never a generic update
RESERVED_STAGES = {
    ApplicationStage.AI_REVIEW: "trigger-ai-review or accept-proposal",
    ApplicationStage.AI_REVIEWED: "the AI review callback",
    ApplicationStage.SCREEN: "request-prescreen",
    ApplicationStage.EXPIRED: "proposal expiry",
    ApplicationStage.HIRED: "hire",
}

STAGE_AUDIT_ACTIONS = {
    ApplicationStage.WITHDRAWN: ApplicationAuditAction.WITHDRAWN,
    ApplicationStage.REJECTED: ApplicationAuditAction.REJECTED,
    ApplicationStage.SUBMITTED: ApplicationAuditAction.SUBMITTED,
    ApplicationStage.DRAFT: ApplicationAuditAction.RETURNED_TO_DRAFT,
    ApplicationStage.RECRUITER_REQUEST: ApplicationAuditAction.RECRUITER_REQUEST,
}


def owning_operation(from_stage: ApplicationStage, to_stage: ApplicationStage) -> Optional[str]:
    """Name of the operation that owns a stage change, or None if a generic update may make it."""
    if to_stage in RESERVED_STAGES:
        return RESERVED_STAGES[to_stage]
    if to_stage in (ApplicationStage.SUBMITTED, ApplicationStage.RECRUITER_REVIEW) and (
        from_stage in SUBMIT_SOURCES
    ):
        return "submit"
    if to_stage == ApplicationStage.SUBMITTED and from_stage in RECRUITER_SUBMIT_SOURCES:
        return "recruiter-submit"
    return None


class ApplicationService(PipelineService):
    """Stage-changing and read operations on applications."""

    def __init__(
        self,
        db: AsyncSession,
        publisher: Optional[EventPublisher] = None,
        assignment_engine: Optional[RecruiterAssignmentEngine] = None,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(db, publisher)
        self.assignment_engine = assignment_engine or RecruiterAssignmentEngine(db, rng=rng)

    # ==================== Creation ===================== #

    async def create_application(
        self,
        context: AccessContext,
        job_id: str,
        candidate_notes: Optional[str] = None,
        candidate_recruiter_id: Optional[str] = None,
    ) -> Application:
        """
        Candidate applies directly to a job.

        Args:
            context: Caller; must have a candidate profile
            job_id: Job to apply to; must be active
            candidate_notes: Free text from the candidate
            candidate_recruiter_id: Active recruiter representing the candidate

        Returns:
            The new application in stage ``draft``
        """
        if not context.candidate_id:
            logger.warning(f"Identity {context.identity} tried to apply without a candidate profile")
            raise Forbidden("Only candidates can create applications")

        job = await self._load_active_job(job_id)
        await self._ensure_no_open_application(context.candidate_id, job.id)

        if candidate_recruiter_id:
            await self._load_active_recruiter(candidate_recruiter_id)

        application = Application(
            job=job,
            candidate_id=context.candidate_id,
            candidate_recruiter_id=candidate_recruiter_id,
            stage=ApplicationStage.DRAFT,
            candidate_notes=candidate_notes,
        )
        self.db.add(application)
        await self.db.commit()

        logger.info(f"Application {application.id} created for job {job.id}")

        await self._record_audit(
            application,
            ApplicationAuditAction.CREATED,
            context,
            new_value={"stage": application.stage.value},
        )
        await self._emit("application.created", self._payload(application))
        return application

    async def propose_job_to_candidate(
        self,
        context: AccessContext,
        candidate_id: str,
        job_id: str,
        pitch: Optional[str] = None,
    ) -> Application:
        """
        Recruiter proposes a job to a candidate they represent.

        The candidate has ``proposal_response_hours`` to accept or decline
        before the proposal expires.
        """
        if not context.recruiter_id:
            logger.warning(f"Identity {context.identity} tried to propose without an active recruiter profile")
            raise Forbidden("Only active recruiters can propose jobs")

        candidate = await self.db.get(Candidate, candidate_id)
        if candidate is None:
            raise NotFound("Candidate", candidate_id)

        job = await self._load_active_job(job_id)
        await self._ensure_no_open_application(candidate_id, job.id)

        application = Application(
            job=job,
            candidate_id=candidate_id,
            candidate_recruiter_id=context.recruiter_id,
            stage=ApplicationStage.RECRUITER_PROPOSED,
            recruiter_pitch=pitch,
            proposal_expires_at=add_hours(now(), settings.proposal_response_hours),
        )
        self.db.add(application)
        await self.db.commit()

        logger.info(
            f"Recruiter {context.recruiter_id} proposed job {job.id} "
            f"to candidate {candidate_id} (application {application.id})"
        )

        await self._record_audit(
            application,
            ApplicationAuditAction.RECRUITER_PROPOSED_JOB,
            context,
            new_value={"stage": application.stage.value},
            metadata={
                "recruiter_id": context.recruiter_id,
                "proposal_expires_at": application.proposal_expires_at.isoformat(),
            },
        )
        await self._emit("application.created", self._payload(application))
        await self._emit(
            "application.recruiter_proposed",
            self._payload(
                application,
                recruiter_id=context.recruiter_id,
                proposal_expires_at=application.proposal_expires_at,
            ),
        )
        return application

    # ==================== Reads ===================== #

    async def get_application(self, context: AccessContext, application_id: str) -> Application:
        """Load an application the caller has a side on, else NotFound."""
        application = await self._load(application_id)
        if not can_view_application(context, application):
            raise NotFound("Application", application_id)
        return application

    async def list_applications(
        self,
        context: AccessContext,
        stage: Optional[str] = None,
        job_id: Optional[str] = None,
        candidate_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        """
        List applications visible to the caller.

        Returns:
            Dictionary with ``applications``, ``total``, ``limit`` and ``offset``
        """
        query = select(Application).join(Job, Job.id == Application.job_id)

        if not context.is_platform_admin:
            scopes = []
            if context.candidate_id:
                scopes.append(Application.candidate_id == context.candidate_id)
            if context.recruiter_id:
                scopes.append(Application.candidate_recruiter_id == context.recruiter_id)
            if context.company_ids:
                scopes.append(Job.company_id.in_(list(context.company_ids)))
            if not scopes:
                return {"applications": [], "total": 0, "limit": limit, "offset": offset}
            query = query.where(or_(*scopes))

        if stage:
            query = query.where(Application.stage == coerce_stage(stage))
        if job_id:
            query = query.where(Application.job_id == job_id)
        if candidate_id:
            query = query.where(Application.candidate_id == candidate_id)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = (
            query.order_by(Application.created_at.desc(), Application.id)
            .limit(limit)
            .offset(offset)
        )
        result = await self.db.execute(query)

        return {
            "applications": list(result.unique().scalars().all()),
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    async def list_pending_for_recruiter(
        self, context: AccessContext, recruiter_id: str
    ) -> list[Application]:
        """Applications waiting in ``recruiter_review`` for a recruiter, oldest first."""
        if not context.is_platform_admin and context.recruiter_id != recruiter_id:
            raise Forbidden("Recruiters can only list their own pending applications")

        result = await self.db.execute(
            select(Application)
            .where(
                Application.candidate_recruiter_id == recruiter_id,
                Application.stage == ApplicationStage.RECRUITER_REVIEW,
            )
            .order_by(Application.updated_at, Application.id)
        )
        return list(result.unique().scalars().all())

    async def get_audit_log(
        self, context: AccessContext, application_id: str
    ) -> list[ApplicationAuditLog]:
        """Audit history, newest first. Company side and platform admins only."""
        application = await self.get_application(context, application_id)
        if not is_company_side(context, application):
            raise Forbidden("Only the hiring company can view the audit log")

        result = await self.db.execute(
            select(ApplicationAuditLog)
            .where(ApplicationAuditLog.application_id == application_id)
            .order_by(ApplicationAuditLog.created_at.desc(), ApplicationAuditLog.id)
        )
        return list(result.scalars().all())

    # ==================== Stage changes ===================== #

    async def update_application(
        self,
        context: AccessContext,
        application_id: str,
        stage: str,
        decline_reason: Optional[str] = None,
        decline_details: Optional[str] = None,
    ) -> Application:
        """
        Move an application to ``stage`` through the transition policy.

        Withdrawing is reserved to the candidate side and company-controlled
        stages to the company side. Stage changes owned by a dedicated
        operation (AI review, pre-screen, submission, expiry, hiring) are
        refused with InvalidInput naming that operation.
        """
        application = await self.get_application(context, application_id)
        target = coerce_stage(stage)

        operation = owning_operation(application.stage, target)
        if operation:
            raise InvalidInput(
                f"Use {operation} to move an application to {target.value}",
                {"from_stage": application.stage.value, "to_stage": target.value, "operation": operation},
            )
        if target == ApplicationStage.WITHDRAWN and not is_candidate_side(context, application):
            raise Forbidden("Only the candidate side can withdraw an application")
        if target in COMPANY_CONTROLLED_STAGES and not is_company_side(context, application):
            raise Forbidden(f"Only the hiring company can move an application to {target.value}")

        validate_transition(application.stage, target, decline_reason, decline_details)

        values: dict[str, Any] = {}
        if target == ApplicationStage.REJECTED:
            values.update(decline_reason=decline_reason, decline_details=decline_details)
        if target == ApplicationStage.SUBMITTED:
            values["submitted_at"] = now()

        old_stage = await self._write_stage(application, target, **values)
        await self.db.commit()

        action = STAGE_AUDIT_ACTIONS.get(target, ApplicationAuditAction.STAGE_CHANGED)
        await self._record_stage_audit(application, action, context, old_stage, values)

        await self._emit_stage_changed(application, old_stage)
        if target == ApplicationStage.WITHDRAWN:
            await self._emit("application.withdrawn", self._payload(application))
        elif target == ApplicationStage.SUBMITTED:
            await self._emit("application.submitted", self._payload(application))
        return application

    async def withdraw_application(
        self, context: AccessContext, application_id: str, reason: Optional[str] = None
    ) -> Application:
        """Soft delete: candidate side moves the application to ``withdrawn``."""
        application = await self.get_application(context, application_id)
        if not is_candidate_side(context, application):
            raise Forbidden("Only the candidate side can withdraw an application")

        validate_transition(application.stage, ApplicationStage.WITHDRAWN)
        old_stage = await self._write_stage(application, ApplicationStage.WITHDRAWN)
        await self.db.commit()

        await self._record_stage_audit(
            application,
            ApplicationAuditAction.WITHDRAWN,
            context,
            old_stage,
            metadata={"reason": reason} if reason else None,
        )
        await self._emit_stage_changed(application, old_stage)
        await self._emit("application.withdrawn", self._payload(application, reason=reason))
        return application

    async def trigger_ai_review(self, context: AccessContext, application_id: str) -> Application:
        """Send a draft to the AI reviewer."""
        application = await self.get_application(context, application_id)
        if not is_candidate_side(context, application):
            raise Forbidden("Only the candidate side can request an AI review")

        require_stage(application.stage, AI_REVIEW_SOURCES, ApplicationStage.AI_REVIEW, "AI review")
        validate_transition(application.stage, ApplicationStage.AI_REVIEW)

        old_stage = await self._write_stage(application, ApplicationStage.AI_REVIEW)
        await self.db.commit()

        await self._record_stage_audit(
            application, ApplicationAuditAction.AI_REVIEW_STARTED, context, old_stage
        )
        await self._emit("application.ai_review_requested", self._payload(application))
        return application

    async def handle_ai_review_completed(
        self,
        application_id: str,
        recommendation: str,
        fit_score: Optional[float] = None,
        concerns: Optional[list[str]] = None,
    ) -> Application:
        """
        Record the AI reviewer's verdict.

        Called by the worker that receives the reviewer's callback, so there
        is no caller context; the audit entry is attributed to the system.
        """
        application = await self._load(application_id)
        try:
            recommendation = AIRecommendation(recommendation)
        except ValueError:
            raise InvalidInput(
                f"Unknown AI recommendation: {recommendation}",
                {"recommendation": recommendation},
            )
        concerns = [c for c in (concerns or []) if c and c.strip()]

        require_stage(
            application.stage,
            {ApplicationStage.AI_REVIEW},
            ApplicationStage.AI_REVIEWED,
            "AI review completion",
        )
        validate_transition(application.stage, ApplicationStage.AI_REVIEWED)

        values = {
            "ai_reviewed": True,
            "ai_fit_score": fit_score,
            "ai_recommendation": recommendation,
        }
        old_stage = await self._write_stage(application, ApplicationStage.AI_REVIEWED, **values)
        await self.db.commit()

        logger.info(
            f"AI review completed for application {application_id}: "
            f"{recommendation.value} (score={fit_score})"
        )

        await self._record_stage_audit(
            application,
            ApplicationAuditAction.AI_REVIEW_COMPLETED,
            None,
            old_stage,
            values,
            metadata={"concerns": concerns},
        )

        result = self._payload(
            application,
            recommendation=recommendation,
            fit_score=fit_score,
            concerns=concerns,
        )
        await self._emit("application.ai_reviewed", result)

        if recommendation == AIRecommendation.POOR_FIT or (
            recommendation == AIRecommendation.FAIR_FIT and concerns
        ):
            await self._emit("application.needs_improvement", result)
        return application

    async def submit_application(self, context: AccessContext, application_id: str) -> Application:
        """
        Submit a reviewed application.

        Goes to the candidate's recruiter first when one represents the
        candidate, otherwise straight to the company.
        """
        application = await self.get_application(context, application_id)
        if not is_candidate_side(context, application):
            raise Forbidden("Only the candidate side can submit an application")

        if application.candidate_recruiter_id:
            target = ApplicationStage.RECRUITER_REVIEW
            action = ApplicationAuditAction.SUBMITTED_TO_RECRUITER
            values: dict[str, Any] = {}
        else:
            target = ApplicationStage.SUBMITTED
            action = ApplicationAuditAction.SUBMITTED
            values = {"submitted_at": now()}

        require_stage(application.stage, SUBMIT_SOURCES, target, "Submit")
        validate_transition(application.stage, target)

        old_stage = await self._write_stage(application, target, **values)
        await self.db.commit()

        await self._record_stage_audit(application, action, context, old_stage, values)
        await self._emit_stage_changed(application, old_stage)
        await self._emit(
            "application.submitted",
            self._payload(application, has_recruiter=bool(application.candidate_recruiter_id)),
        )
        return application

    async def recruiter_submit_application(
        self,
        context: AccessContext,
        application_id: str,
        recruiter_notes: Optional[str] = None,
    ) -> Application:
        """
        The candidate's recruiter forwards a reviewed application to the company.

        Only the recruiter named on the application may do this, and only from
        ``recruiter_review``.
        """
        application = await self.get_application(context, application_id)
        if not context.recruiter_id or context.recruiter_id != application.candidate_recruiter_id:
            raise Forbidden("Only the candidate's recruiter can submit this application")

        require_stage(
            application.stage, RECRUITER_SUBMIT_SOURCES, ApplicationStage.SUBMITTED, "Recruiter submit"
        )
        validate_transition(application.stage, ApplicationStage.SUBMITTED)

        values = {"submitted_at": now()}
        old_stage = await self._write_stage(application, ApplicationStage.SUBMITTED, **values)
        await self.db.commit()

        recruiter_notes = (recruiter_notes or "").strip() or None
        metadata = {"recruiter_id": context.recruiter_id}
        if recruiter_notes:
            metadata["recruiter_notes"] = recruiter_notes
        await self._record_stage_audit(
            application,
            ApplicationAuditAction.SUBMITTED_TO_COMPANY,
            context,
            old_stage,
            values,
            metadata=metadata,
        )
        await self._emit_stage_changed(application, old_stage)
        await self._emit(
            "application.submitted",
            self._payload(application, has_recruiter=True, submitted_by_recruiter_id=context.recruiter_id),
        )
        return application

    async def accept_application(self, context: AccessContext, application_id: str) -> Application:
        """Hiring company takes a submitted application into review."""
        application = await self.get_application(context, application_id)
        if not is_company_side(context, application):
            raise Forbidden("Only the hiring company can accept an application")

        require_stage(application.stage, ACCEPT_SOURCES, ApplicationStage.COMPANY_REVIEW, "Accept")
        validate_transition(application.stage, ApplicationStage.COMPANY_REVIEW)

        old_stage = await self._write_stage(application, ApplicationStage.COMPANY_REVIEW)
        await self.db.commit()

        await self._record_stage_audit(application, ApplicationAuditAction.ACCEPTED, context, old_stage)
        await self._emit_stage_changed(application, old_stage)
        await self._emit("application.accepted", self._payload(application))
        return application

    async def return_to_draft(self, context: AccessContext, application_id: str) -> Application:
        """Send an application back to the candidate for edits."""
        application = await self.get_application(context, application_id)

        require_stage(
            application.stage, RETURN_TO_DRAFT_SOURCES, ApplicationStage.DRAFT, "Return to draft"
        )
        validate_transition(application.stage, ApplicationStage.DRAFT)

        old_stage = await self._write_stage(application, ApplicationStage.DRAFT)
        await self.db.commit()

        await self._record_stage_audit(
            application, ApplicationAuditAction.RETURNED_TO_DRAFT, context, old_stage
        )
        await self._emit_stage_changed(application, old_stage)
        return application

    async def accept_proposal(self, context: AccessContext, application_id: str) -> Application:
        """Candidate accepts a recruiter's proposal; the application goes to AI review."""
        application = await self._load_proposal(context, application_id)

        if is_past(application.proposal_expires_at):
            raise InvalidTransition(
                application.stage.value, ApplicationStage.AI_REVIEW.value, "proposal has expired"
            )
        validate_transition(application.stage, ApplicationStage.AI_REVIEW)

        old_stage = await self._write_stage(application, ApplicationStage.AI_REVIEW)
        await self.db.commit()

        await self._record_stage_audit(
            application, ApplicationAuditAction.PROPOSAL_ACCEPTED, context, old_stage
        )
        await self._emit("application.proposal_accepted", self._payload(application))
        await self._emit("application.ai_review_requested", self._payload(application))
        return application

    async def decline_proposal(
        self,
        context: AccessContext,
        application_id: str,
        reason: Optional[str],
        details: Optional[str] = None,
    ) -> Application:
        """Candidate declines a recruiter's proposal; a reason is mandatory."""
        application = await self._load_proposal(context, application_id)

        if not reason or not reason.strip():
            raise MissingDeclineReason("A reason is required to decline a proposal")
        validate_transition(application.stage, ApplicationStage.REJECTED, reason, details)

        values = {"decline_reason": reason, "decline_details": details}
        old_stage = await self._write_stage(application, ApplicationStage.REJECTED, **values)
        await self.db.commit()

        await self._record_stage_audit(
            application, ApplicationAuditAction.PROPOSAL_DECLINED, context, old_stage, values
        )
        await self._emit(
            "application.proposal_declined",
            self._payload(
                application,
                recruiter_id=application.candidate_recruiter_id,
                reason=reason,
            ),
        )
        return application

    async def request_prescreen(
        self,
        context: AccessContext,
        application_id: str,
        recruiter_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> Application:
        """
        Company asks for a recruiter pre-screen.

        The job keeps its company recruiter if it already has one. Otherwise
        an explicitly named recruiter is used, or one is drawn by the
        assignment engine. The stage write, the job's recruiter and any new
        recruiter-company relationship commit together.
        """
        application = await self.get_application(context, application_id)
        if not is_company_side(context, application):
            raise Forbidden("Only the hiring company can request a pre-screen")

        validate_transition(application.stage, ApplicationStage.SCREEN)

        job = application.job
        auto_assigned = False
        created_relationship = False

        if job.company_recruiter_id:
            assigned_recruiter_id = job.company_recruiter_id
        elif recruiter_id:
            recruiter = await self._load_active_recruiter(recruiter_id)
            assigned_recruiter_id = recruiter.id
        else:
            assignment = await self.assignment_engine.select_recruiter(job.company_id)
            if assignment is None:
                raise NoRecruiterAvailable(job.company_id)
            assigned_recruiter_id = assignment.recruiter_id
            auto_assigned = True
            created_relationship = assignment.created_relationship

        old_stage = await self._write_stage(application, ApplicationStage.SCREEN)
        if job.company_recruiter_id != assigned_recruiter_id:
            job.company_recruiter_id = assigned_recruiter_id
        await self.db.commit()

        logger.info(
            f"Pre-screen requested for application {application_id}; "
            f"recruiter {assigned_recruiter_id} (auto_assigned={auto_assigned})"
        )

        metadata = {
            "recruiter_id": assigned_recruiter_id,
            "auto_assigned": auto_assigned,
            "created_relationship": created_relationship,
        }
        if message:
            metadata["message"] = message
        await self._record_stage_audit(
            application,
            ApplicationAuditAction.PRESCREEN_REQUESTED,
            context,
            old_stage,
            metadata=metadata,
        )
        await self._emit(
            "application.prescreen_requested",
            self._payload(application, **metadata),
        )
        return application

    async def hire_candidate(
        self, context: AccessContext, application_id: str, salary
    ) -> Application:
        """Mark an application at the offer stage as hired with the agreed salary."""
        application = await self.get_application(context, application_id)
        if not is_company_side(context, application):
            raise Forbidden("Only the hiring company can hire a candidate")

        salary = _parse_salary(salary)
        require_stage(application.stage, HIRE_SOURCES, ApplicationStage.HIRED, "Hire")
        validate_transition(application.stage, ApplicationStage.HIRED)

        values = {"salary": salary, "hired_at": now()}
        old_stage = await self._write_stage(application, ApplicationStage.HIRED, **values)
        await self.db.commit()

        logger.info(f"Application {application_id} hired")

        await self._record_stage_audit(
            application, ApplicationAuditAction.HIRED, context, old_stage, values
        )
        await self._emit_stage_changed(application, old_stage)
        await self._emit("application.hired", self._payload(application, salary=salary))
        return application

    async def expire_stale_proposals(self, reference=None) -> int:
        """
        Expire recruiter proposals whose response window has passed.

        Each row is moved with its own compare-and-set, so a proposal accepted
        concurrently is skipped rather than expired.

        Returns:
            Number of proposals expired
        """
        reference = reference or now()
        result = await self.db.execute(
            select(Application.id)
            .where(
                Application.stage == ApplicationStage.RECRUITER_PROPOSED,
                Application.proposal_expires_at.is_not(None),
                Application.proposal_expires_at < reference,
            )
            .order_by(Application.proposal_expires_at)
        )
        stale_ids = list(result.scalars().all())

        expired = 0
        for application_id in stale_ids:
            application = await self._load(application_id)
            if application.stage != ApplicationStage.RECRUITER_PROPOSED:
                continue
            try:
                old_stage = await self._write_stage(application, ApplicationStage.EXPIRED)
                await self.db.commit()
            except TransitionConflict:
                logger.info(f"Proposal {application_id} changed stage before it could expire")
                continue

            expired += 1
            await self._record_stage_audit(
                application, ApplicationAuditAction.EXPIRED, None, old_stage
            )
            await self._emit(
                "application.recruiter_opportunity_expired",
                self._payload(application, recruiter_id=application.candidate_recruiter_id),
            )

        if expired:
            logger.info(f"Expired {expired} stale recruiter proposals")
        return expired

    # ==================== Helpers ===================== #

    async def _load_proposal(self, context: AccessContext, application_id: str) -> Application:
        application = await self.get_application(context, application_id)
        if not context.candidate_id or context.candidate_id != application.candidate_id:
            raise Forbidden("Only the proposed candidate can respond to a proposal")
        require_stage(
            application.stage,
            {ApplicationStage.RECRUITER_PROPOSED},
            ApplicationStage.AI_REVIEW,
            "Responding to a proposal",
        )
        return application

    async def _load_active_job(self, job_id: str) -> Job:
        job = await self.db.get(Job, job_id)
        if job is None:
            raise NotFound("Job", job_id)
        if job.status != JobStatus.ACTIVE:
            raise InvalidInput(
                f"Job {job_id} is not accepting applications",
                {"job_id": job_id, "status": job.status.value},
            )
        return job

    async def _load_active_recruiter(self, recruiter_id: str) -> Recruiter:
        recruiter = await self.db.get(Recruiter, recruiter_id)
        if recruiter is None or recruiter.status != RecruiterStatus.ACTIVE:
            raise InvalidInput(
                f"Recruiter {recruiter_id} is not an active recruiter",
                {"recruiter_id": recruiter_id},
            )
        return recruiter

    async def _ensure_no_open_application(self, candidate_id: str, job_id: str) -> None:
        result = await self.db.execute(
            select(Application.id).where(
                Application.candidate_id == candidate_id,
                Application.job_id == job_id,
                Application.stage.not_in(list(TERMINAL_STAGES)),
            )
        )
        existing = result.scalars().first()
        if existing:
            raise InvalidInput(
                "Candidate already has an open application for this job",
                {"application_id": existing, "job_id": job_id},
            )

    async def _write_stage(
        self, application: Application, to_stage: ApplicationStage, **values
    ) -> ApplicationStage:
        """
        Compare-and-set the stage without committing.

        Returns:
            The stage the application left

        Raises:
            TransitionConflict: If the stored stage no longer matches
        """
        application_id = application.id
        expected = application.stage
        result = await self.db.execute(
            update(Application)
            .where(Application.id == application_id, Application.stage == expected)
            .values(stage=to_stage, updated_at=now(), **values)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            logger.warning(
                f"Stage conflict on application {application_id}: expected {expected.value}"
            )
            raise TransitionConflict(application_id, expected.value)

        # Keep the loaded instance in step with the row
        application.stage = to_stage
        for key, value in values.items():
            setattr(application, key, value)

        logger.info(f"Application {application.id}: {expected.value} -> {to_stage.value}")
        return expected

    async def _record_stage_audit(
        self,
        application: Application,
        action: ApplicationAuditAction,
        context: Optional[AccessContext],
        old_stage: ApplicationStage,
        values: Optional[dict[str, Any]] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        new_value = {"stage": application.stage.value}
        for key, value in (values or {}).items():
            new_value[key] = jsonable(value)
        await self._record_audit(
            application,
            action,
            context,
            old_value={"stage": old_stage.value},
            new_value=new_value,
            metadata=metadata,
        )

    async def _emit_stage_changed(self, application: Application, old_stage: ApplicationStage) -> None:
        await self._emit(
            "application.stage_changed",
            self._payload(application, old_stage=old_stage.value, new_stage=application.stage.value),
        )


def _parse_salary(salary) -> Decimal:
    try:
        value = Decimal(str(salary))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInput("Salary must be a number", {"salary": str(salary)})
    if not value.is_finite() or value <= 0:
        raise InvalidInput("Salary must be greater than zero", {"salary": str(salary)})
    return value
