"""
Application Models

Job applications moving through the candidate / recruiter / company review
pipeline, and the discussion notes attached to them.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    DateTime,
    func,
    Text,
    Float,
    Numeric,
    Enum as SQLEnum,
    Index,
)
from database.engine import Base, new_uuid
from database.models.jobs import Job
from core.utils.datetime import now
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum


# ==================== Application Enums ===================== #
class ApplicationStage(str, PyEnum):
    """Position of an application in the review pipeline."""

    # Candidate self-service
    DRAFT = "draft"
    AI_REVIEW = "ai_review"
    AI_REVIEWED = "ai_reviewed"

    # Recruiter involvement
    RECRUITER_REQUEST = "recruiter_request"
    RECRUITER_PROPOSED = "recruiter_proposed"
    RECRUITER_REVIEW = "recruiter_review"

    # Company review
    SCREEN = "screen"
    SUBMITTED = "submitted"
    COMPANY_REVIEW = "company_review"
    COMPANY_FEEDBACK = "company_feedback"
    INTERVIEW = "interview"
    OFFER = "offer"

    # Terminal
    HIRED = "hired"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    EXPIRED = "expired"

    def is_terminal(self) -> bool:
        return self in TERMINAL_STAGES


TERMINAL_STAGES = frozenset(
    {
        ApplicationStage.HIRED,
        ApplicationStage.REJECTED,
        ApplicationStage.WITHDRAWN,
        ApplicationStage.EXPIRED,
    }
)


class AIRecommendation(str, PyEnum):
    """Fit verdict returned by the AI reviewer."""

    STRONG_FIT = "strong_fit"
    GOOD_FIT = "good_fit"
    FAIR_FIT = "fair_fit"
    POOR_FIT = "poor_fit"


class NoteCreatorType(str, PyEnum):
    """Capacity in which a note author wrote the note."""

    CANDIDATE = "candidate"
    CANDIDATE_RECRUITER = "candidate_recruiter"
    COMPANY_RECRUITER = "company_recruiter"
    HIRING_MANAGER = "hiring_manager"
    COMPANY_ADMIN = "company_admin"
    PLATFORM_ADMIN = "platform_admin"


class NoteType(str, PyEnum):
    """Kinds of application notes."""

    INFO_REQUEST = "info_request"
    INFO_RESPONSE = "info_response"
    NOTE = "note"
    IMPROVEMENT_REQUEST = "improvement_request"
    STAGE_TRANSITION = "stage_transition"
    INTERVIEW_FEEDBACK = "interview_feedback"
    GENERAL = "general"


class NoteVisibility(str, PyEnum):
    """Audience of a note."""

    SHARED = "shared"
    COMPANY_ONLY = "company_only"
    CANDIDATE_ONLY = "candidate_only"


# ==================== Models ===================== #
class Application(Base):
    """
    A candidate's application to a job.

    ``stage`` is written only through the pipeline service, which checks
    every change against the transition policy. Applications are never
    deleted; withdrawing is a stage change.
    """

    __tablename__: str = "applications"
    __table_args__ = (
        Index("idx_applications_candidate_job", "candidate_id", "job_id"),
        Index("idx_applications_recruiter_created", "candidate_recruiter_id", "created_at"),
        Index("idx_applications_stage_expiry", "stage", "proposal_expires_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    job_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("jobs.id"), nullable=False, index=True
    )
    candidate_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("candidates.id"), nullable=False, index=True
    )
    candidate_recruiter_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("recruiters.id")
    )
    stage: Mapped[ApplicationStage] = mapped_column(
        SQLEnum(ApplicationStage, native_enum=False, length=50),
        nullable=False,
        default=ApplicationStage.DRAFT,
        index=True,
    )

    # Content
    candidate_notes: Mapped[str | None] = mapped_column(Text)
    recruiter_pitch: Mapped[str | None] = mapped_column(Text)

    # Outcome
    salary: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    decline_reason: Mapped[str | None] = mapped_column(String(255))
    decline_details: Mapped[str | None] = mapped_column(Text)

    # AI review
    ai_reviewed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ai_fit_score: Mapped[float | None] = mapped_column(Float)
    ai_recommendation: Mapped[AIRecommendation | None] = mapped_column(
        SQLEnum(AIRecommendation, native_enum=False, length=50)
    )

    # Lifecycle timestamps
    proposal_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    hired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=now,
        server_default=func.now(),
        onupdate=now,
    )

    # Relationships
    job: Mapped[Job] = relationship(Job, lazy="joined", innerjoin=True)


class ApplicationNote(Base):
    """Threaded discussion note on an application."""

    __tablename__: str = "application_notes"
    __table_args__ = (
        Index("idx_application_notes_app_created", "application_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    application_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("applications.id", ondelete="CASCADE"), nullable=False
    )
    created_by_user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )
    created_by_type: Mapped[NoteCreatorType] = mapped_column(
        SQLEnum(NoteCreatorType, native_enum=False, length=50), nullable=False
    )
    note_type: Mapped[NoteType] = mapped_column(
        SQLEnum(NoteType, native_enum=False, length=50),
        nullable=False,
        default=NoteType.NOTE,
    )
    visibility: Mapped[NoteVisibility] = mapped_column(
        SQLEnum(NoteVisibility, native_enum=False, length=50),
        nullable=False,
        default=NoteVisibility.SHARED,
    )
    message_text: Mapped[str] = mapped_column(Text, nullable=False)
    in_response_to_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("application_notes.id", ondelete="SET NULL")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=now,
        server_default=func.now(),
        onupdate=now,
    )
