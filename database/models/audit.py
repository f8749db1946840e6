from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    ForeignKey,
    DateTime,
    func,
    JSON,
    Enum as SQLEnum,
    Index,
)
from database.engine import Base, new_uuid
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any


# ============ Audit Enums ============ #
class ApplicationAuditAction(str, PyEnum):
    """Actions recorded against an application."""

    CREATED = "created"
    STAGE_CHANGED = "stage_changed"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    EXPIRED = "expired"
    SUBMITTED = "submitted"
    SUBMITTED_TO_RECRUITER = "submitted_to_recruiter"
    SUBMITTED_TO_COMPANY = "submitted_to_company"
    ACCEPTED = "accepted"
    RETURNED_TO_DRAFT = "returned_to_draft"
    RECRUITER_REQUEST = "recruiter_request"
    AI_REVIEW_STARTED = "ai_review_started"
    AI_REVIEW_COMPLETED = "ai_review_completed"
    RECRUITER_PROPOSED_JOB = "recruiter_proposed_job"
    PROPOSAL_ACCEPTED = "proposal_accepted"
    PROPOSAL_DECLINED = "proposal_declined"
    PRESCREEN_REQUESTED = "prescreen_requested"
    NOTE_ADDED = "note_added"
    HIRED = "hired"


# ==================== Models ===================== #
class ApplicationAuditLog(Base):
    """
    Immutable record of one action against one application.
    """

    __tablename__ = "application_audit_log"
    __table_args__ = (
        Index("idx_application_audit_app_created", "application_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    application_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("applications.id"), nullable=False
    )

    # Action
    action: Mapped[ApplicationAuditAction] = mapped_column(
        SQLEnum(ApplicationAuditAction, native_enum=False, length=50),
        nullable=False,
        index=True,
    )

    # Actor
    performed_by_user_id: Mapped[str | None] = mapped_column(String(36), index=True)
    performed_by_role: Mapped[str | None] = mapped_column(String(50))
    company_id: Mapped[str | None] = mapped_column(String(36))

    # Details
    old_value: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    new_value: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    # "metadata" is reserved on declarative classes
    audit_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, server_default=func.now()
    )
