from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    ForeignKey,
    DateTime,
    func,
    Enum as SQLEnum,
)
from database.engine import Base, new_uuid
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum


# ==================== Enums ===================== #
class JobStatus(str, PyEnum):
    """Job posting status."""

    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"


# ==================== Models ===================== #
class Job(Base):
    """
    Job posting owned by a company.

    ``company_recruiter_id`` is the company-side recruiter. It lives on the
    job rather than the application so every application to the job splits
    fees with the same recruiter.
    """

    __tablename__: str = "jobs"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    company_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("companies.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[JobStatus] = mapped_column(
        SQLEnum(JobStatus, native_enum=False, length=50),
        nullable=False,
        default=JobStatus.ACTIVE,
        index=True,
    )
    company_recruiter_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("recruiters.id"), index=True
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
