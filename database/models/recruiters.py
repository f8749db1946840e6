"""
Recruiter Models

Recruiters and their working relationships with hiring companies. The
relationship table is the first-choice pool for pre-screen assignment.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    DateTime,
    func,
    Enum as SQLEnum,
    Index,
)
from database.engine import Base, new_uuid
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum


# ==================== Enums ===================== #
class RecruiterStatus(str, PyEnum):
    """Account status of a recruiter."""

    ACTIVE = "active"
    PENDING = "pending"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


class RecruiterCompanyRole(str, PyEnum):
    """Role a recruiter plays for a company."""

    RECRUITER = "recruiter"
    LEAD = "lead"


class RecruiterCompanyStatus(str, PyEnum):
    """Status of a recruiter-company relationship."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    TERMINATED = "terminated"


# ==================== Models ===================== #
class Recruiter(Base):
    """Recruiter profile attached to a platform user."""

    __tablename__: str = "recruiters"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), unique=True, nullable=False, index=True
    )
    status: Mapped[RecruiterStatus] = mapped_column(
        SQLEnum(RecruiterStatus, native_enum=False, length=50),
        nullable=False,
        default=RecruiterStatus.PENDING,
        index=True,
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


class RecruiterCompany(Base):
    """Working relationship between a recruiter and a hiring company."""

    __tablename__: str = "recruiter_companies"
    __table_args__ = (
        Index("idx_recruiter_companies_company_status", "company_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    recruiter_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("recruiters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    company_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[RecruiterCompanyRole] = mapped_column(
        SQLEnum(RecruiterCompanyRole, native_enum=False, length=50),
        nullable=False,
        default=RecruiterCompanyRole.RECRUITER,
    )
    status: Mapped[RecruiterCompanyStatus] = mapped_column(
        SQLEnum(RecruiterCompanyStatus, native_enum=False, length=50),
        nullable=False,
        default=RecruiterCompanyStatus.ACTIVE,
    )
    can_manage_company_jobs: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
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
