from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    ForeignKey,
    DateTime,
    func,
    Enum as SQLEnum,
    Index,
    UniqueConstraint,
)
from database.engine import Base, new_uuid
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum


# ==================== Membership Roles ===================== #
class MembershipRole(str, PyEnum):
    """Roles a user can hold through an organization membership."""

    COMPANY_ADMIN = "company_admin"  # manages the company's jobs and hiring team
    HIRING_MANAGER = "hiring_manager"  # reviews candidates for company jobs
    PLATFORM_ADMIN = "platform_admin"  # operator of the marketplace itself


# ==================== Models ===================== #
class User(Base):
    """
    Platform identity. ``external_id`` is the opaque id issued by the
    identity provider and handed to this service by the gateway.
    """

    __tablename__: str = "users"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    external_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255))

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


class Membership(Base):
    """
    A user's role in an organization. Platform-level roles carry no
    organization.
    """

    __tablename__: str = "memberships"
    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", "role", name="uq_membership_user_org_role"),
        Index("idx_memberships_user", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    organization_id: Mapped[str | None] = mapped_column(String(36), index=True)
    role: Mapped[MembershipRole] = mapped_column(
        SQLEnum(MembershipRole, native_enum=False, length=50), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, server_default=func.now()
    )
