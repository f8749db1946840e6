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
from enum import Enum as PyEnum
from datetime import datetime


# ==================== Enums ===================== #
class PlanTier(str, PyEnum):
    """Recruiter subscription plan levels."""

    STARTER = "starter"
    PRO = "pro"
    PARTNER = "partner"


class SubscriptionStatus(str, PyEnum):
    """Subscription status options."""

    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


# Statuses that count as a paying plan
ACTIVE_SUBSCRIPTION_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING)


# ==================== Models ===================== #
class Subscription(Base):
    """
    Recruiter subscription. Billing owns this table; the pipeline only
    reads the plan tier as an assignment signal.
    """

    __tablename__: str = "subscriptions"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    recruiter_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("recruiters.id"), nullable=False, index=True
    )
    plan_tier: Mapped[PlanTier] = mapped_column(
        SQLEnum(PlanTier, native_enum=False, length=50),
        nullable=False,
        default=PlanTier.STARTER,
    )
    status: Mapped[SubscriptionStatus] = mapped_column(
        SQLEnum(SubscriptionStatus, native_enum=False, length=50),
        nullable=False,
        default=SubscriptionStatus.ACTIVE,
    )
    current_period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

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
