from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    DateTime,
    func,
)
from database.engine import Base, new_uuid
from core.utils.datetime import now
from datetime import datetime


class Company(Base):
    """
    Hiring company. Members of ``identity_organization_id`` act on the
    company's behalf.
    """

    __tablename__: str = "companies"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    identity_organization_id: Mapped[str | None] = mapped_column(
        String(36), index=True
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
