"""Application-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator

from api.schemas.common import TimestampMixin
from database.models.applications import AIRecommendation, ApplicationStage
from database.models.audit import ApplicationAuditAction


def _strip(v):
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class ApplicationCreate(BaseModel):
    """Schema for a candidate applying to a job."""

    job_id: str = Field(min_length=1, max_length=36, description="Job to apply to")
    candidate_notes: Optional[str] = Field(None, max_length=10_000, description="Notes from the candidate")
    candidate_recruiter_id: Optional[str] = Field(
        None, max_length=36, description="Recruiter representing the candidate"
    )


class ApplicationUpdate(BaseModel):
    """Schema for a generic stage change."""

    stage: ApplicationStage = Field(description="Target pipeline stage")
    decline_reason: Optional[str] = Field(None, max_length=255, description="Required when rejecting")
    decline_details: Optional[str] = Field(None, max_length=10_000, description="Free-text rejection details")

    @field_validator("decline_reason", "decline_details", mode="before")
    @classmethod
    def strip_text(cls, v):
        """Treat blank strings as missing."""
        return _strip(v)


class WithdrawRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000, description="Why the candidate withdrew")


class ProposalCreate(BaseModel):
    """Schema for a recruiter proposing a job to a candidate."""

    candidate_id: str = Field(min_length=1, max_length=36, description="Candidate to propose to")
    job_id: str = Field(min_length=1, max_length=36, description="Job being proposed")
    pitch: Optional[str] = Field(None, max_length=10_000, description="Recruiter's pitch to the candidate")


class DeclineProposalRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=255, description="Why the proposal was declined")
    details: Optional[str] = Field(None, max_length=10_000, description="Additional details")

    @field_validator("reason", "details", mode="before")
    @classmethod
    def strip_text(cls, v):
        """Treat blank strings as missing."""
        return _strip(v)


class PrescreenRequest(BaseModel):
    recruiter_id: Optional[str] = Field(
        None, max_length=36, description="Recruiter to assign; auto-assigned when omitted"
    )
    message: Optional[str] = Field(None, max_length=10_000, description="Message for the recruiter")


class RecruiterSubmitRequest(BaseModel):
    recruiter_notes: Optional[str] = Field(None, max_length=10_000, description="Recruiter's notes for the company")


class HireRequest(BaseModel):
    salary: Decimal = Field(description="Agreed annual salary; must be positive")


class ApplicationResponse(TimestampMixin):
    """Schema for application response."""

    id: str = Field(description="Unique application identifier")
    job_id: str
    candidate_id: str
    candidate_recruiter_id: Optional[str] = None
    stage: ApplicationStage
    candidate_notes: Optional[str] = None
    recruiter_pitch: Optional[str] = None
    salary: Optional[Decimal] = None
    decline_reason: Optional[str] = None
    decline_details: Optional[str] = None
    ai_reviewed: bool = False
    ai_fit_score: Optional[float] = None
    ai_recommendation: Optional[AIRecommendation] = None
    proposal_expires_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    hired_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuditLogEntryResponse(BaseModel):
    """Schema for one audit log entry."""

    id: str
    application_id: str
    action: ApplicationAuditAction
    performed_by_user_id: Optional[str] = None
    performed_by_role: Optional[str] = None
    company_id: Optional[str] = None
    old_value: Optional[dict[str, Any]] = None
    new_value: Optional[dict[str, Any]] = None
    metadata: Optional[dict[str, Any]] = Field(None, validation_alias="audit_metadata")
    created_at: datetime

    class Config:
        from_attributes = True
