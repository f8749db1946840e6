"""
Domain errors raised by the application pipeline.

Every error carries a stable ``code`` and an HTTP ``status_code`` so the
error handlers can render it without knowing the concrete class.
"""

from typing import Any, Optional


class PipelineError(Exception):
    """Base class for caller-visible pipeline errors."""

    code = "PIPELINE_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        error = {"code": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return error


class NotFound(PipelineError):
    """Entity absent, or filtered out by the caller's access."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Optional[str] = None):
        message = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(message, {"entity": entity, "id": entity_id})


class Forbidden(PipelineError):
    """Caller's resolved identity lacks the required side or role."""

    code = "FORBIDDEN"
    status_code = 403


class InvalidTransition(PipelineError):
    """Stage pair is not permitted by the transition policy."""

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, from_stage: str, to_stage: str, reason: Optional[str] = None):
        message = f"Invalid stage transition: {from_stage} -> {to_stage}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, {"from_stage": from_stage, "to_stage": to_stage})
        self.from_stage = from_stage
        self.to_stage = to_stage


class TransitionConflict(PipelineError):
    """The stage changed between read and write."""

    code = "TRANSITION_CONFLICT"
    status_code = 409

    def __init__(self, application_id: str, expected_stage: str):
        super().__init__(
            f"Application {application_id} is no longer in stage {expected_stage}",
            {"application_id": application_id, "expected_stage": expected_stage},
        )


class MissingDeclineReason(PipelineError):
    """Rejecting requires decline_reason or decline_details."""

    code = "MISSING_DECLINE_REASON"
    status_code = 400

    def __init__(self, message: str = "decline_reason or decline_details is required to reject"):
        super().__init__(message, {"fields": ["decline_reason", "decline_details"]})


class InvalidInput(PipelineError):
    """Malformed payload, oversized text, or mismatched creator type/visibility."""

    code = "INVALID_INPUT"
    status_code = 400


class NoRecruiterAvailable(PipelineError):
    """Assignment pool is empty for the company."""

    code = "NO_RECRUITER_AVAILABLE"
    status_code = 409

    def __init__(self, company_id: str):
        super().__init__(
            f"No recruiter available for company {company_id}",
            {"company_id": company_id},
        )
