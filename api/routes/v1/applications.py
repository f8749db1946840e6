"""
Application workflow endpoints.

Thin adapters over ``ApplicationService``; every rule lives in the service.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status

from api.dependencies import get_access_context, get_application_service
from api.schemas.applications import (
    ApplicationCreate,
    ApplicationResponse,
    ApplicationUpdate,
    AuditLogEntryResponse,
    DeclineProposalRequest,
    HireRequest,
    PrescreenRequest,
    ProposalCreate,
    RecruiterSubmitRequest,
    WithdrawRequest,
)
from api.schemas.common import PaginatedResponse
from api.services.applications import ApplicationService
from core.access.context import AccessContext

router = APIRouter()
recruiter_router = APIRouter()


@router.post(
    "",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Apply to a Job",
)
async def create_application(
    payload: ApplicationCreate,
    context: AccessContext = Depends(get_access_context),
    service: ApplicationService = Depends(get_application_service),
):
    """Create a draft application for the calling candidate."""
    return await service.create_application(
        context,
        job_id=payload.job_id,
        candidate_notes=payload.candidate_notes,
        candidate_recruiter_id=payload.candidate_recruiter_id,
    )


@router.get(
    "",
    response_model=PaginatedResponse[ApplicationResponse],
    summary="List Applications",
    description="List applications visible to the caller.",
)
async def list_applications(
    stage: Optional[str] = Query(None, description="Filter by pipeline stage"),
    job_id: Optional[str] = Query(None, description="Filter by job"),
    candidate_id: Optional[str] = Query(None, description="Filter by candidate"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    context: AccessContext = Depends(get_access_context),
    service: ApplicationService = Depends(get_application_service),
):
    result = await service.list_applications(
        context,
        stage=stage,
        job_id=job_id,
        candidate_id=candidate_id,
        limit=limit,
        offset=offset,
    )
    return PaginatedResponse[ApplicationResponse](
        items=[ApplicationResponse.model_validate(a) for a in result["applications"]],
        total=result["total"],
        limit=result["limit"],
        offset=result["offset"],
    )


@router.post(
    "/propose",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Propose a Job to a Candidate",
)
async def propose_job(
    payload: ProposalCreate,
    context: AccessContext = Depends(get_access_context),
    service: ApplicationService = Depends(get_application_service),
):
    """Recruiter proposes a job; the candidate must respond before the proposal expires."""
    return await service.propose_job_to_candidate(
        context,
        candidate_id=payload.candidate_id,
        job_id=payload.job_id,
        pitch=payload.pitch,
    )


@router.get(
    "/{application_id}",
    response_model=ApplicationResponse,
    summary="Get Application Details",
)
async def get_application(
    application_id: str = Path(..., description="Application ID"),
    context: AccessContext = Depends(get_access_context),
    service: ApplicationService = Depends(get_application_service),
):
    return await service.get_application(context, application_id)


@router.patch(
    "/{application_id}",
    response_model=ApplicationResponse,
    summary="Change Application Stage",
    description="Move an application to another stage through the transition policy.",
)
async def update_application(
    payload: ApplicationUpdate,
    application_id: str = Path(..., description="Application ID"),
    context: AccessContext = Depends(get_access_context),
    service: ApplicationService = Depends(get_application_service),
):
    return await service.update_application(
        context,
        application_id,
        stage=payload.stage,
        decline_reason=payload.decline_reason,
        decline_details=payload.decline_details,
    )


@router.post(
    "/{application_id}/withdraw",
    response_model=ApplicationResponse,
    summary="Withdraw Application",
)
async def withdraw_application(
    application_id: str = Path(..., description="Application ID"),
    payload: Optional[WithdrawRequest] = Body(None),
    context: AccessContext = Depends(get_access_context),
    service: ApplicationService = Depends(get_application_service),
):
    reason = payload.reason if payload else None
    return await service.withdraw_application(context, application_id, reason=reason)


@router.post(
    "/{application_id}/trigger-ai-review",
    response_model=ApplicationResponse,
    summary="Request AI Review",
)
async def trigger_ai_review(
    application_id: str = Path(..., description="Application ID"),
    context: AccessContext = Depends(get_access_context),
    service: ApplicationService = Depends(get_application_service),
):
    return await service.trigger_ai_review(context, application_id)


@router.post(
    "/{application_id}/submit",
    response_model=ApplicationResponse,
    summary="Submit Application",
)
async def submit_application(
    application_id: str = Path(..., description="Application ID"),
    context: AccessContext = Depends(get_access_context),
    service: ApplicationService = Depends(get_application_service),
):
    return await service.submit_application(context, application_id)


@router.post(
    "/{application_id}/return-to-draft",
    response_model=ApplicationResponse,
    summary="Return Application to Draft",
)
async def return_to_draft(
    application_id: str = Path(..., description="Application ID"),
    context: AccessContext = Depends(get_access_context),
    service: ApplicationService = Depends(get_application_service),
):
    return await service.return_to_draft(context, application_id)


@router.post(
    "/{application_id}/accept-proposal",
    response_model=ApplicationResponse,
    summary="Accept Recruiter Proposal",
)
async def accept_proposal(
    application_id: str = Path(..., description="Application ID"),
    context: AccessContext = Depends(get_access_context),
    service: ApplicationService = Depends(get_application_service),
):
    return await service.accept_proposal(context, application_id)


@router.post(
    "/{application_id}/decline-proposal",
    response_model=ApplicationResponse,
    summary="Decline Recruiter Proposal",
)
async def decline_proposal(
    payload: DeclineProposalRequest,
    application_id: str = Path(..., description="Application ID"),
    context: AccessContext = Depends(get_access_context),
    service: ApplicationService = Depends(get_application_service),
):
    return await service.decline_proposal(
        context, application_id, reason=payload.reason, details=payload.details
    )


@router.post(
    "/{application_id}/request-prescreen",
    response_model=ApplicationResponse,
    summary="Request Recruiter Pre-screen",
    description="Move to screen and assign a company recruiter to the job if it has none.",
)
async def request_prescreen(
    application_id: str = Path(..., description="Application ID"),
    payload: Optional[PrescreenRequest] = Body(None),
    context: AccessContext = Depends(get_access_context),
    service: ApplicationService = Depends(get_application_service),
):
    payload = payload or PrescreenRequest()
    return await service.request_prescreen(
        context, application_id, recruiter_id=payload.recruiter_id, message=payload.message
    )


@router.post(
    "/{application_id}/hire",
    response_model=ApplicationResponse,
    summary="Hire Candidate",
)
async def hire_candidate(
    payload: HireRequest,
    application_id: str = Path(..., description="Application ID"),
    context: AccessContext = Depends(get_access_context),
    service: ApplicationService = Depends(get_application_service),
):
    return await service.hire_candidate(context, application_id, salary=payload.salary)


@router.get(
    "/{application_id}/audit-log",
    response_model=list[AuditLogEntryResponse],
    summary="Get Application Audit Log",
    description="Audit history, newest first. Hiring company and platform admins only.",
)
async def get_audit_log(
    application_id: str = Path(..., description="Application ID"),
    context: AccessContext = Depends(get_access_context),
    service: ApplicationService = Depends(get_application_service),
):
    return await service.get_audit_log(context, application_id)


@router.post(
    "/{application_id}/recruiter-submit",
    response_model=ApplicationResponse,
    summary="Recruiter Submits to Company",
)
async def recruiter_submit_application(
    application_id: str = Path(..., description="Application ID"),
    payload: Optional[RecruiterSubmitRequest] = Body(None),
    context: AccessContext = Depends(get_access_context),
    service: ApplicationService = Depends(get_application_service),
):
    """The candidate's recruiter forwards an application out of recruiter review."""
    notes = payload.recruiter_notes if payload else None
    return await service.recruiter_submit_application(context, application_id, recruiter_notes=notes)


@router.post(
    "/{application_id}/accept",
    response_model=ApplicationResponse,
    summary="Accept Application",
)
async def accept_application(
    application_id: str = Path(..., description="Application ID"),
    context: AccessContext = Depends(get_access_context),
    service: ApplicationService = Depends(get_application_service),
):
    return await service.accept_application(context, application_id)


@recruiter_router.get(
    "/{recruiter_id}/pending-applications",
    response_model=list[ApplicationResponse],
    summary="List Applications Awaiting Recruiter Review",
)
async def list_pending_applications(
    recruiter_id: str = Path(..., description="Recruiter ID"),
    context: AccessContext = Depends(get_access_context),
    service: ApplicationService = Depends(get_application_service),
):
    return await service.list_pending_for_recruiter(context, recruiter_id)
