"""
Application note endpoints.

Notes the caller may not see are answered with 404, never 403.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status

from api.dependencies import get_access_context, get_note_service
from api.schemas.notes import NoteCreate, NoteResponse, NoteUpdate
from api.services.notes import NoteService
from core.access.context import AccessContext

router = APIRouter()


@router.get(
    "/applications/{application_id}/notes",
    response_model=list[NoteResponse],
    summary="List Application Notes",
)
async def list_notes(
    application_id: str = Path(..., description="Application ID"),
    note_type: Optional[str] = Query(None, description="Filter by note type"),
    context: AccessContext = Depends(get_access_context),
    service: NoteService = Depends(get_note_service),
):
    """Notes visible to the caller, oldest first."""
    return await service.list_notes(context, application_id, note_type=note_type)


@router.post(
    "/applications/{application_id}/notes",
    response_model=NoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add Application Note",
)
async def create_note(
    payload: NoteCreate,
    application_id: str = Path(..., description="Application ID"),
    context: AccessContext = Depends(get_access_context),
    service: NoteService = Depends(get_note_service),
):
    return await service.create_note(
        context,
        application_id,
        created_by_type=payload.created_by_type,
        visibility=payload.visibility,
        message_text=payload.message_text,
        note_type=payload.note_type,
        in_response_to_id=payload.in_response_to_id,
    )


@router.get("/notes/{note_id}", response_model=NoteResponse, summary="Get Note")
async def get_note(
    note_id: str = Path(..., description="Note ID"),
    context: AccessContext = Depends(get_access_context),
    service: NoteService = Depends(get_note_service),
):
    return await service.get_note(context, note_id)


@router.patch("/notes/{note_id}", response_model=NoteResponse, summary="Edit Note")
async def update_note(
    payload: NoteUpdate,
    note_id: str = Path(..., description="Note ID"),
    context: AccessContext = Depends(get_access_context),
    service: NoteService = Depends(get_note_service),
):
    return await service.update_note(context, note_id, payload.message_text)


@router.delete(
    "/notes/{note_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete Note",
)
async def delete_note(
    note_id: str = Path(..., description="Note ID"),
    context: AccessContext = Depends(get_access_context),
    service: NoteService = Depends(get_note_service),
):
    await service.delete_note(context, note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
