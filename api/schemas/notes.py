"""Application note schemas."""

from typing import Optional
from pydantic import BaseModel, Field

from api.schemas.common import TimestampMixin
from database.models.applications import NoteCreatorType, NoteType, NoteVisibility


class NoteCreate(BaseModel):
    """Schema for adding a note to an application."""

    created_by_type: NoteCreatorType = Field(description="Capacity the author writes in")
    visibility: NoteVisibility = Field(default=NoteVisibility.SHARED, description="Who can read the note")
    note_type: NoteType = Field(default=NoteType.NOTE, description="Kind of note")
    message_text: str = Field(description="Note body")
    in_response_to_id: Optional[str] = Field(None, max_length=36, description="Note being replied to")


class NoteUpdate(BaseModel):
    message_text: str = Field(description="New note body")


class NoteResponse(TimestampMixin):
    """Schema for note response."""

    id: str
    application_id: str
    created_by_user_id: str
    created_by_type: NoteCreatorType
    note_type: NoteType
    visibility: NoteVisibility
    message_text: str
    in_response_to_id: Optional[str] = None

    class Config:
        from_attributes = True
