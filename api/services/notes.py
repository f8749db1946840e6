"""
Application notes.

Notes are filtered by the caller's side on the application: the candidate
side never sees ``company_only`` notes and the company side never sees
``candidate_only`` notes. A note the caller may not see is reported as
missing.
"""

from typing import Optional
import logging

from sqlalchemy import select

from api.services.base import PipelineService
from core.access.context import AccessContext
from core.access.visibility import (
    can_view_application,
    validate_note_authoring,
    visible_note_visibilities,
)
from core.config import settings
from core.exceptions import Forbidden, InvalidInput, NotFound
from database.models.applications import (
    Application,
    ApplicationNote,
    NoteCreatorType,
    NoteType,
    NoteVisibility,
)
from database.models.audit import ApplicationAuditAction

logger = logging.getLogger(__name__)


class NoteService(PipelineService):
    async def list_notes(
        self,
        context: AccessContext,
        application_id: str,
        note_type: Optional[str] = None,
    ) -> list[ApplicationNote]:
        """
        List the notes on an application that the caller may read, oldest first.

        Args:
            context: Caller
            application_id: Application the notes belong to
            note_type: Optional filter on note type

        Returns:
            Visible notes
        """
        application = await self._load_visible_application(context, application_id)
        visibilities = visible_note_visibilities(context, application)

        query = select(ApplicationNote).where(
            ApplicationNote.application_id == application_id,
            ApplicationNote.visibility.in_(list(visibilities)),
        )
        if note_type:
            query = query.where(ApplicationNote.note_type == _coerce(NoteType, note_type, "note_type"))

        result = await self.db.execute(
            query.order_by(ApplicationNote.created_at.asc(), ApplicationNote.id)
        )
        return list(result.scalars().all())

    async def get_note(self, context: AccessContext, note_id: str) -> ApplicationNote:
        note, _ = await self._load_visible_note(context, note_id)
        return note

    async def create_note(
        self,
        context: AccessContext,
        application_id: str,
        created_by_type: str,
        visibility: str,
        message_text: str,
        note_type: str = NoteType.NOTE.value,
        in_response_to_id: Optional[str] = None,
    ) -> ApplicationNote:
        """
        Add a note to an application.

        The creator type must be one the caller's roles grant, the visibility
        must be one the creator type may publish with, and a reply must
        target a note on the same application that the caller can see.

        Raises:
            InvalidInput: Creator type, visibility, text or reply target rejected
            NotFound: Application missing or caller has no side on it
        """
        created_by_type = _coerce(NoteCreatorType, created_by_type, "created_by_type")
        visibility = _coerce(NoteVisibility, visibility, "visibility")
        note_type = _coerce(NoteType, note_type, "note_type")

        validate_note_authoring(context, created_by_type, visibility)
        message_text = _validate_message(message_text)

        application = await self._load_visible_application(context, application_id)

        if in_response_to_id:
            parent = await self.db.get(ApplicationNote, in_response_to_id)
            if (
                parent is None
                or parent.application_id != application_id
                or parent.visibility not in visible_note_visibilities(context, application)
            ):
                raise InvalidInput(
                    "Reply target must be a visible note on the same application",
                    {"in_response_to_id": in_response_to_id},
                )

        note = ApplicationNote(
            application_id=application_id,
            created_by_user_id=context.identity_user_id,
            created_by_type=created_by_type,
            note_type=note_type,
            visibility=visibility,
            message_text=message_text,
            in_response_to_id=in_response_to_id,
        )
        self.db.add(note)
        await self.db.commit()

        logger.info(
            f"Note {note.id} added to application {application_id} "
            f"by {created_by_type.value} ({visibility.value})"
        )

        details = {
            "note_id": note.id,
            "note_type": note_type.value,
            "visibility": visibility.value,
            "created_by_type": created_by_type.value,
            "in_response_to_id": in_response_to_id,
        }
        await self._record_audit(
            application, ApplicationAuditAction.NOTE_ADDED, context, metadata=details
        )
        await self._emit(
            "application.note.created",
            self._payload(application, created_by_user_id=context.identity_user_id, **details),
        )
        return note

    async def update_note(
        self, context: AccessContext, note_id: str, message_text: str
    ) -> ApplicationNote:
        """Edit a note's text. Only its creator may edit it."""
        note, _ = await self._load_visible_note(context, note_id)
        if note.created_by_user_id != context.identity_user_id:
            raise Forbidden("Only the note's creator can edit it")

        note.message_text = _validate_message(message_text)
        await self.db.commit()
        return note

    async def delete_note(self, context: AccessContext, note_id: str) -> None:
        """Delete a note. Its creator or a platform admin may delete it."""
        note, _ = await self._load_visible_note(context, note_id)
        if note.created_by_user_id != context.identity_user_id and not context.is_platform_admin:
            raise Forbidden("Only the note's creator or a platform admin can delete it")

        await self.db.delete(note)
        await self.db.commit()
        logger.info(f"Note {note_id} deleted by user {context.identity_user_id}")

    async def _load_visible_application(
        self, context: AccessContext, application_id: str
    ) -> Application:
        application = await self._load(application_id)
        if not can_view_application(context, application):
            raise NotFound("Application", application_id)
        return application

    async def _load_visible_note(
        self, context: AccessContext, note_id: str
    ) -> tuple[ApplicationNote, Application]:
        note = await self.db.get(ApplicationNote, note_id)
        if note is None:
            raise NotFound("Note", note_id)

        application = await self._load(note.application_id)
        if not can_view_application(context, application) or (
            note.visibility not in visible_note_visibilities(context, application)
        ):
            raise NotFound("Note", note_id)
        return note, application


def _validate_message(message_text: Optional[str]) -> str:
    if message_text is None or not message_text.strip():
        raise InvalidInput("Note text cannot be empty", {"field": "message_text"})
    if len(message_text) > settings.note_max_length:
        raise InvalidInput(
            f"Note text exceeds {settings.note_max_length} characters",
            {"field": "message_text", "length": len(message_text)},
        )
    return message_text


def _coerce(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidInput(f"Invalid {field}: {value}", {field: value})
