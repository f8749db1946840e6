"""FastAPI dependencies for dependency injection."""

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.applications import ApplicationService
from api.services.notes import NoteService
from core.access.context import AccessContext, resolve_access_context
from core.config import settings
from core.events import EventPublisher, get_publisher
from database.engine import get_db


async def get_identity(request: Request) -> str:
    """
    Opaque identity of the caller.

    The gateway verifies the session token and forwards the identity in a
    header; it is trusted as-is.
    """
    identity = request.headers.get(settings.identity_header)
    if not identity or not identity.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return identity.strip()


async def get_access_context(
    identity: str = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
) -> AccessContext:
    """Resolve the caller's access context for this request."""
    return await resolve_access_context(db, identity)


def get_event_publisher() -> EventPublisher:
    return get_publisher()


async def get_application_service(
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> ApplicationService:
    return ApplicationService(db, publisher)


async def get_note_service(
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> NoteService:
    return NoteService(db, publisher)
