"""
Shared plumbing for the pipeline services: application loading, the
best-effort audit trail and domain event emission.
"""

from typing import Any, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.access.context import AccessContext
from core.access.visibility import actor_role
from core.events import EventPublisher, get_publisher, jsonable
from core.exceptions import NotFound
from database.models.applications import Application
from database.models.audit import ApplicationAuditAction, ApplicationAuditLog

logger = logging.getLogger(__name__)

SYSTEM_ROLE = "system"


class PipelineService:
    def __init__(self, db: AsyncSession, publisher: Optional[EventPublisher] = None):
        self.db = db
        self.publisher = publisher or get_publisher()

    async def _load(self, application_id: str) -> Application:
        result = await self.db.execute(
            select(Application).where(Application.id == application_id)
        )
        application = result.unique().scalar_one_or_none()
        if application is None:
            raise NotFound("Application", application_id)
        return application

    async def _record_audit(
        self,
        application: Application,
        action: ApplicationAuditAction,
        context: Optional[AccessContext],
        old_value: Optional[dict[str, Any]] = None,
        new_value: Optional[dict[str, Any]] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Append an audit entry after the primary commit. Never raises.

        A ``None`` context attributes the entry to the system (background
        jobs and reviewer callbacks).
        """
        application_id = application.id
        try:
            entry = ApplicationAuditLog(
                application_id=application_id,
                action=action,
                performed_by_user_id=context.identity_user_id if context else None,
                performed_by_role=actor_role(context, application) if context else SYSTEM_ROLE,
                company_id=application.job.company_id,
                old_value=old_value,
                new_value=new_value,
                audit_metadata=metadata,
            )
            self.db.add(entry)
            await self.db.commit()
        except Exception as e:
            logger.error(
                f"Failed to write audit entry {action.value} for application {application_id}: {e}",
                exc_info=True,
            )
            try:
                await self.db.rollback()
                # Rollback expires every instance; reload so callers can keep using it
                await self._load(application_id)
            except Exception as reload_error:
                logger.error(
                    f"Failed to reload application {application_id} after audit failure: {reload_error}",
                    exc_info=True,
                )

    async def _emit(self, event_type: str, payload: dict[str, Any]) -> None:
        """Publish a domain event. Never raises."""
        try:
            await self.publisher.publish(event_type, payload)
        except Exception as e:
            logger.error(f"Failed to publish {event_type}: {e}", exc_info=True)

    @staticmethod
    def _payload(application: Application, **extra) -> dict[str, Any]:
        payload = {
            "application_id": application.id,
            "job_id": application.job_id,
            "candidate_id": application.candidate_id,
            "company_id": application.job.company_id,
            "candidate_recruiter_id": application.candidate_recruiter_id,
            "stage": application.stage.value,
        }
        payload.update({key: jsonable(value) for key, value in extra.items()})
        return payload

