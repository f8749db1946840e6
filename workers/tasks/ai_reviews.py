"""AI review completion intake."""

import asyncio
import logging
from typing import List, Optional

from celery import Task

from api.services.applications import ApplicationService
from core.exceptions import PipelineError
from workers.celery_app import celery_app
from workers.db import task_session

logger = logging.getLogger(__name__)


async def _complete_ai_review(
    application_id: str,
    recommendation: str,
    fit_score: Optional[float],
    concerns: Optional[List[str]],
) -> dict:
    async with task_session() as session:
        service = ApplicationService(session)
        application = await service.handle_ai_review_completed(
            application_id,
            recommendation=recommendation,
            fit_score=fit_score,
            concerns=concerns,
        )
        return {
            "status": "success",
            "application_id": application.id,
            "stage": application.stage.value,
        }


@celery_app.task(name="workers.tasks.ai_reviews.complete_ai_review", bind=True)
def complete_ai_review(
    self: Task,
    application_id: str,
    recommendation: str,
    fit_score: Optional[float] = None,
    concerns: Optional[List[str]] = None,
) -> dict:
    """Record the AI reviewer's verdict on an application.

    Args:
        application_id: Application that was reviewed
        recommendation: strong_fit, good_fit, fair_fit or poor_fit
        fit_score: Optional numeric fit score
        concerns: Reviewer concerns; non-empty concerns on a fair fit
            flag the application for improvement

    Returns:
        Dictionary with the resulting stage, or the rejection reason
    """
    try:
        return asyncio.run(
            _complete_ai_review(application_id, recommendation, fit_score, concerns)
        )
    except PipelineError as e:
        # Stale or invalid callbacks are not retried
        logger.warning(f"AI review result for {application_id} rejected: {e.code} {e.message}")
        return {
            "status": "rejected",
            "application_id": application_id,
            "error": e.to_dict(),
        }
    except Exception as e:
        logger.error(f"AI review intake failed for {application_id}: {e}", exc_info=True)
        raise self.retry(exc=e, countdown=60, max_retries=3)
