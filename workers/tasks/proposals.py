"""Recruiter proposal housekeeping."""

import asyncio
import logging

from api.services.applications import ApplicationService
from workers.celery_app import celery_app
from workers.db import task_session

logger = logging.getLogger(__name__)


async def _expire_stale_proposals() -> int:
    async with task_session() as session:
        return await ApplicationService(session).expire_stale_proposals()


@celery_app.task(name="workers.tasks.proposals.expire_stale_proposals")
def expire_stale_proposals() -> dict:
    """Expire recruiter proposals the candidate did not answer in time.

    Returns:
        Dictionary with the number of expired proposals
    """
    expired = asyncio.run(_expire_stale_proposals())
    return {"status": "success", "expired": expired}
