"""Database access for Celery tasks."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import settings
from database.engine import build_engine


@asynccontextmanager
async def task_session() -> AsyncIterator[AsyncSession]:
    """
    Session on a short-lived engine.

    Each task runs its coroutine under a fresh event loop, and pooled
    connections cannot cross loops, so the engine lives only as long as
    the task.
    """
    engine = build_engine(settings.database_url)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with session_factory() as session:
            yield session
    finally:
        await engine.dispose()
