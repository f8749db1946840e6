import logging
import uuid

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from core.config import settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str):
    """Create the async engine, applying pool settings where the driver supports them."""
    options = {"echo": settings.database_echo}
    if not database_url.startswith("sqlite"):
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
        )
    return create_async_engine(database_url, **options)


db_engine = build_engine(settings.database_url)

# Create async session maker to be used throughout the application
AsyncSessionLocal = async_sessionmaker(
    db_engine, class_=AsyncSession, expire_on_commit=False
)


# Base class for declarative models
class Base(DeclarativeBase):
    pass


# Dependency to get DB session
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


# Function to initialize the database (create tables)
async def init_db():
    # Import models so they register on Base.metadata
    from database.models import (  # noqa: F401
        applications,
        audit,
        candidates,
        jobs,
        organizations,
        recruiters,
        subscriptions,
        users,
    )

    logger.info("Creating tables if missing")
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Function to close database connections
async def close_db():
    """Close database engine and connections."""
    await db_engine.dispose()


def new_uuid() -> str:
    """Primary key default for every table."""
    return str(uuid.uuid4())
