"""
Async database engine, session factory and declarative base.
"""
from datetime import datetime, timezone
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from assetdesk.config import settings


engine = create_async_engine(settings.database_url, echo=settings.debug)
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# Single source of truth for Base
Base = declarative_base()


def utcnow() -> datetime:
    """Timezone-aware current time; used for every timestamp column and field."""
    return datetime.now(timezone.utc)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session bound to the current engine."""
    async with AsyncSessionLocal() as session:
        yield session
