"""
FastAPI dependencies
"""

from functools import lru_cache
from sqlalchemy.ext.asyncio import AsyncSession
from core.database import async_session_maker
from batch.runner import JobService


async def get_db() -> AsyncSession:
    """Database session for request handlers"""
    async with async_session_maker() as session:
        yield session


@lru_cache()
def get_job_service() -> JobService:
    """Process-wide JobService, shared so running executions are tracked in one place"""
    return JobService(async_session_maker)
