"""
Pytest configuration and fixtures
"""

import os
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from sqlalchemy import select
from typing import AsyncGenerator, List, Optional

from batch.repository import JobRepository
from batch.runner import JobService, build_processing_job
from core.config import Settings
from models import Base, PendingRecord, ProcessedRecord, RecordStatus


SAMPLE_RECORDS = [
    ("John Perez Garcia", "john.perez@example.com", "555-0001", RecordStatus.PENDING),
    ("Mary Lopez Rodriguez", "mary.lopez@example.com", "555-0002", RecordStatus.PENDING),
    ("Charles Sanchez Martin", "charles.sanchez@example.com", "555-0003", RecordStatus.PENDING),
    ("Anna Gonzalez Hernandez", "anna.gonzalez@example.com", "555-0004", RecordStatus.PENDING),
    ("Peter Ramirez Diaz", "peter.ramirez@example.com", None, RecordStatus.PENDING),
    ("Laura Fernandez Torres", "laura.fernandez@example.com", "555-0006", RecordStatus.PENDING),
    ("Michael Ruiz Castro", "michael.ruiz@example.com", "555-0007", RecordStatus.INACTIVE),
    ("Carmen Moreno Jimenez", "carmen.moreno@example.com", "555-0008", RecordStatus.PENDING),
    ("Francis Alvarez Romero", "francis.alvarez@example.com", None, RecordStatus.PENDING),
    ("Isabel Munoz Navarro", "isabel.munoz@example.com", "555-0010", RecordStatus.PENDING),
]


def make_settings(**overrides) -> Settings:
    """Settings for tests: no retry backoff, small chunks unless overridden"""
    values = {
        "BATCH_CHUNK_SIZE": 4,
        "BATCH_SKIP_LIMIT": 0,
        "BATCH_RETRY_LIMIT": 0,
        "BATCH_RETRY_BACKOFF_SECONDS": 0.0,
    }
    values.update(overrides)
    return Settings(**values)


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """
    Create test database engine.
    
    Uses TEST_DATABASE_URL when set (e.g. a PostgreSQL test database),
    otherwise a throwaway SQLite file.
    """
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'batch_test.db'}"
    engine = create_async_engine(
        url,
        echo=False,
        poolclass=NullPool,
    )
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    
    yield engine
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def repository(session_factory) -> JobRepository:
    return JobRepository(session_factory)


@pytest.fixture
def seed_records(session_factory):
    """Insert pending records; returns their ids in insertion order"""
    
    async def _seed(records: Optional[list] = None, count: Optional[int] = None) -> List[int]:
        if records is None:
            if count is None:
                records = SAMPLE_RECORDS
            else:
                records = [
                    (f"Person {i}", f"person{i}@example.com", f"555-{i:04d}", RecordStatus.PENDING)
                    for i in range(1, count + 1)
                ]
        rows = [
            PendingRecord.create(name=name, email=email, phone=phone, status=status)
            for name, email, phone, status in records
        ]
        async with session_factory() as session:
            session.add_all(rows)
            await session.commit()
        return [row.id for row in rows]
    
    return _seed


@pytest.fixture
def make_service(session_factory):
    """Build a JobService wired to the test database"""
    
    def _make(processor=None, writer=None, step_listeners=None, job_listeners=None, **settings_overrides):
        config = make_settings(**settings_overrides)
        service = JobService(session_factory, config=config)
        if any(x is not None for x in (processor, writer, step_listeners, job_listeners)):
            job = build_processing_job(
                service.repository,
                session_factory,
                config,
                processor=processor,
                writer=writer,
                step_listeners=step_listeners,
                job_listeners=job_listeners,
            )
            service = JobService(session_factory, config=config, job=job)
        return service
    
    return _make


@pytest.fixture
def fetch_processed(session_factory):
    async def _fetch() -> List[ProcessedRecord]:
        async with session_factory() as session:
            result = await session.execute(select(ProcessedRecord).order_by(ProcessedRecord.source_record_id))
            return list(result.scalars().all())
    
    return _fetch


@pytest.fixture
def fetch_pending(session_factory):
    async def _fetch() -> List[PendingRecord]:
        async with session_factory() as session:
            result = await session.execute(select(PendingRecord).order_by(PendingRecord.id))
            return list(result.scalars().all())
    
    return _fetch
