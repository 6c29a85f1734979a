import argparse
import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from sqlalchemy import select, func
from core.database import engine, async_session_maker
from core.logging import setup_logging
from models import Base, PendingRecord, RecordStatus

logger = logging.getLogger(__name__)

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


async def init_database(seed: bool = False, drop: bool = False):
    logger.info("Connecting to database...")
    
    async with engine.begin() as conn:
        if drop:
            logger.warning("Dropping existing tables...")
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Creating tables...")
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Tables created successfully.")
    
    if seed:
        async with async_session_maker() as session:
            existing = await session.scalar(select(func.count(PendingRecord.id)))
            if existing:
                logger.info(f"pending_records already has {existing} rows, skipping seed")
            else:
                session.add_all([
                    PendingRecord.create(name=name, email=email, phone=phone, status=status)
                    for name, email, phone, status in SAMPLE_RECORDS
                ])
                await session.commit()
                logger.info(f"Inserted {len(SAMPLE_RECORDS)} sample pending records")
    
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the batch and record tables")
    parser.add_argument("--seed", action="store_true", help="Insert sample pending records")
    parser.add_argument("--drop", action="store_true", help="Drop all tables first")
    args = parser.parse_args()
    
    setup_logging()
    asyncio.run(init_database(seed=args.seed, drop=args.drop))
