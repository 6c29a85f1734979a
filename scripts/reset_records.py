"""
Delete processed records and mark every pending record unprocessed again.

Batch metadata is kept unless --metadata is given.
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from sqlalchemy import delete, update
from core.database import engine, async_session_maker
from core.logging import setup_logging
from models import (
    PendingRecord,
    ProcessedRecord,
    JobInstance,
    JobExecution,
    StepExecution,
    ExecutionContext,
)
from models.base import utcnow

logger = logging.getLogger(__name__)


async def reset_records(include_metadata: bool = False):
    async with async_session_maker() as session:
        async with session.begin():
            deleted = await session.execute(delete(ProcessedRecord))
            reset = await session.execute(
                update(PendingRecord).values(processed=False, updated_at=utcnow())
            )
            logger.info(f"Deleted {deleted.rowcount} processed records, reset {reset.rowcount} pending records")
            
            if include_metadata:
                for model in (ExecutionContext, StepExecution, JobExecution, JobInstance):
                    await session.execute(delete(model))
                logger.info("Batch execution metadata cleared")
    
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--metadata", action="store_true", help="Also clear job/step execution history")
    args = parser.parse_args()
    
    setup_logging()
    asyncio.run(reset_records(include_metadata=args.metadata))
