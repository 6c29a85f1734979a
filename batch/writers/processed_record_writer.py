"""
Write processed items and flag their source records, inside the chunk transaction
"""

from typing import List, Optional, Set
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
import logging

from batch.base import ItemWriter, WriteResult
from batch.processors.record_processor import generate_record_code
from models.base import utcnow
from models.pending_record import PendingRecord
from models.processed_record import ProcessedRecord
from schemas.processed import ProcessedRecordCreate

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 5


class ProcessedRecordWriter(ItemWriter[ProcessedRecordCreate]):
    """
    Persist processed items idempotently.
    
    Ensures:
    - At most one ProcessedRecord per source record (re-writes are no-ops)
    - The source record is flagged processed in the same transaction
    - Nothing is committed here; the chunk engine commits or rolls back
    """
    
    async def write(
        self,
        session: AsyncSession,
        items: List[ProcessedRecordCreate],
        job_execution_id: Optional[int] = None,
    ) -> WriteResult:
        result = WriteResult()
        if not items:
            return result
        
        codes_in_chunk: Set[str] = set()
        
        for item in items:
            existing = await session.execute(
                select(ProcessedRecord.id).where(
                    ProcessedRecord.source_record_id == item.source_record_id
                )
            )
            if existing.scalar_one_or_none() is not None:
                logger.info(
                    f"Record {item.source_record_id} already processed, skipping insert"
                )
                result.conflicts.append(item.source_record_id)
            else:
                row = ProcessedRecord.from_item(item, job_execution_id)
                row.record_code = await self._unique_code(session, row.record_code, codes_in_chunk)
                codes_in_chunk.add(row.record_code)
                session.add(row)
                await session.flush()
                result.written += 1
            
            flagged = await session.execute(
                update(PendingRecord)
                .where(PendingRecord.id == item.source_record_id)
                .values(processed=True, updated_at=utcnow())
            )
            if flagged.rowcount == 0:
                logger.warning(
                    f"Source record {item.source_record_id} not found while flagging it processed"
                )
                result.missing_source_ids.append(item.source_record_id)
        
        logger.info(
            f"Chunk written: {result.written} inserted, {len(result.conflicts)} already present, "
            f"{len(result.missing_source_ids)} missing sources"
        )
        return result
    
    async def _unique_code(self, session: AsyncSession, code: str, taken: Set[str]) -> str:
        """Return `code`, or a fresh one if it is already used"""
        for _ in range(MAX_CODE_ATTEMPTS):
            if code not in taken:
                clash = await session.execute(
                    select(ProcessedRecord.id).where(ProcessedRecord.record_code == code)
                )
                if clash.scalar_one_or_none() is None:
                    return code
            logger.warning(f"Record code {code} already in use, generating a new one")
            code = generate_record_code()
        # Let the unique constraint reject it; the chunk is rolled back and retried
        return code
