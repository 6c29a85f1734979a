"""
Reader over the pending_records table
"""

from typing import Any, Dict, List, Optional
from sqlalchemy import select, or_
from sqlalchemy.exc import OperationalError, InterfaceError
import asyncio
import logging

from batch.base import ItemReader
from core.exceptions import StoreUnavailableError
from models.pending_record import PendingRecord

logger = logging.getLogger(__name__)


class PendingRecordReader(ItemReader[PendingRecord]):
    """
    Yields unprocessed PendingRecords in ascending id order.
    
    The working set is loaded once, on the first read, in a short-lived
    session of its own (outside any chunk transaction). Records flagged
    while the execution runs are not seen again; records inserted after
    the load are picked up by the next execution.
    
    Calls to `read` and `reset` are serialized, so concurrent callers never
    receive the same record.
    """
    
    CONTEXT_KEY = "pending_record_reader.last_id"
    
    def __init__(self, session_factory):
        self.session_factory = session_factory
        self._lock = asyncio.Lock()
        self._records: Optional[List[PendingRecord]] = None
        self._position = 0
        self._restart_after_id: Optional[int] = None
        self._last_read_id: Optional[int] = None
    
    async def open(self, context: Dict[str, Any]) -> None:
        last_id = (context or {}).get(self.CONTEXT_KEY)
        async with self._lock:
            self._restart_after_id = int(last_id) if last_id is not None else None
            self._last_read_id = self._restart_after_id
        if last_id is not None:
            logger.info(f"Reader resuming after record id {last_id}")
    
    async def read(self) -> Optional[PendingRecord]:
        async with self._lock:
            if self._records is None:
                self._records = await self._load()
                self._position = 0
            
            if self._position >= len(self._records):
                return None
            
            record = self._records[self._position]
            self._position += 1
            self._last_read_id = record.id
            return record
    
    async def update(self, context: Dict[str, Any]) -> None:
        if self._last_read_id is not None:
            context[self.CONTEXT_KEY] = self._last_read_id
    
    async def reset(self) -> None:
        """Forget the working set so the next read reloads from the table"""
        async with self._lock:
            self._records = None
            self._position = 0
            self._restart_after_id = None
            self._last_read_id = None
        logger.debug("Reader state reset")
    
    async def close(self) -> None:
        async with self._lock:
            self._records = None
            self._position = 0
    
    async def _load(self) -> List[PendingRecord]:
        query = select(PendingRecord).where(
            or_(PendingRecord.processed.is_(False), PendingRecord.processed.is_(None))
        )
        if self._restart_after_id is not None:
            query = query.where(PendingRecord.id > self._restart_after_id)
        query = query.order_by(PendingRecord.id.asc())
        
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                records = list(result.scalars().all())
        except (OperationalError, InterfaceError) as e:
            raise StoreUnavailableError(
                "Could not load pending records",
                context={"operation": "read_pending_records"},
                original_exception=e,
            )
        
        logger.info(f"Loaded {len(records)} pending records")
        return records
