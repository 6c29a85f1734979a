"""
Unit tests for the pending record reader
"""

import asyncio
import pytest
from sqlalchemy import update
from batch.readers.pending_record_reader import PendingRecordReader
from models.pending_record import PendingRecord


async def drain(reader):
    ids = []
    while True:
        record = await reader.read()
        if record is None:
            return ids
        ids.append(record.id)


class TestPendingRecordReader:
    
    @pytest.mark.asyncio
    async def test_reads_unprocessed_records_in_id_order(self, session_factory, seed_records):
        ids = await seed_records(count=5)
        reader = PendingRecordReader(session_factory)
        
        assert await drain(reader) == sorted(ids)
    
    @pytest.mark.asyncio
    async def test_end_of_data_is_sticky(self, session_factory, seed_records):
        await seed_records(count=1)
        reader = PendingRecordReader(session_factory)
        
        assert await reader.read() is not None
        assert await reader.read() is None
        assert await reader.read() is None
    
    @pytest.mark.asyncio
    async def test_skips_processed_and_includes_null_flag(self, session_factory, seed_records):
        ids = await seed_records(count=4)
        async with session_factory() as session:
            await session.execute(update(PendingRecord).where(PendingRecord.id == ids[0]).values(processed=True))
            await session.execute(update(PendingRecord).where(PendingRecord.id == ids[1]).values(processed=None))
            await session.commit()
        
        reader = PendingRecordReader(session_factory)
        
        assert await drain(reader) == ids[1:]
    
    @pytest.mark.asyncio
    async def test_empty_table(self, session_factory):
        reader = PendingRecordReader(session_factory)
        assert await reader.read() is None
    
    @pytest.mark.asyncio
    async def test_working_set_is_loaded_once(self, session_factory, seed_records):
        await seed_records(count=2)
        reader = PendingRecordReader(session_factory)
        
        first = await reader.read()
        await seed_records(count=3)
        remaining = await drain(reader)
        
        assert first is not None
        assert len(remaining) == 1
    
    @pytest.mark.asyncio
    async def test_reset_reloads_from_table(self, session_factory, seed_records):
        ids = await seed_records(count=3)
        reader = PendingRecordReader(session_factory)
        assert await drain(reader) == ids
        
        await reader.reset()
        
        assert await drain(reader) == ids
    
    @pytest.mark.asyncio
    async def test_concurrent_reads_never_duplicate(self, session_factory, seed_records):
        ids = await seed_records(count=20)
        reader = PendingRecordReader(session_factory)
        
        results = await asyncio.gather(*(reader.read() for _ in range(25)))
        read_ids = [r.id for r in results if r is not None]
        
        assert sorted(read_ids) == sorted(ids)
        assert len(set(read_ids)) == len(read_ids)
        assert results.count(None) == 5
    
    @pytest.mark.asyncio
    async def test_open_resumes_after_saved_position(self, session_factory, seed_records):
        ids = await seed_records(count=6)
        reader = PendingRecordReader(session_factory)
        
        await reader.open({PendingRecordReader.CONTEXT_KEY: ids[2]})
        
        assert await drain(reader) == ids[3:]
    
    @pytest.mark.asyncio
    async def test_update_writes_last_read_id(self, session_factory, seed_records):
        ids = await seed_records(count=3)
        reader = PendingRecordReader(session_factory)
        context = {}
        
        await reader.update(context)
        assert context == {}
        
        await reader.read()
        await reader.read()
        await reader.update(context)
        
        assert context[PendingRecordReader.CONTEXT_KEY] == ids[1]
