from sqlalchemy import Column, String, Text, DateTime, BigInteger, Index
from models.base import Base, BigIntPK, RecordStatusType, utcnow


class ProcessedRecord(Base):
    """
    Output of the batch job: one row per successfully processed PendingRecord.
    
    Design Decisions:
    - source_record_id is a plain reference, not a foreign key, so the
      pending table can be cleaned up independently
    - the unique constraint on source_record_id keeps writes idempotent
      when a chunk is retried or a job is restarted
    """
    __tablename__ = "processed_records"
    
    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    
    source_record_id = Column(BigInteger, nullable=False, unique=True, index=True)
    
    processed_name = Column(String(100), nullable=False)
    processed_email = Column(String(150), nullable=False)
    record_code = Column(String(20), nullable=False, unique=True)
    final_status = Column(RecordStatusType, nullable=False)
    
    job_execution_id = Column(BigInteger, nullable=True, index=True)
    processed_at = Column(DateTime, nullable=False, default=utcnow)
    message = Column(Text, nullable=True)
    
    __table_args__ = (
        Index("idx_processed_execution", "job_execution_id", "processed_at"),
    )
    
    @classmethod
    def from_item(cls, item, job_execution_id=None) -> "ProcessedRecord":
        """Build the ORM row from a ProcessedRecordCreate"""
        return cls(
            source_record_id=item.source_record_id,
            processed_name=item.processed_name,
            processed_email=item.processed_email,
            record_code=item.record_code,
            final_status=item.final_status,
            job_execution_id=job_execution_id,
            processed_at=item.processed_at or utcnow(),
            message=item.message,
        )
    
    def __repr__(self) -> str:
        return f"<ProcessedRecord source={self.source_record_id} code={self.record_code}>"
