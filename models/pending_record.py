from sqlalchemy import Column, String, Boolean, DateTime, Index
from typing import Optional
from models.base import Base, BigIntPK, RecordStatus, RecordStatusType, utcnow


class PendingRecord(Base):
    """
    Input records waiting to be processed by the batch job.
    
    Owned by upstream producers. The batch engine only flips `processed`
    to true, in the same transaction that writes the ProcessedRecord.
    A NULL `processed` is treated the same as false.
    """
    __tablename__ = "pending_records"
    
    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    
    name = Column(String(100), nullable=True)
    email = Column(String(150), nullable=True, index=True)
    phone = Column(String(20), nullable=True)
    status = Column(RecordStatusType, nullable=False, default=RecordStatus.PENDING)
    
    processed = Column(Boolean, nullable=True, default=False, index=True)
    
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True)
    
    __table_args__ = (
        Index("idx_pending_unprocessed", "processed", "id"),
    )
    
    @classmethod
    def create(
        cls,
        name: Optional[str],
        email: Optional[str],
        phone: Optional[str] = None,
        status: Optional[RecordStatus] = None,
    ) -> "PendingRecord":
        """Build a new unprocessed record with its defaults filled in"""
        now = utcnow()
        return cls(
            name=name,
            email=email,
            phone=phone,
            status=status or RecordStatus.PENDING,
            processed=False,
            created_at=now,
            updated_at=now,
        )
    
    def __repr__(self) -> str:
        return f"<PendingRecord id={self.id} email={self.email!r} processed={self.processed}>"
