from datetime import datetime, timezone
from sqlalchemy import BigInteger, Integer, JSON, Enum
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import JSONB
import enum

Base = declarative_base()

# BIGINT keys in PostgreSQL, INTEGER on SQLite where only INTEGER PRIMARY KEY autoincrements
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")

# JSONB in PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the naive DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================================
# ENUMS
# ============================================================================

class BatchStatus(str, enum.Enum):
    """Lifecycle status shared by job and step executions"""
    STARTING = "STARTING"
    STARTED = "STARTED"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    ABANDONED = "ABANDONED"
    UNKNOWN = "UNKNOWN"
    
    @property
    def is_running(self) -> bool:
        return self in (BatchStatus.STARTING, BatchStatus.STARTED, BatchStatus.STOPPING)
    
    @property
    def is_terminal(self) -> bool:
        return self in (
            BatchStatus.COMPLETED,
            BatchStatus.FAILED,
            BatchStatus.STOPPED,
            BatchStatus.ABANDONED,
        )


ACTIVE_STATUSES = (BatchStatus.STARTING, BatchStatus.STARTED, BatchStatus.STOPPING)


class RecordStatus(str, enum.Enum):
    """Business status of a pending or processed record"""
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ERROR = "ERROR"
    
    @property
    def description(self) -> str:
        return {
            RecordStatus.PENDING: "Pending processing",
            RecordStatus.ACTIVE: "Active",
            RecordStatus.INACTIVE: "Inactive",
            RecordStatus.ERROR: "Processing error",
        }[self]


# Shared column types so PostgreSQL creates each enum type once
BatchStatusType = Enum(BatchStatus, name="batch_status")
RecordStatusType = Enum(RecordStatus, name="record_status")
