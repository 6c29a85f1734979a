from sqlalchemy import Column, String, DateTime, BigInteger, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from typing import Any, Dict
import hashlib
import json
from models.base import Base, BigIntPK, JSONType, BatchStatus, BatchStatusType, utcnow


def compute_job_key(parameters: Dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of the identifying parameters"""
    canonical = json.dumps(parameters or {}, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class JobInstance(Base):
    """
    A logical run of a job: one per (job name, identifying parameters).
    
    Every launch attempt for the same parameters creates a new
    JobExecution under the same instance, which is how restarts pick up
    the state of the previous attempt.
    """
    __tablename__ = "batch_job_instance"
    
    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    job_name = Column(String(100), nullable=False)
    job_key = Column(String(64), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    
    __table_args__ = (
        UniqueConstraint("job_name", "job_key", name="uq_job_instance_name_key"),
    )


class JobExecution(Base):
    """
    One attempt to run a JobInstance.
    
    Status moves STARTING -> STARTED -> COMPLETED | FAILED | STOPPED.
    ABANDONED is only reachable through an operator action. At most one
    execution per instance may be in STARTING, STARTED or STOPPING.
    """
    __tablename__ = "batch_job_execution"
    
    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    job_instance_id = Column(BigInteger, ForeignKey("batch_job_instance.id"), nullable=False, index=True)
    job_name = Column(String(100), nullable=False, index=True)
    
    status = Column(BatchStatusType, nullable=False, default=BatchStatus.STARTING, index=True)
    exit_code = Column(String(50), nullable=False, default="UNKNOWN")
    exit_description = Column(String(2500), nullable=True)
    
    create_time = Column(DateTime, nullable=False, default=utcnow)
    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)
    last_updated = Column(DateTime, nullable=True)
    
    parameters = Column(JSONType, nullable=True)
    
    step_executions = relationship(
        "StepExecution",
        lazy="selectin",
        order_by="StepExecution.id",
    )
    
    __table_args__ = (
        Index("idx_job_execution_instance_status", "job_instance_id", "status"),
    )
    
    @property
    def duration_seconds(self):
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return None
    
    def __repr__(self) -> str:
        return f"<JobExecution id={self.id} job={self.job_name} status={self.status}>"
