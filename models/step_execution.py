from sqlalchemy import Column, String, Integer, DateTime, BigInteger, ForeignKey, Index
from models.base import Base, BigIntPK, BatchStatus, BatchStatusType, utcnow


class StepExecution(Base):
    """
    Counters and status for one step of a JobExecution.
    
    Counters are updated in the same transaction as each committed chunk,
    except rollback_count which is persisted after the rollback.
    write_skip_count is kept for layout compatibility; the writer never
    skips items, it fails the whole chunk instead.
    """
    __tablename__ = "batch_step_execution"
    
    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    job_execution_id = Column(BigInteger, ForeignKey("batch_job_execution.id"), nullable=False, index=True)
    step_name = Column(String(100), nullable=False)
    
    status = Column(BatchStatusType, nullable=False, default=BatchStatus.STARTING)
    exit_code = Column(String(50), nullable=False, default="EXECUTING")
    exit_description = Column(String(2500), nullable=True)
    
    read_count = Column(Integer, nullable=False, default=0)
    write_count = Column(Integer, nullable=False, default=0)
    filter_count = Column(Integer, nullable=False, default=0)
    read_skip_count = Column(Integer, nullable=False, default=0)
    process_skip_count = Column(Integer, nullable=False, default=0)
    write_skip_count = Column(Integer, nullable=False, default=0)
    commit_count = Column(Integer, nullable=False, default=0)
    rollback_count = Column(Integer, nullable=False, default=0)
    
    start_time = Column(DateTime, nullable=False, default=utcnow)
    end_time = Column(DateTime, nullable=True)
    last_updated = Column(DateTime, nullable=True)
    
    __table_args__ = (
        Index("idx_step_execution_job_step", "job_execution_id", "step_name"),
    )
    
    COUNTER_FIELDS = (
        "read_count",
        "write_count",
        "filter_count",
        "read_skip_count",
        "process_skip_count",
        "write_skip_count",
        "commit_count",
        "rollback_count",
    )
    
    @property
    def skip_count(self) -> int:
        return self.read_skip_count + self.process_skip_count + self.write_skip_count
    
    def counters(self) -> dict:
        return {name: getattr(self, name) or 0 for name in self.COUNTER_FIELDS}
    
    def __repr__(self) -> str:
        return (
            f"<StepExecution id={self.id} step={self.step_name} status={self.status} "
            f"read={self.read_count} write={self.write_count} filter={self.filter_count}>"
        )
