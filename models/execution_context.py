from sqlalchemy import Column, String, DateTime, BigInteger, UniqueConstraint
from models.base import Base, BigIntPK, JSONType, utcnow


class ExecutionContext(Base):
    """
    Key/value state attached to a job or step execution.
    
    Step contexts hold the reader position and writer anomalies and are
    saved in the same transaction as each chunk, so a restart resumes from
    the last committed chunk. Job contexts hold the run summary.
    """
    __tablename__ = "batch_execution_context"
    
    SCOPE_JOB = "JOB"
    SCOPE_STEP = "STEP"
    
    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    scope = Column(String(10), nullable=False)
    execution_id = Column(BigInteger, nullable=False)
    context = Column(JSONType, nullable=False, default=dict)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    
    __table_args__ = (
        UniqueConstraint("scope", "execution_id", name="uq_execution_context_scope_id"),
    )
