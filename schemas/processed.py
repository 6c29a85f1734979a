"""
Pydantic schema for items produced by the record processor
"""

from pydantic import BaseModel, Field, validator
from typing import Optional
from datetime import datetime
from models.base import RecordStatus


class ProcessedRecordCreate(BaseModel):
    """
    Output item of the processor, consumed by the writer.
    
    Ensures:
    - Name and email are present after normalization
    - The record code has the REC- prefix
    """
    
    source_record_id: int
    processed_name: str = Field(..., min_length=1, max_length=100)
    processed_email: str = Field(..., min_length=3, max_length=150)
    record_code: str = Field(..., pattern=r"^REC-[0-9A-F]{8}$")
    final_status: RecordStatus
    message: Optional[str] = None
    processed_at: Optional[datetime] = None
    
    @validator("processed_email")
    def lowercase_email(cls, v):
        return v.strip().lower()
