"""
Validate and normalize pending records into processed items
"""

from typing import Dict, Optional
from datetime import datetime
import logging
import re
import uuid

from batch.base import ItemProcessor
from models.base import RecordStatus, utcnow
from models.pending_record import PendingRecord
from schemas.processed import ProcessedRecordCreate

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
RECORD_CODE_PREFIX = "REC-"


def validate_record(record: PendingRecord) -> Dict[str, str]:
    """
    Check the fields a record needs before it can be processed.
    
    Returns:
        Mapping of field name to error message; empty when the record is valid
    """
    errors: Dict[str, str] = {}
    
    if not record.name or not record.name.strip():
        errors["name"] = "name is required"
    
    email = (record.email or "").strip()
    if not email:
        errors["email"] = "email is required"
    elif not EMAIL_PATTERN.match(email):
        errors["email"] = f"email has an invalid format: {email!r}"
    
    return errors


def transform_name(name: str) -> str:
    """Trim, collapse internal whitespace and upper-case"""
    return " ".join(name.split()).upper()


def normalize_email(email: str) -> str:
    return email.strip().lower()


def generate_record_code() -> str:
    """REC- followed by 8 upper-case hex characters"""
    return RECORD_CODE_PREFIX + uuid.uuid4().hex[:8].upper()


def determine_final_status(record: PendingRecord) -> RecordStatus:
    if record.status == RecordStatus.INACTIVE:
        return RecordStatus.INACTIVE
    if record.email and record.email.strip():
        return RecordStatus.ACTIVE
    return RecordStatus.PENDING


def build_message(record: PendingRecord, final_status: RecordStatus, processed_at: datetime) -> str:
    parts = [f"Processed correctly. Final status: {final_status.description}."]
    if not record.phone or not record.phone.strip():
        parts.append("Record has no phone.")
    parts.append(f"Processed at {processed_at.isoformat(timespec='seconds')}.")
    return " ".join(parts)


class RecordProcessor(ItemProcessor[PendingRecord, ProcessedRecordCreate]):
    """
    Turns a PendingRecord into a ProcessedRecordCreate.
    
    Invalid records are filtered (None is returned) rather than raised, so
    they count towards filter_count and never fail the chunk.
    """
    
    async def process(self, record: PendingRecord) -> Optional[ProcessedRecordCreate]:
        errors = validate_record(record)
        if errors:
            logger.warning(f"Filtering record {record.id}: {errors}")
            return None
        
        processed_at = utcnow()
        final_status = determine_final_status(record)
        
        item = ProcessedRecordCreate(
            source_record_id=record.id,
            processed_name=transform_name(record.name),
            processed_email=normalize_email(record.email),
            record_code=generate_record_code(),
            final_status=final_status,
            message=build_message(record, final_status, processed_at),
            processed_at=processed_at,
        )
        
        logger.debug(f"Processed record {record.id} -> {item.record_code} ({final_status.value})")
        return item
