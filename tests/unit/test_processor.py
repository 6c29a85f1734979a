"""
Unit tests for the record processor
"""

import re
import pytest
from batch.processors.record_processor import (
    RecordProcessor,
    validate_record,
    transform_name,
    normalize_email,
    generate_record_code,
    determine_final_status,
    build_message,
)
from models.base import RecordStatus, utcnow
from models.pending_record import PendingRecord


def make_record(id=1, name="Jane Doe", email="jane@example.com", phone="555-0100", status=RecordStatus.PENDING):
    record = PendingRecord.create(name=name, email=email, phone=phone, status=status)
    record.id = id
    return record


class TestValidation:
    """Field validation before processing"""
    
    def test_valid_record_has_no_errors(self):
        assert validate_record(make_record()) == {}
    
    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_blank_name_is_rejected(self, name):
        errors = validate_record(make_record(name=name))
        assert "name" in errors
    
    @pytest.mark.parametrize("email", [None, "", "  "])
    def test_blank_email_is_rejected(self, email):
        errors = validate_record(make_record(email=email))
        assert errors["email"] == "email is required"
    
    @pytest.mark.parametrize("email", ["not-an-email", "a@b", "two words@example.com"])
    def test_malformed_email_is_rejected(self, email):
        errors = validate_record(make_record(email=email))
        assert "invalid format" in errors["email"]
    
    def test_missing_phone_is_allowed(self):
        assert validate_record(make_record(phone=None)) == {}


class TestNormalization:
    
    def test_transform_name_trims_collapses_and_uppercases(self):
        assert transform_name("  jane   van  doe ") == "JANE VAN DOE"
    
    def test_normalize_email(self):
        assert normalize_email("  Jane.Doe@Example.COM ") == "jane.doe@example.com"
    
    def test_record_code_format(self):
        code = generate_record_code()
        assert re.fullmatch(r"REC-[0-9A-F]{8}", code)
    
    def test_record_codes_differ(self):
        codes = {generate_record_code() for _ in range(50)}
        assert len(codes) == 50
    
    def test_inactive_status_is_preserved(self):
        assert determine_final_status(make_record(status=RecordStatus.INACTIVE)) == RecordStatus.INACTIVE
    
    def test_record_with_email_becomes_active(self):
        assert determine_final_status(make_record()) == RecordStatus.ACTIVE
    
    def test_record_without_email_stays_pending(self):
        assert determine_final_status(make_record(email=None)) == RecordStatus.PENDING
    
    def test_message_mentions_missing_phone(self):
        message = build_message(make_record(phone=None), RecordStatus.ACTIVE, utcnow())
        assert "Final status: Active." in message
        assert "no phone" in message
    
    def test_message_without_phone_note(self):
        message = build_message(make_record(), RecordStatus.INACTIVE, utcnow())
        assert "Final status: Inactive." in message
        assert "no phone" not in message


class TestRecordProcessor:
    
    @pytest.mark.asyncio
    async def test_process_valid_record(self):
        item = await RecordProcessor().process(
            make_record(id=7, name=" jane  doe ", email=" Jane@Example.com ")
        )
        
        assert item is not None
        assert item.source_record_id == 7
        assert item.processed_name == "JANE DOE"
        assert item.processed_email == "jane@example.com"
        assert item.final_status == RecordStatus.ACTIVE
        assert item.record_code.startswith("REC-")
        assert item.processed_at is not None
    
    @pytest.mark.asyncio
    async def test_invalid_record_is_filtered(self):
        assert await RecordProcessor().process(make_record(email="")) is None
    
    @pytest.mark.asyncio
    async def test_inactive_record_keeps_status(self):
        item = await RecordProcessor().process(make_record(status=RecordStatus.INACTIVE))
        assert item.final_status == RecordStatus.INACTIVE
