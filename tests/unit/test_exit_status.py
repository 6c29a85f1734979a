"""
Unit tests for ExitStatus combination
"""

from batch.base import ExitStatus, COMPLETED, FAILED, STOPPED, NOOP, EXECUTING, UNKNOWN, NO_DATA


class TestExitStatus:
    
    def test_more_severe_status_wins(self):
        assert COMPLETED.and_(FAILED).exit_code == "FAILED"
        assert FAILED.and_(COMPLETED).exit_code == "FAILED"
        assert COMPLETED.and_(STOPPED).exit_code == "STOPPED"
        assert EXECUTING.and_(COMPLETED).exit_code == "COMPLETED"
        assert NOOP.and_(COMPLETED).exit_code == "NOOP"
        assert FAILED.and_(UNKNOWN).exit_code == "UNKNOWN"
    
    def test_custom_code_outranks_builtin_codes(self):
        combined = COMPLETED.and_(NO_DATA)
        assert combined.exit_code == "NO_DATA"
        assert combined.exit_description == NO_DATA.exit_description
    
    def test_same_code_merges_descriptions(self):
        combined = FAILED.with_description("first").and_(FAILED.with_description("second"))
        assert combined.exit_code == "FAILED"
        assert "first" in combined.exit_description
        assert "second" in combined.exit_description
    
    def test_and_with_none_keeps_status(self):
        assert COMPLETED.and_(None) == COMPLETED
    
    def test_statuses_are_immutable_values(self):
        assert ExitStatus("COMPLETED") == COMPLETED
        assert COMPLETED.with_description("done") != COMPLETED
        assert COMPLETED.exit_description == ""
