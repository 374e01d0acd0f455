"""Tests for the audit log."""
import pytest

from hyprconf.utils.audit_log import AuditLog, ChangeRecord


class TestAuditLog:
    """Tests for AuditLog."""

    @pytest.fixture
    def audit(self, tmp_path):
        return AuditLog(tmp_path)

    def test_log_change_writes_json_line(self, audit):
        """Each change is one JSON line."""
        record = audit.log_change("set_field", "general:border_size", True, before="2", after="3")
        lines = audit.path.read_text().splitlines()
        assert len(lines) == 1
        assert ChangeRecord.from_json(lines[0]) == record

    def test_recent_changes_newest_first(self, audit):
        """recent_changes returns the latest records first."""
        audit.log_change("save", "a", True)
        audit.log_change("save", "b", True)
        audit.log_change("save", "c", True)
        assert [r.target for r in audit.recent_changes(limit=2)] == ["c", "b"]

    def test_filter_by_operation(self, audit):
        """Records can be filtered by operation."""
        audit.log_change("save", "file", True)
        audit.log_change("set_field", "general:border_size", False, error="refused")
        records = audit.recent_changes(operation="set_field")
        assert len(records) == 1
        assert records[0].success is False
        assert records[0].error == "refused"

    def test_malformed_lines_skipped(self, audit):
        """Garbage in the file does not break reading."""
        audit.log_change("save", "file", True)
        with open(audit.path, "a", encoding="utf-8") as f:
            f.write("not json\n")
        assert len(audit.recent_changes()) == 1

    def test_long_messages_truncated(self, audit):
        """Messages are capped at 1000 characters."""
        record = audit.log_change("save", "file", True, message="x" * 5000)
        assert len(record.message) == 1000

    def test_empty_log(self, tmp_path):
        """A fresh log has no records."""
        audit = AuditLog(tmp_path / "fresh")
        assert audit.recent_changes() == []
