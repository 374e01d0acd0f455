"""Audit logging for configuration changes.

Every mutation the engine performs (field writes, saves, batch operations,
profile create/delete, backup restores) is recorded as one JSON line in
``<data_dir>/audit.log`` through the ``hyprconf.audit`` logger.
"""
import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

# Dedicated audit logger
audit_logger = logging.getLogger("hyprconf.audit")
logger = logging.getLogger(__name__)


@dataclass
class ChangeRecord:
    """Record of a configuration change."""
    timestamp: str
    operation: str  # set_field, save, apply, merge, replace, backup, ...
    target: str     # field path, file path or profile id
    success: bool
    parameters: dict = field(default_factory=dict)
    before: Optional[Any] = None
    after: Optional[Any] = None
    message: str = ""
    error: Optional[str] = None

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(asdict(self), indent=None, default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        """Parse from JSON string."""
        data = json.loads(json_str)
        return cls(**data)


class AuditLog:
    """Append-only change log for one data directory."""

    def __init__(self, data_dir: Path, max_bytes: int = 10 * 1024 * 1024, backup_count: int = 10):
        self.path = Path(data_dir) / "audit.log"
        self.path.parent.mkdir(parents=True, exist_ok=True)

        audit_logger.setLevel(logging.INFO)
        # One active audit file per process
        for handler in list(audit_logger.handlers):
            audit_logger.removeHandler(handler)
            handler.close()

        handler = RotatingFileHandler(
            self.path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        # Use JSON lines for machine-readability
        handler.setFormatter(logging.Formatter("%(message)s"))
        audit_logger.addHandler(handler)

        # Don't propagate to the application logs
        audit_logger.propagate = False

    def log_change(
        self,
        operation: str,
        target: str,
        success: bool,
        parameters: Optional[dict] = None,
        before: Optional[Any] = None,
        after: Optional[Any] = None,
        message: str = "",
        error: Optional[str] = None,
    ) -> ChangeRecord:
        """Log a configuration change.

        Args:
            operation: The operation performed (e.g., "set_field")
            target: What was changed (field path, file, profile id)
            success: Whether the operation succeeded
            parameters: Parameters passed to the operation
            before: Value or state before the change
            after: Value or state after the change
            message: Result message
            error: Error message if failed

        Returns:
            The ChangeRecord that was logged
        """
        record = ChangeRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            operation=operation,
            target=target,
            success=success,
            parameters=parameters or {},
            before=before,
            after=after,
            message=message[:1000] if message else "",  # Truncate long output
            error=error,
        )
        audit_logger.info(record.to_json())
        return record

    def recent_changes(
        self,
        limit: int = 100,
        operation: Optional[str] = None,
    ) -> list[ChangeRecord]:
        """Read recent changes from the audit log.

        Args:
            limit: Maximum number of records to return
            operation: Filter by operation type

        Returns:
            List of ChangeRecords, most recent first
        """
        if not self.path.exists():
            return []

        records = []
        with open(self.path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = ChangeRecord.from_json(line)
                except (json.JSONDecodeError, TypeError) as e:
                    logger.warning(f"Skipping malformed audit line {lineno}: {e}")
                    continue
                if operation and record.operation != operation:
                    continue
                records.append(record)

        return list(reversed(records[-limit:]))
