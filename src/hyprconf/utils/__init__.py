"""Logging and audit utilities."""
from .audit_log import AuditLog, ChangeRecord
from .logging_config import setup_logging, timed, timed_section

__all__ = ["AuditLog", "ChangeRecord", "setup_logging", "timed", "timed_section"]
