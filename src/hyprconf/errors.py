"""Error taxonomy shared by every hyprconf component.

Components raise these; ``ConfigEngine`` converts them into ``EngineResult``
records for the caller. ``ParseWarning`` is a record rather than an exception
because malformed statements are skipped, not fatal.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class HyprconfError(Exception):
    """Base class for all hyprconf errors."""
    pass


class ValidationError(HyprconfError):
    """A raw input was rejected for a field or structured entry."""

    def __init__(self, path: str, reason: str, raw: Optional[str] = None):
        self.path = path
        self.reason = reason
        self.raw = raw
        super().__init__(f"Invalid value for '{path}': {reason}")


class ChannelError(HyprconfError):
    """Base class for control channel failures."""
    pass


class ChannelUnavailable(ChannelError):
    """The control channel cannot be reached (no binary, no running session)."""
    pass


class ChannelWriteFailed(ChannelError):
    """A write request was refused or the command exited non-zero."""

    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"'{command}' failed: {reason}")


class ChannelReplyError(ChannelError):
    """A query reply could not be decoded for the requested field."""
    pass


class StorageError(HyprconfError):
    """Profile or config file could not be read or written."""

    def __init__(self, message: str, path: Optional[Path] = None):
        self.path = path
        super().__init__(message)


class UnsupportedConstruct(HyprconfError):
    """Module text uses syntax outside the subset the generator emits."""

    def __init__(self, message: str, line: int = 0, snippet: str = ""):
        self.line = line
        self.snippet = snippet
        where = f" (line {line})" if line else ""
        super().__init__(f"Unsupported for import{where}: {message}")


class SettingsError(HyprconfError):
    """Engine settings file is unreadable or malformed."""
    pass


@dataclass
class ParseWarning:
    """A statement that was skipped while parsing native config text."""
    line: int
    text: str
    reason: str

    def __str__(self) -> str:
        return f"line {self.line}: {self.reason} ({self.text.strip()!r})"
