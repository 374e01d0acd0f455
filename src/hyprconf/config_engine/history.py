"""Undo/redo history of the active document.

Each entry is a full copy of the document as it was before a mutation.
Undo trades the active document for the newest entry; redo trades it back.
A new mutation clears the redo side.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .schema import ConfigDocument

logger = logging.getLogger(__name__)


@dataclass
class HistoryEntry:
    """A document state and the change that left it."""
    document: ConfigDocument
    description: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class DocumentHistory:
    """Bounded undo and redo stacks of document copies."""

    def __init__(self, max_history: int = 50):
        """
        Args:
            max_history: Undo entries kept; the oldest is dropped first.
                0 disables the history.
        """
        self.max_history = max_history
        self._undo: list[HistoryEntry] = []
        self._redo: list[HistoryEntry] = []

    def record(self, document: ConfigDocument, description: str = "") -> None:
        """Remember the state before a change."""
        if self.max_history <= 0:
            return
        self._undo.append(HistoryEntry(document.copy(), description))
        if len(self._undo) > self.max_history:
            del self._undo[0]
        self._redo.clear()

    def undo(self, current: ConfigDocument) -> Optional[HistoryEntry]:
        """
        Step back one change.

        Args:
            current: The active document, kept for redo

        Returns:
            The entry to make active, None when there is nothing to undo
        """
        if not self._undo:
            return None
        entry = self._undo.pop()
        self._redo.append(HistoryEntry(current.copy(), entry.description))
        logger.debug(f"Undo '{entry.description}' ({len(self._undo)} left)")
        return entry

    def redo(self, current: ConfigDocument) -> Optional[HistoryEntry]:
        """Step forward again after an undo. None when there is nothing to redo."""
        if not self._redo:
            return None
        entry = self._redo.pop()
        self._undo.append(HistoryEntry(current.copy(), entry.description))
        logger.debug(f"Redo '{entry.description}' ({len(self._redo)} left)")
        return entry

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_description(self) -> Optional[str]:
        return self._undo[-1].description if self._undo else None

    @property
    def redo_description(self) -> Optional[str]:
        return self._redo[-1].description if self._redo else None

    def __len__(self) -> int:
        return len(self._undo)
