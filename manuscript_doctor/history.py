"""Bounded linear undo/redo over whole-project snapshots."""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
import copy
import logging

from manuscript_doctor.ir import Project

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 10


@dataclass(frozen=True)
class HistoryEntry:
    """Deep copy of a full project state (never a diff)."""
    project: Project
    label: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def capture(cls, project: Project, label: str = "") -> "HistoryEntry":
        return cls(project=copy.deepcopy(project), label=label)

    def restore(self) -> Project:
        # hand out a copy so the stored entry can never be mutated by a reader
        return copy.deepcopy(self.project)


class VersionHistory:
    """
    Ordered entries plus a cursor.

    Pushing truncates anything after the cursor, then evicts the oldest
    entries beyond `limit`. Undo/redo move the cursor and return the
    snapshot to restore, or None when there is nowhere to go.
    """

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT):
        if limit < 1:
            raise ValueError("history limit must be at least 1")
        self.limit = limit
        self._entries: List[HistoryEntry] = []
        self._cursor = -1

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    @property
    def current(self) -> Optional[HistoryEntry]:
        if self._cursor < 0:
            return None
        return self._entries[self._cursor]

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._entries) - 1

    def push(self, entry: HistoryEntry) -> None:
        self.discard_redo()
        self._entries.append(entry)
        evicted = len(self._entries) - self.limit
        if evicted > 0:
            del self._entries[:evicted]
            logger.debug(f"History full, evicted {evicted} oldest entr{'y' if evicted == 1 else 'ies'}")
        self._cursor = len(self._entries) - 1

    def discard_redo(self) -> None:
        del self._entries[self._cursor + 1:]

    def undo(self) -> Optional[Project]:
        if not self.can_undo:
            return None
        self._cursor -= 1
        return self._entries[self._cursor].restore()

    def redo(self) -> Optional[Project]:
        if not self.can_redo:
            return None
        self._cursor += 1
        return self._entries[self._cursor].restore()

    def clear(self) -> None:
        self._entries.clear()
        self._cursor = -1
