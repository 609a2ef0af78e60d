from __future__ import annotations
from typing import Callable, List, Optional
import logging

from manuscript_doctor.history import HistoryEntry, VersionHistory, DEFAULT_HISTORY_LIMIT
from manuscript_doctor.ir import Document, Project

logger = logging.getLogger(__name__)

Observer = Callable[[Project], None]


class Workspace:
    """
    Single owner of the live project.

    Mutating components hand finished Project values to `commit` or
    `update`; observers only ever see published immutable values.
    `checkpoint` records the pre-mutation state in history. Any published
    change, checkpointed or not, leaves the live project "ahead" of
    history until the next undo or redo.
    """

    def __init__(self, project: Project, history_limit: int = DEFAULT_HISTORY_LIMIT):
        self._project = project
        self.history = VersionHistory(history_limit)
        self._observers: List[Observer] = []
        self._ahead = False

    @property
    def project(self) -> Project:
        return self._project

    @property
    def can_undo(self) -> bool:
        return (self._ahead and len(self.history) > 0) or self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return not self._ahead and self.history.can_redo

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def _publish(self) -> None:
        for observer in list(self._observers):
            observer(self._project)

    def checkpoint(self, label: str = "") -> None:
        """Capture the current live state before it is mutated."""
        if self._ahead or len(self.history) == 0:
            self.history.push(HistoryEntry.capture(self._project, label))
        else:
            # live state already sits at the cursor; only the redo tail is stale
            self.history.discard_redo()
        self._ahead = True

    def update(self, project: Project) -> None:
        if project is not self._project:
            # live state no longer matches the history cursor
            self._ahead = True
        self._project = project
        self._publish()

    def _restore(self, project: Project) -> None:
        self._project = project
        self._ahead = False
        self._publish()

    def commit(self, project: Project, label: str = "") -> None:
        self.checkpoint(label)
        self.update(project)

    def replace_document(self, document: Document) -> None:
        self.update(self._project.with_documents(self._project.documents.replace(document)))

    def undo(self) -> bool:
        if self._ahead and len(self.history) > 0:
            # keep the live tip so redo can come back to it
            self.history.push(HistoryEntry.capture(self._project, "tip"))
            self._ahead = False
        restored: Optional[Project] = self.history.undo()
        if restored is None:
            return False
        logger.info(f"Undo -> history position {self.history.cursor}")
        self._restore(restored)
        return True

    def redo(self) -> bool:
        if self._ahead:
            return False
        restored = self.history.redo()
        if restored is None:
            return False
        logger.info(f"Redo -> history position {self.history.cursor}")
        self._restore(restored)
        return True
