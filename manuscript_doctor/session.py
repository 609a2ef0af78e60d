from __future__ import annotations
from typing import Optional

from manuscript_doctor.apply import ApplyAllResult, ApplyResult, SuggestionApplier
from manuscript_doctor.editops import Suggestion
from manuscript_doctor.runtime import CancelToken
from manuscript_doctor.store import GlobalEditScan, ScanStatus, StreamProducer, SuggestionStore
from manuscript_doctor.workspace import Workspace


class GlobalEditSession:
    """Global-edit review flow: stream suggestions, apply them, undo/redo."""

    def __init__(self, workspace: Workspace, producer: StreamProducer):
        self.workspace = workspace
        self.producer = producer
        self.store = SuggestionStore()
        self.scan = GlobalEditScan(self.store)
        self.applier = SuggestionApplier(workspace, self.store)

    async def run_scan(self, token: Optional[CancelToken] = None) -> ScanStatus:
        return await self.scan.run(self.producer, self.workspace.project.documents, token)

    def apply(self, suggestion: Suggestion) -> ApplyResult:
        return self.applier.apply_one(suggestion)

    def apply_all(self) -> ApplyAllResult:
        return self.applier.apply_all_remaining()

    def undo(self) -> bool:
        changed = self.workspace.undo()
        if changed:
            self.store.resync(self.workspace.project.documents)
        return changed

    def redo(self) -> bool:
        changed = self.workspace.redo()
        if changed:
            self.store.resync(self.workspace.project.documents)
        return changed
