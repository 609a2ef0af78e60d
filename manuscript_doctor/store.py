"""
Suggestion Store

Ordered collection of anchored suggestions fed by a streaming producer,
plus the running/idle state of the global-edit scan that fills it.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Tuple
import logging

from manuscript_doctor.editops import Suggestion, new_suggestion_id, normalize_kind
from manuscript_doctor.ir import DocumentSet
from manuscript_doctor.runtime import CancelToken, OperationCancelled

logger = logging.getLogger(__name__)

ProgressFn = Callable[[str], None]
SuggestionFn = Callable[[Suggestion], None]
StreamProducer = Callable[[DocumentSet, ProgressFn, SuggestionFn], Awaitable[None]]

STATUS_IDLE = "Idle"
STATUS_STARTING = "Initializing scan..."
STATUS_COMPLETE = "Scan complete!"
STATUS_FAILED = "Scan failed."
STATUS_CANCELLED = "Scan cancelled."


class SuggestionStore:
    def __init__(self):
        self._items: List[Suggestion] = []
        self._by_id: Dict[str, Suggestion] = {}

    def __len__(self) -> int:
        return len(self._items)

    @property
    def suggestions(self) -> Tuple[Suggestion, ...]:
        return tuple(self._items)

    def get(self, suggestion_id: str) -> Optional[Suggestion]:
        return self._by_id.get(suggestion_id)

    def append(self, suggestion: Suggestion) -> Suggestion:
        if not suggestion.id or suggestion.id in self._by_id:
            suggestion.id = new_suggestion_id()
        suggestion.status = "unapplied"
        suggestion.kind = normalize_kind(suggestion.kind)
        self._items.append(suggestion)
        self._by_id[suggestion.id] = suggestion
        return suggestion

    def unapplied(self) -> List[Suggestion]:
        return [s for s in self._items if not s.is_applied]

    def mark_applied(self, suggestion_id: str) -> None:
        s = self._by_id.get(suggestion_id)
        if s is not None:
            s.status = "applied"

    def clear(self) -> None:
        self._items.clear()
        self._by_id.clear()

    def resync(self, documents: DocumentSet) -> int:
        """
        Re-derive applied/unapplied from the text actually present.

        Needed after undo/redo, which restores document text without
        touching suggestion status. Returns how many statuses flipped.
        """
        flipped = 0
        for s in self._items:
            doc = documents.get(s.document_id)
            if doc is None:
                continue
            has_original = bool(s.original_text) and s.original_text in doc.text
            has_suggested = bool(s.suggested_text) and s.suggested_text in doc.text
            if s.is_applied and has_original and not has_suggested:
                s.status = "unapplied"
                flipped += 1
            elif not s.is_applied and not has_original and has_suggested:
                s.status = "applied"
                flipped += 1
        if flipped:
            logger.info(f"Resynced {flipped} suggestion status(es) against document text")
        return flipped


@dataclass
class ScanStatus:
    is_running: bool = False
    status_text: str = STATUS_IDLE
    progress: float = 0.0      # raw estimate, may exceed 100
    error: Optional[str] = None

    @property
    def display_progress(self) -> float:
        return max(0.0, min(100.0, self.progress))


class GlobalEditScan:
    """Runs a streaming producer and folds what it finds into a store."""

    def __init__(self, store: SuggestionStore):
        self.store = store
        self.status = ScanStatus()

    async def run(
        self,
        producer: StreamProducer,
        documents: DocumentSet,
        token: Optional[CancelToken] = None,
    ) -> ScanStatus:
        if self.status.is_running:
            logger.info("Global edit scan already running, ignoring request")
            return self.status

        self.store.clear()
        self.status = ScanStatus(is_running=True, status_text=STATUS_STARTING)
        total = max(1, len(documents))

        def on_progress(text: str) -> None:
            if token is not None:
                token.raise_if_cancelled()
            self.status.status_text = text

        def on_suggestion(suggestion: Suggestion) -> None:
            if documents.get(suggestion.document_id) is None:
                logger.warning(f"Suggestion for unknown document {suggestion.document_id} kept; it will not apply")
            self.store.append(suggestion)
            self.status.progress = len(self.store) / total * 100

        try:
            await producer(documents, on_progress, on_suggestion)
            self.status.status_text = STATUS_COMPLETE
            logger.info(f"Global edit scan complete: {len(self.store)} suggestions over {len(documents)} chapters")
        except OperationCancelled:
            self.status.status_text = STATUS_CANCELLED
            logger.info(f"Global edit scan cancelled with {len(self.store)} suggestions kept")
        except Exception as e:
            self.status.status_text = STATUS_FAILED
            self.status.error = str(e)
            logger.error(f"Global edit scan failed after {len(self.store)} suggestions: {type(e).__name__}: {e}")
        finally:
            self.status.is_running = False
        return self.status
