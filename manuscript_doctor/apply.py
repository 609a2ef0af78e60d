from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Literal, Tuple
import logging
import re

from manuscript_doctor.editops import Suggestion
from manuscript_doctor.ir import DocumentSet
from manuscript_doctor.store import SuggestionStore
from manuscript_doctor.workspace import Workspace

logger = logging.getLogger(__name__)

ApplyStatus = Literal["applied", "conflict", "missing_target"]


@dataclass
class ApplyResult:
    suggestion_id: str
    status: ApplyStatus
    replacements: int = 0
    message: str = ""

    @property
    def success(self) -> bool:
        return self.status == "applied"


@dataclass
class ApplyAllResult:
    applied: int = 0
    conflicts: int = 0
    missing: int = 0
    results: List[ApplyResult] = field(default_factory=list)

    @property
    def level(self) -> str:
        return "success" if self.applied > 0 else "info"

    @property
    def message(self) -> str:
        if self.applied > 0:
            return f"Applied {self.applied} remaining fixes."
        return "No remaining fixes could be applied."


def replace_anchor(text: str, original: str, suggested: str) -> Tuple[str, int]:
    """
    Literal global replace of `original` inside `text`.

    Regex metacharacters in the anchor are escaped, and the replacement
    is passed through a function so backslashes in `suggested` stay
    literal. An empty anchor never matches.
    """
    if not original:
        return text, 0
    pattern = re.compile(re.escape(original))
    return pattern.subn(lambda m: suggested, text)


def _apply_to_set(documents: DocumentSet, suggestion: Suggestion) -> Tuple[DocumentSet, ApplyResult]:
    doc = documents.get(suggestion.document_id)
    if doc is None:
        return documents, ApplyResult(
            suggestion_id=suggestion.id,
            status="missing_target",
            message=f"Chapter {suggestion.document_id} no longer exists.",
        )
    new_text, count = replace_anchor(doc.text, suggestion.original_text, suggestion.suggested_text)
    if new_text == doc.text:
        return documents, ApplyResult(
            suggestion_id=suggestion.id,
            status="conflict",
            message="Could not find text to replace. It may have been modified already.",
        )
    return documents.replace(doc.with_text(new_text)), ApplyResult(
        suggestion_id=suggestion.id, status="applied", replacements=count,
    )


class SuggestionApplier:
    """Maps stored suggestions onto the live documents of a workspace."""

    def __init__(self, workspace: Workspace, store: SuggestionStore):
        self.workspace = workspace
        self.store = store

    def apply_one(self, suggestion: Suggestion) -> ApplyResult:
        project = self.workspace.project
        documents, result = _apply_to_set(project.documents, suggestion)
        if not result.success:
            logger.warning(f"Suggestion {suggestion.id} not applied ({result.status}): {result.message}")
            return result

        self.store.mark_applied(suggestion.id)
        suggestion.status = "applied"
        self.workspace.commit(project.with_documents(documents), label=f"apply {suggestion.id}")
        logger.info(f"Applied suggestion {suggestion.id} to {suggestion.document_id} ({result.replacements} occurrence(s))")
        return result

    def apply_all_remaining(self) -> ApplyAllResult:
        """
        Best-effort, non-transactional batch apply.

        Each unapplied suggestion is tried against the documents as
        already updated by earlier suggestions in this call. Conflicts and
        missing targets are counted, not reported one by one.
        """
        project = self.workspace.project
        documents = project.documents
        summary = ApplyAllResult()

        for suggestion in self.store.unapplied():
            documents, result = _apply_to_set(documents, suggestion)
            summary.results.append(result)
            if result.status == "applied":
                self.store.mark_applied(suggestion.id)
                summary.applied += 1
            elif result.status == "conflict":
                summary.conflicts += 1
            else:
                summary.missing += 1

        if summary.applied > 0:
            self.workspace.commit(project.with_documents(documents), label=f"apply all ({summary.applied})")
        logger.info(f"{summary.message} ({summary.conflicts} conflicts, {summary.missing} missing chapters)")
        return summary
