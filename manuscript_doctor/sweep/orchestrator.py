"""
Global-Fix Sweep Orchestrator

Rewrites every chapter once against a combined issue instruction:
1. Build the instruction block from the issue list
2. Checkpoint the project before the first chapter that actually changes
3. Rewrite chapters sequentially, publishing each result immediately
4. Pace between chapters to respect the provider's rate limit

A failed chapter is logged and left unchanged; the sweep moves on.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Literal, Optional
import asyncio
import logging
import time

from manuscript_doctor.ir import Project
from manuscript_doctor.llm.prompts import build_rewrite_context
from manuscript_doctor.runtime import (
    CancelToken,
    OperationCancelled,
    PipelineBusyError,
    Sleeper,
    call_with_timeout,
    pace,
)
from manuscript_doctor.sweep.prompts import build_sweep_instructions
from manuscript_doctor.workspace import Workspace

logger = logging.getLogger(__name__)

RewriteFn = Callable[[str, str, str, int], Awaitable[str]]
SweepStatus = Literal["completed", "cancelled", "empty_input"]


@dataclass
class SweepConfig:
    pacing_delay: float = 1.5              # seconds between chapters
    call_timeout: Optional[float] = 300.0  # per rewrite call; None disables


@dataclass
class DocumentOutcome:
    document_id: str
    title: str
    success: bool
    words_before: int = 0
    words_after: int = 0
    error: Optional[str] = None
    latency_ms: float = 0


@dataclass
class SweepResult:
    status: SweepStatus
    issues: List[str] = field(default_factory=list)
    outcomes: List[DocumentOutcome] = field(default_factory=list)
    total_documents: int = 0
    total_time_s: float = 0.0

    @property
    def rewritten(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)


class BatchRewritePipeline:
    """Sequential, cancellable rewrite sweep over a workspace's chapters."""

    def __init__(
        self,
        workspace: Workspace,
        rewrite: RewriteFn,
        config: Optional[SweepConfig] = None,
        context_builder: Callable[[Project], str] = build_rewrite_context,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.workspace = workspace
        self.rewrite = rewrite
        self.config = config or SweepConfig()
        self.context_builder = context_builder
        self._sleep = sleep
        self.is_running = False
        self.percent_complete = 0.0
        self.status_text = ""
        self._checkpoint_label = "sweep"
        self._checkpointed = False

    async def run(
        self,
        issues: List[str],
        token: Optional[CancelToken] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> SweepResult:
        """
        Run one sweep.

        Args:
            issues: Issue descriptions from the active analysis view
            token: Optional cancellation token, checked before each chapter
            progress_callback: Optional callback(completed, total)

        Returns:
            SweepResult with one outcome per attempted chapter
        """
        if self.is_running:
            raise PipelineBusyError("A sweep is already running")

        issues = [i for i in issues if i and i.strip()]
        if not issues:
            self.status_text = "No issues to fix."
            logger.info("Sweep not started: issue list is empty")
            return SweepResult(status="empty_input")

        instructions = build_sweep_instructions(issues)
        doc_ids = self.workspace.project.documents.ids()
        total = len(doc_ids)
        result = SweepResult(status="completed", issues=issues, total_documents=total)
        start_time = time.time()

        self.is_running = True
        self.percent_complete = 0.0
        self._checkpoint_label = f"sweep ({len(issues)} issues)"
        self._checkpointed = False
        logger.info(f"Starting sweep of {total} chapters for {len(issues)} issues")

        try:
            for i, doc_id in enumerate(doc_ids):
                if token is not None and token.cancelled:
                    raise OperationCancelled(token.reason or "cancelled")

                project = self.workspace.project
                doc = project.documents.get(doc_id)
                if doc is None:
                    logger.warning(f"Chapter {doc_id} vanished mid-sweep, skipping")
                else:
                    self.status_text = f"Rewriting {doc.title} ({i + 1}/{total})..."
                    outcome = await self._rewrite_one(doc_id, project, instructions)
                    result.outcomes.append(outcome)

                self.percent_complete = (i + 1) / total * 100
                if progress_callback:
                    progress_callback(i + 1, total)

                if i < total - 1:
                    await pace(self.config.pacing_delay, token, self._sleep)

        except OperationCancelled as e:
            result.status = "cancelled"
            logger.info(f"Sweep cancelled after {len(result.outcomes)}/{total} chapters: {e}")
        finally:
            self.is_running = False
            result.total_time_s = time.time() - start_time

        if result.status == "completed":
            self.percent_complete = 100.0
        self.status_text = (
            f"Sweep {result.status}: {result.rewritten} rewritten, {result.failed} failed"
        )
        logger.info(self.status_text)
        return result

    async def _rewrite_one(self, doc_id: str, project: Project, instructions: str) -> DocumentOutcome:
        doc = project.documents.get(doc_id)
        start = time.time()
        try:
            new_text = await call_with_timeout(
                self.rewrite(doc.text, instructions, self.context_builder(project), doc.word_count),
                self.config.call_timeout,
                what=f"rewrite of {doc.title}",
            )
        except Exception as e:
            logger.error(f"Failed to rewrite chapter {doc.title}: {type(e).__name__}: {e}")
            return DocumentOutcome(
                document_id=doc.id,
                title=doc.title,
                success=False,
                words_before=doc.word_count,
                words_after=doc.word_count,
                error=str(e),
                latency_ms=(time.time() - start) * 1000,
            )

        if not new_text or not new_text.strip():
            new_text = doc.text
        updated = doc
        if new_text != doc.text:
            if not self._checkpointed:
                # first real change of this sweep; the whole sweep undoes as one step
                self.workspace.checkpoint(label=self._checkpoint_label)
                self._checkpointed = True
            updated = doc.with_text(new_text)
            self.workspace.replace_document(updated)
        return DocumentOutcome(
            document_id=doc.id,
            title=doc.title,
            success=True,
            words_before=doc.word_count,
            words_after=updated.word_count,
            latency_ms=(time.time() - start) * 1000,
        )
