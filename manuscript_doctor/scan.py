from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional
import asyncio
import logging
import time

from manuscript_doctor.analysis import SCAN_KINDS, extract_issues
from manuscript_doctor.ir import DocumentSet
from manuscript_doctor.runtime import CancelToken, ScanInProgressError, call_with_timeout
from manuscript_doctor.workspace import Workspace

logger = logging.getLogger(__name__)

ScanFn = Callable[[str, DocumentSet], Awaitable[Any]]
ScanState = Literal["idle", "running", "succeeded", "failed"]


@dataclass
class KindState:
    state: ScanState = "idle"
    error: Optional[str] = None
    finished_at: Optional[datetime] = None


@dataclass
class ScanOutcome:
    kind: str
    success: bool
    error: Optional[str] = None
    latency_ms: float = 0


class ScanOrchestrator:
    """
    Runs one analysis kind at a time per kind and folds its result into
    the project's AnalysisRecord.

    Only the requested kind's field is replaced; a failed scan leaves the
    record exactly as it was.
    """

    def __init__(self, workspace: Workspace, run_scan: ScanFn, call_timeout: Optional[float] = None):
        self.workspace = workspace
        self.run_scan = run_scan
        self.call_timeout = call_timeout
        self._locks: Dict[str, asyncio.Lock] = {k: asyncio.Lock() for k in SCAN_KINDS}
        self.states: Dict[str, KindState] = {k: KindState() for k in SCAN_KINDS}

    def is_running(self, kind: str) -> bool:
        return self.states[kind].state == "running"

    async def run(self, kind: str, token: Optional[CancelToken] = None) -> ScanOutcome:
        if kind not in SCAN_KINDS:
            raise ValueError(f"Unknown scan kind: {kind}")
        lock = self._locks[kind]
        if lock.locked():
            raise ScanInProgressError(f"A {kind} scan is already running")

        async with lock:
            state = self.states[kind]
            state.state, state.error = "running", None
            logger.info(f"Running {kind} scan over {len(self.workspace.project.documents)} chapters")
            start = time.time()
            try:
                if token is not None:
                    token.raise_if_cancelled()
                result = await call_with_timeout(
                    self.run_scan(kind, self.workspace.project.documents),
                    self.call_timeout,
                    what=f"{kind} scan",
                )
                if token is not None:
                    token.raise_if_cancelled()
            except Exception as e:
                state.state, state.error = "failed", str(e)
                state.finished_at = datetime.now(timezone.utc)
                logger.error(f"{kind} scan failed, keeping previous analysis: {type(e).__name__}: {e}")
                return ScanOutcome(kind=kind, success=False, error=str(e),
                                   latency_ms=(time.time() - start) * 1000)

            # merge into whatever is live now, not the project seen at start
            project = self.workspace.project
            self.workspace.update(project.with_analysis(project.analysis.merge(kind, result)))
            state.state = "succeeded"
            state.finished_at = datetime.now(timezone.utc)
            latency = (time.time() - start) * 1000
            logger.info(f"{kind} scan merged in {latency:.0f}ms")
            return ScanOutcome(kind=kind, success=True, latency_ms=latency)

    def issues(self, kind: str) -> List[str]:
        return extract_issues(self.workspace.project.analysis, kind)
