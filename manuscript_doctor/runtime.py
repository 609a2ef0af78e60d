"""
Cooperative-runtime helpers shared by the sweep and the scans:
cancellation tokens, per-call timeouts and pacing delays.
"""
from __future__ import annotations
from typing import Awaitable, Callable, Optional, TypeVar
import asyncio
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]


class ExternalCallTimeout(Exception):
    """An external call did not answer within its time budget."""


class OperationCancelled(Exception):
    """Raised at a suspension point once the token has been cancelled."""


class PipelineBusyError(RuntimeError):
    pass


class ScanInProgressError(RuntimeError):
    pass


class CancelToken:
    """Flag checked at every suspension point of a long-running operation."""

    def __init__(self):
        self._cancelled = False
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._cancelled:
            logger.info(f"Cancellation requested: {reason}")
        self._cancelled = True
        self.reason = reason

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise OperationCancelled(self.reason or "cancelled")


async def call_with_timeout(
    call: Awaitable[T],
    timeout: Optional[float],
    what: str = "external call",
) -> T:
    """Await `call`, converting a hang into ExternalCallTimeout."""
    if timeout is None or timeout <= 0:
        return await call
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError:
        raise ExternalCallTimeout(f"{what} timed out after {timeout:.1f}s")


async def pace(
    delay: float,
    token: Optional[CancelToken] = None,
    sleep: Sleeper = asyncio.sleep,
) -> None:
    """Wait out the pacing delay, then re-check cancellation."""
    if delay > 0:
        await sleep(delay)
    if token is not None:
        token.raise_if_cancelled()
