"""
Cooperative cancellation and deadlines for agent runs.

Every awaited model and tool call goes through ``run_guarded()``, which races
the call against the run's cancellation token, the per-call timeout and the
total-run deadline.
"""

import asyncio
import time
from typing import Any, Awaitable, Optional

from jubilee.core.domain.errors import CallTimeoutError, CancellationError, RunTimeoutError


class CancellationToken:
    """Signal shared between a caller and the runs it started."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = "cancelled"

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancellationError(self._reason)


class Deadline:
    """Total-run deadline measured on the monotonic clock."""

    def __init__(self, timeout_seconds: Optional[float]):
        self.timeout_seconds = timeout_seconds
        self._expires_at = (
            time.monotonic() + timeout_seconds if timeout_seconds else None
        )

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return self._expires_at - time.monotonic()

    def check(self) -> None:
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise RunTimeoutError(self.timeout_seconds)


async def run_guarded(
    awaitable: Awaitable[Any],
    *,
    label: str,
    timeout: Optional[float] = None,
    token: Optional[CancellationToken] = None,
    deadline: Optional[Deadline] = None,
) -> Any:
    """
    Await ``awaitable`` unless cancellation, the call timeout or the run
    deadline comes first.

    Raises:
        CancellationError: token was cancelled while waiting
        RunTimeoutError: the run deadline passed
        CallTimeoutError: the per-call timeout passed
    """
    try:
        if token:
            token.raise_if_cancelled()
        if deadline:
            deadline.check()
    except CancellationError:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        elif isinstance(awaitable, asyncio.Future):
            awaitable.cancel()
        raise

    run_remaining = deadline.remaining() if deadline else None
    limits = [t for t in (timeout, run_remaining) if t is not None]
    effective = min(limits) if limits else None

    task = asyncio.ensure_future(awaitable)
    waiters: set[asyncio.Future[Any]] = {task}
    cancel_waiter: Optional[asyncio.Future[Any]] = None
    if token:
        cancel_waiter = asyncio.ensure_future(token.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(
            waiters, timeout=effective, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        if cancel_waiter is not None:
            cancel_waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    if token and token.is_cancelled:
        raise CancellationError(token.reason)
    if deadline:
        deadline.check()
        if run_remaining is not None and (timeout is None or run_remaining <= timeout):
            raise RunTimeoutError(deadline.timeout_seconds)
    raise CallTimeoutError(label, timeout if timeout is not None else effective or 0)
