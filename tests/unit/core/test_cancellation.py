import asyncio
import time

import pytest

from jubilee.core.domain.cancellation import CancellationToken, Deadline, run_guarded
from jubilee.core.domain.errors import CallTimeoutError, CancellationError, RunTimeoutError


async def value_after(delay, value="ok"):
    await asyncio.sleep(delay)
    return value


class TestCancellationToken:
    def test_first_reason_wins(self):
        token = CancellationToken()
        token.cancel("first")
        token.cancel("second")
        assert token.is_cancelled
        assert token.reason == "first"

    def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel("stop")
        with pytest.raises(CancellationError, match="stop"):
            token.raise_if_cancelled()


class TestDeadline:
    def test_no_timeout_never_expires(self):
        deadline = Deadline(None)
        assert deadline.remaining() is None
        deadline.check()

    def test_expired_deadline_raises(self):
        deadline = Deadline(0.000001)
        with pytest.raises(RunTimeoutError):
            time.sleep(0.01)
            deadline.check()


class TestRunGuarded:
    @pytest.mark.asyncio
    async def test_returns_result(self):
        assert await run_guarded(value_after(0), label="call") == "ok"

    @pytest.mark.asyncio
    async def test_call_timeout(self):
        with pytest.raises(CallTimeoutError, match="slow call timed out"):
            await run_guarded(value_after(1), label="slow call", timeout=0.02)

    @pytest.mark.asyncio
    async def test_run_deadline_wins_over_longer_call_timeout(self):
        with pytest.raises(RunTimeoutError):
            await run_guarded(value_after(1), label="call", timeout=5, deadline=Deadline(0.02))

    @pytest.mark.asyncio
    async def test_cancel_while_waiting(self):
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.02, token.cancel, "user stop")

        with pytest.raises(CancellationError, match="user stop"):
            await run_guarded(value_after(1), label="call", token=token)

    @pytest.mark.asyncio
    async def test_already_cancelled_does_not_start_call(self):
        started = []

        async def work():
            started.append(True)
            return "ok"

        token = CancellationToken()
        token.cancel()

        with pytest.raises(CancellationError):
            await run_guarded(work(), label="call", token=token)
        assert started == []
