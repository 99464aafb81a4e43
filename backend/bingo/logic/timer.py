"""
Cancelable asyncio timers that drive a room without client input.

RepeatingTimer paces automatic number calls; CountdownTimer ends a host
timeout. Both are idempotently cancelable, and starting either one first
cancels the task it replaces, so a timer object never owns two tasks.
A callback may cancel or restart its own timer: the running task is
detached instead of cancelled and stops at its next check.
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger()


class _TaskTimer:
    def __init__(self) -> None:
        self._task: asyncio.Task[None] | None = None

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        """Cancel the active task. Safe to call repeatedly or from the timer's own callback."""
        task = self._task
        self._task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _owns_current_task(self) -> bool:
        return self._task is not None and self._task is asyncio.current_task()


class RepeatingTimer(_TaskTimer):
    """Invoke a callback every ``interval`` seconds until it returns False or the timer is cancelled."""

    def start(self, interval: float, on_tick: Callable[[], Awaitable[bool]]) -> None:
        self.cancel()
        self._task = asyncio.create_task(self._run(interval, on_tick))

    async def _run(self, interval: float, on_tick: Callable[[], Awaitable[bool]]) -> None:
        try:
            while True:
                await asyncio.sleep(interval)
                if not self._owns_current_task():
                    return
                keep_going = await on_tick()
                if not keep_going or not self._owns_current_task():
                    break
        except asyncio.CancelledError:
            return
        except Exception:
            logger.exception("repeating timer callback failed")
        if self._owns_current_task():
            self._task = None


class CountdownTimer(_TaskTimer):
    """Invoke a callback once after ``seconds``."""

    def start(self, seconds: float, on_expire: Callable[[], Awaitable[None]]) -> None:
        self.cancel()
        self._task = asyncio.create_task(self._run(seconds, on_expire))

    async def _run(self, seconds: float, on_expire: Callable[[], Awaitable[None]]) -> None:
        try:
            await asyncio.sleep(seconds)
            if not self._owns_current_task():
                return
            self._task = None
            await on_expire()
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("countdown timer callback failed")
