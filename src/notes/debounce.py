from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Hashable


DEFAULT_DELAY_SECONDS = 1.0

logger = logging.getLogger(__name__)

Action = Callable[[], Awaitable[None]]


class Debouncer:
    """
    Per-key debounced task scheduler on the running asyncio loop.

    - `schedule(key, action)` cancels any pending task for `key` and starts a new
      one that runs `action` after `delay` seconds of quiet.
    - A task is *pending* while it waits; only pending tasks can be cancelled.
      Once its action has started it runs to completion.
    - For one key, actions never overlap: a task whose delay elapsed while the
      previous action for the same key is still running waits for it first.
    - Different keys are independent and may run concurrently.

    Actions are expected to handle their own errors; anything that escapes is
    logged, since a fired task has no caller left to report to.
    """

    def __init__(self, delay: float = DEFAULT_DELAY_SECONDS) -> None:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self._delay = delay
        self._pending: Dict[Hashable, asyncio.Task] = {}
        self._running: Dict[Hashable, asyncio.Task] = {}

    @property
    def delay(self) -> float:
        return self._delay

    def schedule(self, key: Hashable, action: Action) -> asyncio.Task:
        self.cancel(key)
        task = asyncio.get_running_loop().create_task(self._run(key, action))
        self._pending[key] = task
        return task

    def cancel(self, key: Hashable) -> bool:
        """Cancel the pending task for `key`. Returns True if one was cancelled."""
        task = self._pending.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def cancel_all(self) -> None:
        for key in list(self._pending):
            self.cancel(key)

    def is_pending(self, key: Hashable) -> bool:
        task = self._pending.get(key)
        return task is not None and not task.done()

    async def wait(self, key: Hashable) -> None:
        """Wait for the action currently running for `key`, if any."""
        running = self._running.get(key)
        if running is not None and not running.done():
            await asyncio.wait({running})

    async def wait_idle(self) -> None:
        """Wait until every pending and running task has finished."""
        while True:
            tasks = [t for t in (*self._pending.values(), *self._running.values()) if not t.done()]
            if not tasks:
                return
            await asyncio.wait(tasks)

    async def aclose(self) -> None:
        """Cancel pending tasks and let running actions finish."""
        self.cancel_all()
        running = [t for t in self._running.values() if not t.done()]
        if running:
            await asyncio.wait(running)

    async def _run(self, key: Hashable, action: Action) -> None:
        await asyncio.sleep(self._delay)
        previous = self._running.get(key)
        if previous is not None and not previous.done():
            # asyncio.wait does not cancel `previous` if we get cancelled here
            await asyncio.wait({previous})

        me = asyncio.current_task()
        if self._pending.get(key) is me:
            del self._pending[key]
        self._running[key] = me
        try:
            await action()
        except Exception:
            logger.exception(f"Debounced action for {key!r} failed")
        finally:
            if self._running.get(key) is me:
                del self._running[key]


__all__ = [
    "DEFAULT_DELAY_SECONDS",
    "Debouncer",
]
