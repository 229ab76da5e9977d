"""Fixed-cadence character renderer for streamed answers.

Network chunks arrive in bursts; the typewriter queues their characters
and reveals one per tick so the answer appears at a steady pace.
"""

import asyncio
from collections import deque
from collections.abc import Callable

DEFAULT_INTERVAL = 0.018


class Typewriter:
    """Renders queued characters one per tick.

    Args:
        on_update: Called with the full rendered text after every change.
        interval: Seconds between two rendered characters.
    """

    def __init__(
        self,
        on_update: Callable[[str], None],
        interval: float = DEFAULT_INTERVAL,
    ) -> None:
        self._on_update = on_update
        self.interval = interval
        self._queue: deque[str] = deque()
        self._rendered = ""
        self._task: asyncio.Task | None = None
        self._cancelled = False
        self._drained = asyncio.Event()
        self._drained.set()

    @property
    def rendered(self) -> str:
        return self._rendered

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def target(self) -> str:
        """Rendered text followed by everything still queued."""
        return self._rendered + "".join(self._queue)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def push(self, text: str) -> None:
        """Queue text, starting the ticker if it is idle.

        Ignored once the typewriter has been cancelled.
        """
        if not text or self._cancelled:
            return
        self._queue.extend(text)
        self._drained.clear()
        if not self.is_running:
            self._task = asyncio.get_running_loop().create_task(self._tick())

    def truncate_tail(self, count: int) -> int:
        """Remove ``count`` characters from the end of the message.

        Queued characters go first, then rendered ones.

        Returns:
            Number of characters actually removed.
        """
        if self._cancelled:
            return 0
        removed = 0
        while removed < count and self._queue:
            self._queue.pop()
            removed += 1

        if removed < count and self._rendered:
            cut = min(count - removed, len(self._rendered))
            self._rendered = self._rendered[: len(self._rendered) - cut]
            removed += cut
            self._on_update(self._rendered)

        if not self._queue and not self.is_running:
            self._drained.set()
        return removed

    def cancel(self) -> None:
        """Stop rendering for good and discard whatever is still queued."""
        self._cancelled = True
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._queue.clear()
        self._drained.set()

    async def wait_drained(self) -> None:
        """Wait until every queued character is rendered or discarded."""
        await self._drained.wait()

    async def _tick(self) -> None:
        try:
            while self._queue:
                await asyncio.sleep(self.interval)
                if not self._queue:
                    break
                self._rendered += self._queue.popleft()
                self._on_update(self._rendered)
        finally:
            if not self._queue:
                self._drained.set()
