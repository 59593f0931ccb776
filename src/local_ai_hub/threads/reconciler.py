"""
Thread Reader & Reconciler - Keeps the open conversation current.

Two channels feed one reducer:
- push: ``thread.changed`` for the open thread triggers an immediate
  refetch (only this process emits these)
- poll: a fixed interval re-reads the open thread; the only way to see
  writes made by another process

A fetched detail is applied only when its updatedAt or item count differs
from what is rendered, and only if it belongs to the thread generation
that requested it. Reads go through one IntervalLoop, so at most one read
is outstanding and a slow response can never land after a newer one.
"""

from collections.abc import Callable

import structlog

from ..contracts import BackendProtocol
from ..errors import HubError
from ..events import EventBus, get_event_bus
from ..lifecycle import IntervalLoop
from ..models import ThreadDetail
from .listener import EventChannelListener

__all__ = ["ThreadReconciler"]

logger = structlog.get_logger(__name__)


class ThreadReconciler:
    """Owner of the "currently open thread" view.

    Example:
        reader = ThreadReconciler(backend, interval=1.5, on_change=render)

        async with reader:
            await reader.open_thread("t-1")
            ...
            await reader.open_thread("t-2")   # t-1 channels torn down first
    """

    def __init__(
        self,
        backend: BackendProtocol,
        bus: EventBus | None = None,
        *,
        interval: float = 1.5,
        max_items: int = 200,
        on_change: Callable[[ThreadDetail], None] | None = None,
    ) -> None:
        self.backend = backend
        self.bus = bus or get_event_bus()
        self.interval = interval
        self.max_items = max_items
        self.on_change = on_change

        self.thread_id: str | None = None
        self.detail: ThreadDetail | None = None
        self.error: str | None = None
        self.applied = 0

        self._read_limit = max_items
        self._generation = 0
        self._loop: IntervalLoop | None = None
        self._listener: EventChannelListener | None = None

    @property
    def is_open(self) -> bool:
        return self.thread_id is not None

    @property
    def loop(self) -> IntervalLoop | None:
        return self._loop

    @property
    def listener(self) -> EventChannelListener | None:
        return self._listener

    async def open_thread(self, thread_id: str, max_items: int | None = None) -> ThreadDetail | None:
        """Show ``thread_id``, replacing whatever was open.

        Returns:
            The first detail read, or None if it failed (see ``error``) or
            another thread was opened before it completed
        """
        await self.close()

        self.thread_id = thread_id
        self._read_limit = max_items if max_items is not None else self.max_items
        generation = self._generation

        self._listener = EventChannelListener(self.bus, thread_id, on_hint=self._on_push)
        self._loop = IntervalLoop(self._read_once, self.interval, name=f"thread:{thread_id}")
        loop = self._loop

        logger.debug("thread_opened", thread_id=thread_id)
        try:
            self._listener.acquire()
            await loop.start()
            await loop.drain()
        except BaseException:
            if generation == self._generation:
                await self.close()
            raise

        if generation != self._generation:
            return None
        return self.detail

    async def close(self) -> None:
        """Tear down the push subscription and the poll loop."""
        self._generation += 1

        listener, loop = self._listener, self._loop
        self._listener = None
        self._loop = None

        if listener is not None:
            listener.release()
        if loop is not None:
            await loop.stop()

        if self.thread_id is not None:
            logger.debug("thread_closed", thread_id=self.thread_id)
        self.thread_id = None
        self.detail = None
        self.error = None

    async def refresh(self) -> None:
        """Out-of-band read of the open thread, then wait for it."""
        loop = self._loop
        if loop is None:
            return
        loop.trigger(coalesce=True)
        await loop.drain()

    def reduce(self, generation: int, fresh: ThreadDetail) -> bool:
        """Single writer of ``detail``.

        Returns:
            True if the rendered detail was replaced
        """
        if generation != self._generation or fresh.id != self.thread_id:
            logger.debug("thread_read_dropped", thread_id=fresh.id)
            return False

        self.error = None
        if not fresh.differs_from(self.detail):
            return False

        self.detail = fresh
        self.applied += 1
        if self.on_change is not None:
            self.on_change(fresh)
        return True

    def _on_push(self) -> None:
        if self._loop is not None:
            self._loop.trigger(coalesce=True)

    async def _read_once(self) -> bool:
        thread_id, generation = self.thread_id, self._generation
        if thread_id is None:
            return False

        try:
            fresh = await self.backend.thread_read(thread_id, self._read_limit)
        except HubError as e:
            if generation == self._generation:
                self.error = str(e)
            logger.debug("thread_read_failed", thread_id=thread_id, error=str(e))
            return False

        return self.reduce(generation, fresh)

    async def __aenter__(self) -> "ThreadReconciler":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
