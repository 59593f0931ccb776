"""
Event Channel Listener - Push hints for one open thread.

Subscribes to ``thread.changed`` on the process event bus and calls back
only for the thread it was created for. The payload is never forwarded;
the callback is expected to refetch.
"""

from collections.abc import Callable

import structlog

from ..events import THREAD_CHANGED, Event, EventBus

__all__ = ["EventChannelListener"]

logger = structlog.get_logger(__name__)


class EventChannelListener:
    """Scoped subscription: acquire() subscribes, release() unsubscribes.

    Example:
        with EventChannelListener(bus, "t-1", on_hint=loop.trigger):
            ...
    """

    def __init__(
        self,
        bus: EventBus,
        thread_id: str,
        on_hint: Callable[[], object],
    ) -> None:
        self.bus = bus
        self.thread_id = thread_id
        self.on_hint = on_hint

        self.received = 0
        self.ignored = 0
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def acquire(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.bus.on(self._handle, topic=THREAD_CHANGED)

    def release(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _handle(self, event: Event) -> None:
        if not self.active:
            return
        thread_id = event.data.get("thread_id") or event.data.get("threadId")
        if thread_id != self.thread_id:
            self.ignored += 1
            return
        self.received += 1
        logger.debug("thread_push_hint", thread_id=thread_id, source=event.source)
        self.on_hint()

    def __enter__(self) -> "EventChannelListener":
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
