"""
Event Bus - Process-local async pub/sub.

Carries change hints between components living in the same process
(e.g. the chat-bot connector appending to a conversation). Events are
hints only: subscribers refetch instead of trusting the payload, so
at-least-once delivery is fine.

Usage:
    # Emit events
    await bus.emit("backend", "thread.changed", {"thread_id": "t-1"})

    # Subscribe with patterns
    bus.on(handler, topic="thread.*")           # wildcard
    bus.on(handler, source="backend")           # filter by source
    bus.on(handler)                             # receive all
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from datetime import datetime
from fnmatch import fnmatch
from typing import Any

import structlog

__all__ = [
    "THREAD_CHANGED",
    "Event",
    "EventBus",
    "Handler",
    "Subscription",
    "emit",
    "get_event_bus",
    "init_event_bus",
    "thread_changed",
    "thread_changed_fire_and_forget",
]

logger = structlog.get_logger(__name__)

THREAD_CHANGED = "thread.changed"

Handler = Callable[["Event"], Any | Coroutine[Any, Any, Any]]


@dataclass(slots=True, frozen=True)
class Event:
    """Immutable event envelope.

    Attributes:
        source: Origin identifier ("backend", connector id)
        topic: What happened ("thread.changed")
        data: Payload
        ts: Timestamp (auto-set)
    """
    source: str
    topic: str
    data: dict = field(default_factory=dict)
    ts: float = field(default_factory=lambda: datetime.now().timestamp())


@dataclass(slots=True)
class Subscription:
    """Single subscription with filters."""
    handler: Handler
    source: str = "*"
    topic: str = "*"

    def matches(self, event: Event) -> bool:
        if not fnmatch(event.source, self.source):
            return False
        return fnmatch(event.topic, self.topic)


class EventBus:
    """Async event bus with pattern-based subscriptions.

    Handlers run concurrently; a failing handler is logged and never
    affects the emitter or other handlers.
    """

    __slots__ = ("_subs", "_logger")

    def __init__(self) -> None:
        self._subs: list[Subscription] = []
        self._logger = logger.bind(component="event_bus")

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)

    def on(
        self,
        handler: Handler,
        *,
        source: str = "*",
        topic: str = "*",
    ) -> Callable[[], None]:
        """Subscribe to events matching filters.

        Returns:
            Unsubscribe function (safe to call more than once)
        """
        sub = Subscription(handler, source, topic)
        self._subs.append(sub)
        return lambda: self._subs.remove(sub) if sub in self._subs else None

    async def emit(self, source: str, topic: str, data: dict | None = None) -> None:
        """Emit an event to all matching subscribers."""
        event = Event(source, topic, data or {})

        handlers = [s.handler for s in self._subs if s.matches(event)]
        if not handlers:
            return

        async def run_handler(h: Handler) -> None:
            try:
                result = h(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                self._logger.error(
                    "handler_error",
                    source=event.source,
                    topic=event.topic,
                    error=str(e),
                )

        await asyncio.gather(*[run_handler(h) for h in handlers])

    def emit_sync(self, source: str, topic: str, data: dict | None = None) -> None:
        """Fire-and-forget emit for sync contexts."""
        try:
            loop = asyncio.get_running_loop()
            loop.create_task(self.emit(source, topic, data))
        except RuntimeError:
            # No event loop - nobody can be listening
            pass


# ─────────────────────────────────────────────────────────────────────────────
# Global singleton
# ─────────────────────────────────────────────────────────────────────────────

_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get or create the process event bus."""
    global _bus
    if _bus is None:
        _bus = EventBus()
    return _bus


def init_event_bus() -> EventBus:
    """Initialize fresh event bus (for testing)."""
    global _bus
    _bus = EventBus()
    return _bus


# ─────────────────────────────────────────────────────────────────────────────
# Functional helpers
# ─────────────────────────────────────────────────────────────────────────────

async def emit(source: str, topic: str, data: dict | None = None) -> None:
    """Emit event to the process bus."""
    await get_event_bus().emit(source, topic, data)


async def thread_changed(thread_id: str, source: str = "backend") -> None:
    """Announce that a conversation changed in this process.

    Usage:
        await thread_changed(thread_id)
    """
    await emit(source, THREAD_CHANGED, {"thread_id": thread_id})


def thread_changed_fire_and_forget(thread_id: str, source: str = "backend") -> None:
    """thread_changed() for sync contexts."""
    get_event_bus().emit_sync(source, THREAD_CHANGED, {"thread_id": thread_id})
