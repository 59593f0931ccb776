"""
Lifecycle - Scoped background work.

Every poller and subscription in the hub is an explicit object with an
acquire/release pair so teardown happens on every exit path.

Example:
    from local_ai_hub.lifecycle import IntervalLoop

    async with IntervalLoop(refresh, interval=1.5, name="thread"):
        ...
"""

from .interval import IntervalLoop

__all__ = [
    "IntervalLoop",
]
