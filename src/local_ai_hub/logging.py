"""
Structured logging for Local AI Hub.

Features:
- structlog event-style logging for every module
- In-memory LogBus ring buffer backing the logs view
- JSON-formatted rotating log file (5MB max, 3 backups)
- Async file writes via QueueHandler (non-blocking I/O)
"""

import atexit
import logging
import logging.handlers
import queue
import sys
import threading
import time
from collections import deque
from typing import Any

import structlog

from .config import HubConfig
from .models import LogEntry, LogLevel

__all__ = ["LogBus", "configure_logging", "get_log_bus"]

_LEVELS = {
    "debug": LogLevel.INFO,
    "info": LogLevel.INFO,
    "warning": LogLevel.WARN,
    "warn": LogLevel.WARN,
    "error": LogLevel.ERROR,
    "exception": LogLevel.ERROR,
    "critical": LogLevel.ERROR,
}


class LogBus:
    """Bounded buffer of recent log entries.

    Also usable as a structlog processor: every event that passes
    through is recorded, then handed on unchanged.

    Example:
        bus = LogBus(capacity=1200)
        bus.push(LogLevel.INFO, "codex", "connected")
        bus.list(50)   # newest first
    """

    MIN_CAPACITY = 50

    def __init__(self, capacity: int = 1200) -> None:
        self.capacity = max(capacity, self.MIN_CAPACITY)
        self._buf: deque[LogEntry] = deque(maxlen=self.capacity)
        self._lock = threading.Lock()

    def push(self, level: LogLevel, source: str, msg: str) -> None:
        entry = LogEntry(
            ts_unix_ms=int(time.time() * 1000),
            level=level,
            source=source,
            msg=msg,
        )
        with self._lock:
            self._buf.append(entry)

    def list(self, limit: int) -> list[LogEntry]:
        """Most recent entries first, at least one when non-empty."""
        with self._lock:
            lim = max(1, min(limit, len(self._buf)))
            return list(reversed(self._buf))[:lim]

    def clear(self) -> None:
        with self._lock:
            self._buf.clear()

    def __len__(self) -> int:
        return len(self._buf)

    def __call__(self, logger: Any, method_name: str, event_dict: dict) -> dict:
        level = _LEVELS.get(method_name, LogLevel.INFO)
        source = str(event_dict.get("connector") or event_dict.get("logger") or "hub")
        context = " ".join(
            f"{k}={v}"
            for k, v in event_dict.items()
            if k not in ("event", "timestamp", "level", "logger", "connector")
        )
        msg = str(event_dict.get("event", ""))
        self.push(level, source, f"{msg} {context}".strip())
        return event_dict


_log_bus: LogBus | None = None
_queue_listener: logging.handlers.QueueListener | None = None


def get_log_bus() -> LogBus:
    """Get or create the process log buffer."""
    global _log_bus
    if _log_bus is None:
        _log_bus = LogBus()
    return _log_bus


def configure_logging(config: HubConfig, *, to_file: bool = True) -> LogBus:
    """Configure structlog for the hub.

    Console output is human-readable; the optional log file receives one
    JSON object per line through a background queue.

    Returns:
        The LogBus receiving every log event
    """
    global _log_bus, _queue_listener

    _log_bus = LogBus(config.log_buffer_size)
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    root = logging.getLogger("local_ai_hub")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(colors=False),
    ))
    root.addHandler(console)

    if to_file:
        _attach_file_handler(root, config)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _log_bus,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
    return _log_bus


def _attach_file_handler(root: logging.Logger, config: HubConfig) -> None:
    global _queue_listener

    try:
        config.ensure_dirs()
        file_handler = logging.handlers.RotatingFileHandler(
            str(config.log_file),
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
        )
    except OSError:
        return  # Skip file logging if not writable

    file_handler.setFormatter(logging.Formatter("%(message)s"))

    if _queue_listener:
        _queue_listener.stop()

    # The queue handler renders JSON before enqueueing; the file handler
    # only writes the finished line.
    log_queue: queue.Queue = queue.Queue(-1)
    queue_handler = logging.handlers.QueueHandler(log_queue)
    queue_handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
    ))
    root.addHandler(queue_handler)
    _queue_listener = logging.handlers.QueueListener(
        log_queue, file_handler, respect_handler_level=True
    )
    _queue_listener.start()
    atexit.register(_shutdown)


def _shutdown() -> None:
    """Stop the queue listener on shutdown."""
    global _queue_listener
    if _queue_listener:
        _queue_listener.stop()
        _queue_listener = None
