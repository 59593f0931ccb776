"""
Status Poller - Keeps connector status, config and credential fresh.

Features:
- Immediate fetch on start, then a fixed interval
- At most one tick in flight (late deadlines are skipped)
- Sub-fetches run concurrently; each result is applied on its own
- Backend unavailability keeps the last-known snapshot, never raises
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from ..contracts import BackendProtocol
from ..credentials import CredentialStoreAdapter
from ..errors import TransportUnavailable
from ..lifecycle import IntervalLoop
from ..models import AppConfig, ConnectorStatus, Credential
from .machine import ConnectorStateMachine

__all__ = ["StatusPoller", "StatusSnapshot"]

logger = structlog.get_logger(__name__)


@dataclass
class StatusSnapshot:
    """Last-known values for a connector view."""

    status: ConnectorStatus | None = None
    config: AppConfig | None = None
    credential: Credential | None = None
    failures: dict[str, int] = field(default_factory=dict)


class StatusPoller:
    """Background refresher bound to one connector view.

    Example:
        poller = StatusPoller(telegram, credentials=creds, interval=1.0)

        async with poller:          # mounted
            render(poller.snapshot)

        # Leaving the block cancels the interval and any in-flight tick
    """

    def __init__(
        self,
        machine: ConnectorStateMachine,
        *,
        backend: BackendProtocol | None = None,
        credentials: CredentialStoreAdapter | None = None,
        interval: float = 1.0,
        watch_config: bool = True,
        on_update: Callable[[StatusSnapshot], None] | None = None,
    ) -> None:
        self.machine = machine
        self.backend = backend or machine.backend
        self.credentials = credentials
        self.watch_config = watch_config
        self.on_update = on_update

        self.snapshot = StatusSnapshot(status=machine.status)
        self._loop = IntervalLoop(self.tick, interval, name=f"status:{machine.id}")
        self._logger = logger.bind(connector=machine.id)

    @property
    def running(self) -> bool:
        return self._loop.running

    @property
    def loop(self) -> IntervalLoop:
        return self._loop

    async def start(self) -> None:
        await self._loop.start()

    async def stop(self) -> None:
        await self._loop.stop()

    async def tick(self) -> bool:
        """Fetch everything once and apply what arrived.

        Returns:
            True if the snapshot changed
        """
        fetches = {"status": self.machine.refresh()}
        if self.watch_config:
            fetches["config"] = self.backend.get_config()
        if self.credentials is not None:
            fetches["credential"] = self.credentials.status()

        results = await asyncio.gather(*fetches.values(), return_exceptions=True)

        changed = False
        for key, result in zip(fetches, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                self._record_failure(key, result)
                continue
            self.snapshot.failures[key] = 0
            changed |= self._apply(key, result)

        if changed and self.on_update is not None:
            self.on_update(self.snapshot)
        return changed

    def _apply(self, key: str, value: object) -> bool:
        if key == "status":
            # refresh() may have dropped a stale read; the machine is authoritative
            value = self.machine.status
        if getattr(self.snapshot, key) == value:
            return False
        setattr(self.snapshot, key, value)
        return True

    def _record_failure(self, key: str, error: Exception) -> None:
        count = self.snapshot.failures.get(key, 0) + 1
        self.snapshot.failures[key] = count

        if isinstance(error, TransportUnavailable):
            self._logger.debug("poll_backend_unavailable", part=key, failures=count)
        elif count == 1:
            self._logger.warning("poll_failed", part=key, error=str(error))
        else:
            self._logger.debug("poll_failed", part=key, error=str(error), failures=count)

    async def __aenter__(self) -> "StatusPoller":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
