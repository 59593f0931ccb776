"""
Hub Factory - Creates and wires the connector hub.

Uses the factory pattern for testability: each call builds a fresh hub
with its own registry, catalog and editors. Pollers and thread readers
are handed out per view and owned by whoever acquired them.
"""

from collections.abc import Callable

import structlog

from .backend import BackendConfig, HTTPBackend
from .config import HubConfig
from .connectors import (
    AI_SESSION,
    AI_SESSION_SPEC,
    CHAT_BOT,
    CHAT_BOT_SPEC,
    ConnectorRegistry,
    ConnectorStateMachine,
    StatusPoller,
    StatusSnapshot,
)
from .contracts import BackendProtocol
from .credentials import CredentialStoreAdapter
from .errors import TransportUnavailable
from .events import EventBus, get_event_bus
from .logging import LogBus, get_log_bus
from .models import LogEntry, ThreadDetail
from .settings import ConfigEditor
from .threads import ThreadCatalog, ThreadReconciler

__all__ = ["Hub", "create_hub"]

logger = structlog.get_logger(__name__)


class Hub:
    """Composition root for the connector UI.

    Example:
        async with create_hub() as hub:
            async with hub.status_poller(CHAT_BOT) as poller:
                await hub.chat_bot.connect()
    """

    def __init__(
        self,
        backend: BackendProtocol,
        config: HubConfig | None = None,
        bus: EventBus | None = None,
        log_bus: LogBus | None = None,
    ) -> None:
        self.config = config or HubConfig()
        self.backend = backend
        self.bus = bus or get_event_bus()
        self.log_bus = log_bus or get_log_bus()

        self.credentials = CredentialStoreAdapter(backend)
        self.settings = ConfigEditor(backend)
        self.catalog = ThreadCatalog(backend, page_size=self.config.thread_page_size)

        self.registry = ConnectorRegistry()
        self.registry.register(ConnectorStateMachine(CHAT_BOT_SPEC, backend, self.credentials))
        self.registry.register(ConnectorStateMachine(AI_SESSION_SPEC, backend))

    @property
    def chat_bot(self) -> ConnectorStateMachine:
        return self.registry.get(CHAT_BOT)

    @property
    def ai_session(self) -> ConnectorStateMachine:
        return self.registry.get(AI_SESSION)

    def status_poller(
        self,
        connector_id: str,
        on_update: Callable[[StatusSnapshot], None] | None = None,
    ) -> StatusPoller:
        """New poller for a connector view (not started)."""
        machine = self.registry.get(connector_id)
        return StatusPoller(
            machine,
            credentials=self.credentials if machine.spec.requires_credential else None,
            interval=self.config.status_poll_interval,
            on_update=on_update,
        )

    def thread_reader(
        self,
        on_change: Callable[[ThreadDetail], None] | None = None,
    ) -> ThreadReconciler:
        """New reader for a conversation view (nothing open yet)."""
        return ThreadReconciler(
            self.backend,
            self.bus,
            interval=self.config.thread_poll_interval,
            max_items=self.config.thread_max_items,
            on_change=on_change,
        )

    async def logs(self, limit: int = 200) -> list[LogEntry]:
        """Backend log tail, or this process's own entries when unreachable."""
        try:
            return await self.backend.logs_list(limit)
        except TransportUnavailable:
            return self.log_bus.list(limit)

    async def start(self) -> None:
        """Open the transport and take a first look at every connector."""
        connect = getattr(self.backend, "connect", None)
        if connect is not None:
            await connect()

        results = await self.registry.refresh_all()
        for connector_id, error in results.items():
            if error is not None:
                logger.warning("initial_status_failed", connector=connector_id, error=str(error))

        logger.info("hub_started", connectors=self.registry.names())

    async def shutdown(self) -> None:
        """Close the transport. Connectors keep running in the backend."""
        disconnect = getattr(self.backend, "disconnect", None)
        if disconnect is not None:
            await disconnect()
        logger.info("hub_stopped")

    async def __aenter__(self) -> "Hub":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()


def create_hub(
    config: HubConfig | None = None,
    *,
    backend: BackendProtocol | None = None,
    bus: EventBus | None = None,
) -> Hub:
    """Create a hub.

    Args:
        config: Hub configuration (uses defaults if None)
        backend: Command surface (an HTTPBackend for config.backend_url if None)
        bus: Event bus carrying push hints (process bus if None)

    Returns:
        Hub, not yet started
    """
    if config is None:
        config = HubConfig()

    if backend is None:
        backend = HTTPBackend(BackendConfig(
            base_url=config.backend_url,
            timeout=config.backend_timeout,
            pool_size=config.backend_pool_size,
        ))

    return Hub(backend, config=config, bus=bus)
