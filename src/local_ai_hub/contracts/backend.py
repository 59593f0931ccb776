"""
Backend Protocol - Contract for the command surface the hub drives.

Every command is a request/response coroutine. Implementations translate
their own transport failures into TransportUnavailable and backend-reported
failures into BackendOperationError; callers never see transport-specific
exceptions.
"""

from typing import Protocol, runtime_checkable

from ..models import (
    AppConfig,
    AuthMode,
    ConnectorStatus,
    Credential,
    Doctor,
    LogEntry,
    SelfTestResult,
    ThreadDetail,
    ThreadPage,
)


@runtime_checkable
class BackendProtocol(Protocol):
    """Contract for the backend command surface.

    Example:
        backend = HTTPBackend(BackendConfig(base_url="http://127.0.0.1:9200"))
        await backend.connect()

        status = await backend.connector_status("codex")
    """

    async def ping(self) -> str:
        """Cheap reachability probe."""
        ...

    # Config document

    async def get_config(self) -> AppConfig:
        """Read the whole persisted configuration document."""
        ...

    async def save_config(self, cfg: AppConfig) -> None:
        """Replace the whole persisted configuration document."""
        ...

    # Credential store

    async def credential_status(self) -> Credential:
        ...

    async def credential_set(self, secret: str) -> Credential:
        """Store a secret.

        Returns:
            Credential as read back after the write. stored=False means the
            secret was not persisted even though the call itself succeeded.
        """
        ...

    async def credential_delete(self) -> None:
        ...

    # Connectors

    async def connector_status(self, connector_id: str) -> ConnectorStatus:
        ...

    async def connector_connect(self, connector_id: str) -> ConnectorStatus:
        ...

    async def connector_stop(self, connector_id: str) -> None:
        ...

    async def connector_login(self, connector_id: str, mode: AuthMode) -> ConnectorStatus:
        """Start an auth handshake. Returns immediately, possibly with login_url."""
        ...

    async def connector_logout(self, connector_id: str) -> None:
        ...

    async def connector_doctor(self, connector_id: str) -> Doctor:
        ...

    async def connector_install(self, connector_id: str) -> Doctor:
        ...

    async def connector_self_test(self, connector_id: str) -> SelfTestResult:
        ...

    # Threads (AI-session connector)

    async def thread_list(self, limit: int, cursor: str | None = None) -> ThreadPage:
        ...

    async def thread_read(self, thread_id: str, max_items: int) -> ThreadDetail:
        ...

    # Logs

    async def logs_list(self, limit: int) -> list[LogEntry]:
        """Most recent backend log entries, newest first."""
        ...

    async def logs_clear(self) -> None:
        ...
