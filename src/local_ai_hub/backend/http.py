"""
HTTP Backend - Default implementation of BackendProtocol.

Every command is posted as JSON to ``/invoke/{command}``:

    POST /invoke/connector_status   {"connector_id": "codex"}
    200  {"id": "codex", "running": true, ...}

Error mapping:
- Connection/timeout failures and 503 → TransportUnavailable
- Any other non-2xx → BackendOperationError (message from body "error")
- A 2xx body that is not JSON → BackendOperationError
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from ..errors import BackendOperationError, TransportUnavailable
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

__all__ = ["BackendConfig", "HTTPBackend"]

logger = structlog.get_logger(__name__)

_log_entries = TypeAdapter(list[LogEntry])


@dataclass
class BackendConfig:
    """Configuration for the HTTP backend client."""

    base_url: str
    timeout: float | None = None
    pool_size: int = 4
    headers: dict[str, str] = field(default_factory=dict)

    # Injected transport (tests mount an ASGI app here)
    transport: httpx.AsyncBaseTransport | None = None


class HTTPBackend:
    """Backend command surface over HTTP.

    Implements BackendProtocol.

    Example:
        backend = HTTPBackend(BackendConfig(base_url="http://127.0.0.1:9200"))
        await backend.connect()

        page = await backend.thread_list(limit=40)
    """

    def __init__(self, config: BackendConfig):
        self.config = config
        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Initialize HTTP client."""
        async with self._lock:
            if self._client:
                await self._client.aclose()

            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=httpx.Timeout(self.config.timeout),
                limits=httpx.Limits(
                    max_connections=self.config.pool_size,
                    max_keepalive_connections=self.config.pool_size,
                    keepalive_expiry=30.0,
                ),
                headers=self.config.headers,
                transport=self.config.transport,
            )

    async def disconnect(self) -> None:
        """Close HTTP client."""
        async with self._lock:
            if self._client:
                await self._client.aclose()
                self._client = None

    async def _invoke(self, command: str, **args: Any) -> Any:
        """Post one command and return the decoded JSON result."""
        if not self._client:
            raise TransportUnavailable("not connected")

        try:
            response = await self._client.post(f"/invoke/{command}", json=args)
        except httpx.TimeoutException as e:
            raise TransportUnavailable(f"timeout: {e}") from e
        except httpx.TransportError as e:
            raise TransportUnavailable(f"connection error: {e}") from e

        if response.status_code == 503:
            raise TransportUnavailable(_error_message(response))

        if response.status_code >= 400:
            message = _error_message(response)
            logger.debug("backend_command_failed", command=command, status=response.status_code, error=message)
            raise BackendOperationError(command, message)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BackendOperationError(command, f"malformed response: {e}") from e

    async def _invoke_model(self, model: Any, command: str, **args: Any) -> Any:
        data = await self._invoke(command, **args)
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise BackendOperationError(command, f"malformed response: {e}") from e

    async def ping(self) -> str:
        return str(await self._invoke("ping"))

    async def get_config(self) -> AppConfig:
        return await self._invoke_model(AppConfig, "get_config")

    async def save_config(self, cfg: AppConfig) -> None:
        await self._invoke("save_config", cfg=cfg.model_dump(mode="json"))

    async def credential_status(self) -> Credential:
        return await self._invoke_model(Credential, "credential_status")

    async def credential_set(self, secret: str) -> Credential:
        return await self._invoke_model(Credential, "credential_set", secret=secret)

    async def credential_delete(self) -> None:
        await self._invoke("credential_delete")

    async def connector_status(self, connector_id: str) -> ConnectorStatus:
        return await self._invoke_model(ConnectorStatus, "connector_status", connector_id=connector_id)

    async def connector_connect(self, connector_id: str) -> ConnectorStatus:
        return await self._invoke_model(ConnectorStatus, "connector_connect", connector_id=connector_id)

    async def connector_stop(self, connector_id: str) -> None:
        await self._invoke("connector_stop", connector_id=connector_id)

    async def connector_login(self, connector_id: str, mode: AuthMode) -> ConnectorStatus:
        return await self._invoke_model(
            ConnectorStatus,
            "connector_login",
            connector_id=connector_id,
            mode=AuthMode(mode).value,
        )

    async def connector_logout(self, connector_id: str) -> None:
        await self._invoke("connector_logout", connector_id=connector_id)

    async def connector_doctor(self, connector_id: str) -> Doctor:
        return await self._invoke_model(Doctor, "connector_doctor", connector_id=connector_id)

    async def connector_install(self, connector_id: str) -> Doctor:
        return await self._invoke_model(Doctor, "connector_install", connector_id=connector_id)

    async def connector_self_test(self, connector_id: str) -> SelfTestResult:
        return await self._invoke_model(SelfTestResult, "connector_self_test", connector_id=connector_id)

    async def thread_list(self, limit: int, cursor: str | None = None) -> ThreadPage:
        return await self._invoke_model(ThreadPage, "thread_list", limit=limit, cursor=cursor)

    async def thread_read(self, thread_id: str, max_items: int) -> ThreadDetail:
        return await self._invoke_model(ThreadDetail, "thread_read", thread_id=thread_id, max_items=max_items)

    async def logs_list(self, limit: int) -> list[LogEntry]:
        data = await self._invoke("logs_list", limit=limit)
        try:
            return _log_entries.validate_python(data or [])
        except ValidationError as e:
            raise BackendOperationError("logs_list", f"malformed response: {e}") from e

    async def logs_clear(self) -> None:
        await self._invoke("logs_clear")

    def status(self) -> dict[str, Any]:
        """Current client status."""
        return {
            "base_url": self.config.base_url,
            "connected": self._client is not None,
        }


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.text or f"HTTP {response.status_code}"
