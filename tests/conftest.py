"""Shared test fixtures."""

import asyncio
import tempfile
from pathlib import Path
from typing import Any

import pytest

from local_ai_hub.config import HubConfig
from local_ai_hub.connectors import AI_SESSION, CHAT_BOT
from local_ai_hub.errors import BackendOperationError
from local_ai_hub.events import init_event_bus
from local_ai_hub.models import (
    AppConfig,
    AuthMode,
    ConnectorStatus,
    Credential,
    Doctor,
    LogEntry,
    SelfTestResult,
    ThreadDetail,
    ThreadPage,
    ThreadSummary,
)


class FakeBackend:
    """In-memory backend command surface.

    Records every call, can fail a command (``fail``) and can hold a
    command until released (``hold``). Return values are captured when
    the call is made, so a held call returns what was current at the time.
    """

    def __init__(self):
        self.calls: list[tuple[str, tuple]] = []
        self.failures: dict[str, Exception] = {}
        self._holds: dict[tuple[str, Any], asyncio.Event] = {}

        self.statuses = {
            CHAT_BOT: ConnectorStatus(id=CHAT_BOT),
            AI_SESSION: ConnectorStatus(id=AI_SESSION),
        }
        self.doctor = Doctor(
            runtime_ok=True,
            runtime_path="/usr/bin/node",
            package_manager_ok=True,
            package_manager_path="/usr/bin/npm",
            local_binary_ok=True,
            local_binary_version="0.46.0",
        )
        self.install_result: Doctor | None = None
        self.credential = Credential(stored=True)
        self.set_result: Credential | None = None
        self.config = AppConfig()
        self.self_test_result = SelfTestResult(ok=True, identity="@hub_bot", sent_probe=True)
        self.threads: list[ThreadSummary] = []
        self.pages: dict[str | None, ThreadPage] | None = None
        self.details: dict[str, ThreadDetail] = {}
        self.logs: list[LogEntry] = []

    # Test controls

    def fail(self, command: str, error: Exception) -> None:
        self.failures[command] = error

    def recover(self, command: str | None = None) -> None:
        if command is None:
            self.failures.clear()
        else:
            self.failures.pop(command, None)

    def hold(self, command: str, key: Any = None) -> asyncio.Event:
        """Block ``command`` (optionally only calls carrying ``key``) until set."""
        event = asyncio.Event()
        self._holds[(command, key)] = event
        return event

    def count(self, command: str) -> int:
        return sum(1 for name, _ in self.calls if name == command)

    def commands(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def _call(self, command: str, *args: Any) -> None:
        self.calls.append((command, args))
        for (name, key), event in list(self._holds.items()):
            if name == command and (key is None or key in args):
                await event.wait()
        error = self.failures.get(command)
        if error is not None:
            raise error

    # Command surface

    async def ping(self) -> str:
        await self._call("ping")
        return "pong"

    async def get_config(self) -> AppConfig:
        cfg = self.config.model_copy(deep=True)
        await self._call("get_config")
        return cfg

    async def save_config(self, cfg: AppConfig) -> None:
        await self._call("save_config", cfg)
        self.config = cfg.model_copy(deep=True)

    async def credential_status(self) -> Credential:
        credential = self.credential.model_copy()
        await self._call("credential_status")
        return credential

    async def credential_set(self, secret: str) -> Credential:
        await self._call("credential_set", secret)
        if self.set_result is not None:
            return self.set_result
        self.credential = self.credential.model_copy(update={"stored": True, "error": None})
        return self.credential

    async def credential_delete(self) -> None:
        await self._call("credential_delete")
        self.credential = self.credential.model_copy(update={"stored": False})

    def _status(self, connector_id: str, **update: Any) -> ConnectorStatus:
        data = self.statuses[connector_id].model_dump()
        data.update(update)
        return ConnectorStatus.model_validate(data)

    async def connector_status(self, connector_id: str) -> ConnectorStatus:
        status = self._status(connector_id)
        await self._call("connector_status", connector_id)
        return status

    async def connector_connect(self, connector_id: str) -> ConnectorStatus:
        await self._call("connector_connect", connector_id)
        status = self._status(connector_id, running=True, initialized=True, last_error=None)
        self.statuses[connector_id] = status
        return status

    async def connector_stop(self, connector_id: str) -> None:
        await self._call("connector_stop", connector_id)
        self.statuses[connector_id] = self._status(
            connector_id, running=False, initialized=False, login_url=None, login_id=None
        )

    async def connector_login(self, connector_id: str, mode: AuthMode) -> ConnectorStatus:
        await self._call("connector_login", connector_id, mode)
        status = self._status(
            connector_id, login_url="https://auth.example.test/device", login_id="login-1"
        )
        self.statuses[connector_id] = status
        return status

    async def connector_logout(self, connector_id: str) -> None:
        await self._call("connector_logout", connector_id)
        self.statuses[connector_id] = self._status(connector_id, auth_mode=None)

    async def connector_doctor(self, connector_id: str) -> Doctor:
        doctor = self.doctor.model_copy()
        await self._call("connector_doctor", connector_id)
        return doctor

    async def connector_install(self, connector_id: str) -> Doctor:
        await self._call("connector_install", connector_id)
        if self.install_result is not None:
            self.doctor = self.install_result
        else:
            self.doctor = self.doctor.model_copy(
                update={"local_binary_ok": True, "local_binary_version": "0.46.0"}
            )
        return self.doctor

    async def connector_self_test(self, connector_id: str) -> SelfTestResult:
        await self._call("connector_self_test", connector_id)
        return self.self_test_result

    async def thread_list(self, limit: int, cursor: str | None = None) -> ThreadPage:
        await self._call("thread_list", limit, cursor)
        if self.pages is not None:
            return self.pages[cursor]
        start = int(cursor) if cursor else 0
        end = start + limit
        next_cursor = str(end) if end < len(self.threads) else None
        return ThreadPage(threads=self.threads[start:end], next_cursor=next_cursor)

    async def thread_read(self, thread_id: str, max_items: int) -> ThreadDetail:
        detail = self.details.get(thread_id)
        detail = detail.model_copy(deep=True) if detail is not None else None
        await self._call("thread_read", thread_id, max_items)
        if detail is None:
            raise BackendOperationError("thread_read", f"thread not found: {thread_id}")
        detail.items = detail.items[-max_items:] if max_items > 0 else []
        return detail

    async def logs_list(self, limit: int) -> list[LogEntry]:
        await self._call("logs_list", limit)
        return list(reversed(self.logs))[:limit]

    async def logs_clear(self) -> None:
        await self._call("logs_clear")
        self.logs.clear()


def _make_threads(count: int, prefix: str = "t") -> list[ThreadSummary]:
    return [
        ThreadSummary(id=f"{prefix}-{i}", title=f"Thread {i}", updated_at=10_000 - i)
        for i in range(count)
    ]


@pytest.fixture
def make_threads():
    """Factory for thread summaries, newest first."""
    return _make_threads


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def config(temp_dir):
    """Create a test configuration with temp directory."""
    return HubConfig(
        backend_url="http://hub.test",
        status_poll_interval=60.0,
        thread_poll_interval=60.0,
        runtime_dir=temp_dir,
    )


@pytest.fixture
def backend():
    """Fresh in-memory backend."""
    return FakeBackend()


@pytest.fixture
def bus():
    """Fresh process event bus."""
    return init_event_bus()
