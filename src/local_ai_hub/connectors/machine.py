"""
Connector State Machine - Lifecycle of one managed connector.

States:
- UNINITIALIZED: not running (installed, or nothing to install)
- CHECKING: prerequisite probe in progress
- NOT_INSTALLED: local binary missing and it cannot be installed here
- INSTALLABLE: local binary missing, prerequisites present
- INSTALL_FAILED: last install attempt failed
- INSTALLING: install in progress
- CONNECTING: connect issued / process started but not initialized
- READY: running and usable
- NOT_READY: running, sign-in required
- LOGGING_IN: interactive login pending (from READY/NOT_READY)
- ERROR: last connect failed

Transitions:
- connect(): idempotent; from a connected state returns the current status
  without touching the backend
- reconnect(): always stop() then connect()
- stop(): any state → UNINITIALIZED; no-op when known not running

PrerequisiteMissing is the only failure that raises. Every other backend
failure lands in status.last_error and is cleared by the next success.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from ..contracts import BackendProtocol
from ..credentials import CredentialStoreAdapter
from ..errors import HubError, PrerequisiteMissing
from ..models import AuthMode, ConnectorStatus, Doctor, SelfTestResult

__all__ = [
    "AI_SESSION",
    "AI_SESSION_SPEC",
    "CHAT_BOT",
    "CHAT_BOT_SPEC",
    "ConnectorSpec",
    "ConnectorState",
    "ConnectorStateMachine",
]

logger = structlog.get_logger(__name__)

CHAT_BOT = "telegram"
AI_SESSION = "codex"


class ConnectorState(Enum):
    """Connector lifecycle states."""

    UNINITIALIZED = "uninitialized"
    CHECKING = "checking"
    NOT_INSTALLED = "not_installed"
    INSTALLABLE = "installable"
    INSTALL_FAILED = "install_failed"
    INSTALLING = "installing"
    CONNECTING = "connecting"
    READY = "ready"
    NOT_READY = "not_ready"
    LOGGING_IN = "logging_in"
    ERROR = "error"


CONNECTED_STATES = frozenset({
    ConnectorState.READY,
    ConnectorState.NOT_READY,
    ConnectorState.LOGGING_IN,
})

_INSTALL_STATES = frozenset({
    ConnectorState.NOT_INSTALLED,
    ConnectorState.INSTALLABLE,
    ConnectorState.INSTALL_FAILED,
})


@dataclass(frozen=True)
class ConnectorSpec:
    """What a connector needs before and after it runs."""

    id: str
    requires_install: bool = False
    requires_credential: bool = False
    requires_auth: bool = False
    requires_handshake: bool = False


CHAT_BOT_SPEC = ConnectorSpec(CHAT_BOT, requires_credential=True)
AI_SESSION_SPEC = ConnectorSpec(
    AI_SESSION,
    requires_install=True,
    requires_auth=True,
    requires_handshake=True,
)


class ConnectorStateMachine:
    """Owns the lifecycle and last observed status of one connector.

    Lifecycle operations are serialized by a lock. Status observations
    (refresh) carry the version they started at; an observation that
    overlaps a lifecycle operation is dropped instead of clobbering the
    operation's result.

    Example:
        codex = ConnectorStateMachine(AI_SESSION_SPEC, backend)

        await codex.install()
        status = await codex.connect()
        if codex.state is ConnectorState.NOT_READY:
            status = await codex.login(AuthMode.CHATGPT)
            open_browser(status.login_url)
    """

    def __init__(
        self,
        spec: ConnectorSpec,
        backend: BackendProtocol,
        credentials: CredentialStoreAdapter | None = None,
    ) -> None:
        self.spec = spec
        self.backend = backend
        self.credentials = credentials

        self.availability: Doctor | None = None
        self._status: ConnectorStatus | None = None
        self._state = ConnectorState.UNINITIALIZED
        self._version = 0
        self._lock = asyncio.Lock()
        self._logger = logger.bind(connector=spec.id)

    @property
    def id(self) -> str:
        return self.spec.id

    @property
    def state(self) -> ConnectorState:
        return self._state

    @property
    def status(self) -> ConnectorStatus | None:
        """Last observed status, None until the first query."""
        return self._status

    @property
    def last_error(self) -> str | None:
        return self._status.last_error if self._status else None

    @property
    def connected(self) -> bool:
        return self._state in CONNECTED_STATES

    # ─────────────────────────────────────────────────────────────────────
    # Observation
    # ─────────────────────────────────────────────────────────────────────

    async def get_status(self) -> ConnectorStatus:
        """Status, fetched on first use."""
        if self._status is None:
            await self.refresh()
        return self._current()

    async def refresh(self) -> ConnectorStatus | None:
        """Re-read status from the backend.

        Raises:
            TransportUnavailable, BackendOperationError: left to the caller
                (the status poller logs and retries)
        """
        version = self._version
        status = await self.backend.connector_status(self.id)
        if version != self._version or self._lock.locked():
            self._logger.debug("stale_status_dropped")
            return self._status
        self.apply_status(status)
        return status

    def apply_status(self, status: ConnectorStatus) -> None:
        """Adopt an observed status and derive the state from it."""
        self._status = status
        self._set_state(self._derive(status))

    async def check_availability(self) -> Doctor:
        """Probe prerequisites. Does not change state."""
        return await self.backend.connector_doctor(self.id)

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    async def install(self) -> Doctor | None:
        """Install the local binary; a verification no-op when present.

        Returns:
            Doctor after the attempt (last known snapshot on failure)

        Raises:
            PrerequisiteMissing: runtime or package manager absent
        """
        async with self._operation():
            self._set_state(ConnectorState.CHECKING)
            try:
                doctor = await self.check_availability()
            except HubError as e:
                self._fail(e, self._derive(self._current()))
                return self.availability
            self.availability = doctor

            if doctor.local_binary_ok or not self.spec.requires_install:
                self._logger.debug("install_not_needed", version=doctor.local_binary_version)
                self._set_state(self._derive(self._current()))
                return doctor

            missing = doctor.missing_for_install()
            if missing:
                self._set_state(ConnectorState.NOT_INSTALLED)
                raise PrerequisiteMissing(self.id, missing)

            self._set_state(ConnectorState.INSTALLING)
            self._logger.info("install_started")
            try:
                doctor = await self.backend.connector_install(self.id)
            except HubError as e:
                self._fail(e, ConnectorState.INSTALL_FAILED)
                return self.availability

            self.availability = doctor
            if not doctor.local_binary_ok:
                self._fail("Installed but the entry point was not found.", ConnectorState.INSTALL_FAILED)
                return doctor

            self._logger.info("install_finished", version=doctor.local_binary_version)
            self._update(last_error=None)
            self._set_state(self._derive(self._current()))
            return doctor

    async def connect(self) -> ConnectorStatus:
        """Start the connector unless it is already connected.

        Raises:
            PrerequisiteMissing: checked client-side, before any connect call
        """
        async with self._operation():
            if self.connected and self._status is not None and self._status.running:
                self._logger.debug("connect_noop", state=self._state.value)
                return self._status

            self._set_state(ConnectorState.CHECKING)
            try:
                missing = await self._missing_prerequisites()
            except HubError as e:
                self._fail(e, ConnectorState.ERROR)
                return self._current()

            if missing:
                if "local_binary" in missing and self.availability is not None:
                    gated = (
                        ConnectorState.NOT_INSTALLED
                        if self.availability.missing_for_install()
                        else ConnectorState.INSTALLABLE
                    )
                else:
                    gated = ConnectorState.UNINITIALIZED
                self._set_state(gated)
                raise PrerequisiteMissing(self.id, missing)

            self._set_state(ConnectorState.CONNECTING)
            self._logger.info("connect_started")
            try:
                status = await self.backend.connector_connect(self.id)
            except HubError as e:
                self._fail(e, ConnectorState.ERROR)
                return self._current()

            self.apply_status(status)
            self._logger.info("connect_finished", state=self._state.value)
            return status

    async def reconnect(self) -> ConnectorStatus:
        """Stop unconditionally, then connect.

        The only way to recover a wedged process: connect() alone returns
        early while the status still says running.
        """
        await self.stop(force=True)
        return await self.connect()

    async def stop(self, *, force: bool = False) -> ConnectorStatus:
        """Tear down the running process.

        Args:
            force: Issue the stop even when the status says not running
        """
        async with self._operation():
            if not force and self._status is not None and not self._status.running:
                self._logger.debug("stop_noop")
                self._set_state(self._derive(self._status))
                return self._status

            self._logger.info("stop_requested", force=force)
            try:
                await self.backend.connector_stop(self.id)
            except HubError as e:
                self._fail(e)
                return self._current()

            self._update(
                running=False,
                initialized=False,
                last_error=None,
                login_url=None,
                login_id=None,
            )
            self._set_state(ConnectorState.UNINITIALIZED)
            return self._current()

    async def login(self, mode: AuthMode = AuthMode.CHATGPT) -> ConnectorStatus:
        """Start an auth handshake; completion is observed by polling.

        A running process that has not finished its handshake accepts the
        login as is; only a stopped connector is connected first.
        """
        if not self._accepts_login():
            await self.connect()
            if not self._accepts_login():
                return self._current()

        async with self._operation():
            previous = self._state
            self._set_state(ConnectorState.LOGGING_IN)
            self._logger.info("login_started", mode=AuthMode(mode).value)
            try:
                status = await self.backend.connector_login(self.id, AuthMode(mode))
            except HubError as e:
                self._fail(e, previous)
                return self._current()

            self.apply_status(status)
            return status

    async def logout(self) -> ConnectorStatus:
        """Clear stored auth."""
        async with self._operation():
            try:
                await self.backend.connector_logout(self.id)
            except HubError as e:
                self._fail(e)
                return self._current()

            self._update(auth_mode=None, login_url=None, login_id=None, last_error=None)
            self._set_state(self._derive(self._current()))
            self._logger.info("logged_out")
            return self._current()

    async def self_test(self) -> SelfTestResult:
        """Probe the connector end to end (identity check, test message)."""
        try:
            result = await self.backend.connector_self_test(self.id)
        except HubError as e:
            self._logger.warning("self_test_failed", error=str(e))
            return SelfTestResult(ok=False, error=str(e))

        if result.ok and result.identity:
            self._update(identity=result.identity)
        return result

    # ─────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────

    def _operation(self) -> "_Operation":
        return _Operation(self)

    def _accepts_login(self) -> bool:
        if self.connected:
            return True
        return (
            self._state is ConnectorState.CONNECTING
            and self._status is not None
            and self._status.running
        )

    async def _missing_prerequisites(self) -> list[str]:
        missing = []
        if self.spec.requires_install:
            self.availability = await self.check_availability()
            if not self.availability.local_binary_ok:
                missing.append("local_binary")
        if self.spec.requires_credential and self.credentials is not None:
            credential = await self.credentials.status()
            if not credential.stored:
                missing.append("credential")
        return missing

    def _derive(self, status: ConnectorStatus) -> ConnectorState:
        if status.running:
            if status.login_pending:
                return ConnectorState.LOGGING_IN
            if self.spec.requires_handshake and not status.initialized:
                return ConnectorState.CONNECTING
            if self.spec.requires_auth and status.auth_mode is None:
                return ConnectorState.NOT_READY
            return ConnectorState.READY
        if status.last_error:
            return ConnectorState.ERROR
        if self._state in _INSTALL_STATES:
            return self._state
        return ConnectorState.UNINITIALIZED

    def _current(self) -> ConnectorStatus:
        if self._status is None:
            self._status = ConnectorStatus(id=self.id)
        return self._status

    def _update(self, **fields: Any) -> None:
        data = self._current().model_dump()
        data.update(fields)
        self._status = ConnectorStatus.model_validate(data)

    def _fail(self, error: HubError | str, state: ConnectorState | None = None) -> None:
        message = str(error)
        self._logger.warning("connector_operation_failed", error=message, state=self._state.value)
        self._update(last_error=message)
        if state is not None:
            self._set_state(state)

    def _set_state(self, state: ConnectorState) -> None:
        if state is not self._state:
            self._logger.info("connector_state", previous=self._state.value, state=state.value)
            self._state = state

    def describe(self) -> dict[str, Any]:
        """Current connector summary for status views."""
        status = self._current()
        return {
            "name": self.id,
            "state": self._state.value,
            "healthy": self._state is ConnectorState.READY,
            "running": status.running,
            "last_error": status.last_error,
            "login_pending": status.login_pending,
        }


class _Operation:
    """Lock a machine for one lifecycle operation and invalidate observations."""

    __slots__ = ("machine",)

    def __init__(self, machine: ConnectorStateMachine) -> None:
        self.machine = machine

    async def __aenter__(self) -> None:
        await self.machine._lock.acquire()
        self.machine._version += 1

    async def __aexit__(self, *exc_info: object) -> None:
        self.machine._version += 1
        self.machine._lock.release()
