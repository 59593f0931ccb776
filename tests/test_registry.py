"""Tests for connector registry."""

import pytest

from local_ai_hub.connectors import (
    AI_SESSION,
    AI_SESSION_SPEC,
    CHAT_BOT,
    CHAT_BOT_SPEC,
    ConnectorRegistry,
    ConnectorState,
    ConnectorStateMachine,
)
from local_ai_hub.errors import TransportUnavailable
from local_ai_hub.models import AuthMode


def make_registry(backend) -> ConnectorRegistry:
    registry = ConnectorRegistry()
    registry.register(ConnectorStateMachine(CHAT_BOT_SPEC, backend))
    registry.register(ConnectorStateMachine(AI_SESSION_SPEC, backend))
    return registry


class TestConnectorRegistry:
    """Test connector registry operations."""

    def test_register_connector(self, backend):
        """Can register a connector."""
        registry = ConnectorRegistry()
        connector = ConnectorStateMachine(CHAT_BOT_SPEC, backend)

        registry.register(connector)

        assert registry.get(CHAT_BOT) is connector
        assert registry.names() == [CHAT_BOT]

    def test_get_unknown_raises_keyerror(self):
        """Getting unknown connector raises KeyError."""
        registry = ConnectorRegistry()

        with pytest.raises(KeyError):
            registry.get("unknown")

    def test_duplicate_register_raises(self, backend):
        """Registering duplicate id raises ValueError."""
        registry = make_registry(backend)

        with pytest.raises(ValueError):
            registry.register(ConnectorStateMachine(CHAT_BOT_SPEC, backend))

    @pytest.mark.asyncio
    async def test_refresh_all(self, backend):
        """Refreshes every connector and reports per-connector failures."""
        registry = make_registry(backend)
        backend.statuses[CHAT_BOT] = backend.statuses[CHAT_BOT].model_copy(update={"running": True})

        results = await registry.refresh_all()

        assert results == {CHAT_BOT: None, AI_SESSION: None}
        assert registry.get(CHAT_BOT).state is ConnectorState.READY
        assert registry.get(AI_SESSION).state is ConnectorState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_refresh_all_collects_errors(self, backend):
        """A failing refresh is returned, not raised."""
        registry = make_registry(backend)
        backend.fail("connector_status", TransportUnavailable("down"))

        results = await registry.refresh_all()

        assert all(isinstance(e, TransportUnavailable) for e in results.values())

    @pytest.mark.asyncio
    async def test_status_aggregation(self, backend):
        """Overall status reflects how many connectors are ready."""
        registry = make_registry(backend)

        assert registry.status()["status"] == "unhealthy"

        await registry.get(CHAT_BOT).connect()
        status = registry.status()
        assert status["status"] == "degraded"
        assert status["ready_count"] == 1
        assert status["connectors"][CHAT_BOT]["healthy"] is True

        backend.statuses[AI_SESSION] = backend.statuses[AI_SESSION].model_copy(
            update={"auth_mode": AuthMode.CHATGPT}
        )
        await registry.get(AI_SESSION).connect()
        assert registry.status()["status"] == "healthy"
        assert registry.status()["total"] == 2

    def test_empty_registry_is_healthy(self):
        """No connectors means nothing is unhealthy."""
        assert ConnectorRegistry().status()["status"] == "healthy"
