"""
Connector Registry - Holds the state machine of every managed connector.

The registry provides:
- Connector lookup by id
- Parallel status refresh
- Status aggregation for overview screens

Connectors are owned by the backend and keep running when the hub
shuts down; the registry never stops them.
"""

import asyncio
from typing import Any

from ..errors import HubError
from .machine import ConnectorState, ConnectorStateMachine

__all__ = ["ConnectorRegistry"]


class ConnectorRegistry:
    """Registry for connector state machines.

    Example:
        registry = ConnectorRegistry()
        registry.register(ConnectorStateMachine(AI_SESSION_SPEC, backend))

        codex = registry.get("codex")
        await codex.connect()
    """

    def __init__(self) -> None:
        self._connectors: dict[str, ConnectorStateMachine] = {}

    def register(self, connector: ConnectorStateMachine) -> None:
        """Register a connector.

        Raises:
            ValueError: If connector with same id already registered
        """
        if connector.id in self._connectors:
            raise ValueError(f"Connector already registered: {connector.id}")
        self._connectors[connector.id] = connector

    def get(self, connector_id: str) -> ConnectorStateMachine:
        """Get connector by id.

        Raises:
            KeyError: If connector not found
        """
        if connector_id not in self._connectors:
            raise KeyError(f"Unknown connector: {connector_id}")
        return self._connectors[connector_id]

    def names(self) -> list[str]:
        return list(self._connectors.keys())

    async def refresh_all(self) -> dict[str, Exception | None]:
        """Re-read the status of every connector in parallel.

        Returns:
            Dict mapping connector id to exception (None if success)
        """

        async def refresh_one(
            connector_id: str, connector: ConnectorStateMachine
        ) -> tuple[str, Exception | None]:
            try:
                await connector.refresh()
                return (connector_id, None)
            except HubError as e:
                return (connector_id, e)

        tasks = [refresh_one(n, c) for n, c in self._connectors.items()]
        results_list = await asyncio.gather(*tasks)
        return dict(results_list)

    def status(self) -> dict[str, Any]:
        """Aggregated status of all connectors."""
        connector_status = {
            connector_id: connector.describe()
            for connector_id, connector in self._connectors.items()
        }

        ready = [c for c in self._connectors.values() if c.state is ConnectorState.READY]
        if not connector_status or len(ready) == len(connector_status):
            overall = "healthy"
        elif ready:
            overall = "degraded"
        else:
            overall = "unhealthy"

        return {
            "status": overall,
            "total": len(self._connectors),
            "ready_count": len(ready),
            "connectors": connector_status,
        }
