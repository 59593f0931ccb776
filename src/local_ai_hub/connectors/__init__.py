"""
Connectors - Lifecycle management for the chat-bot and AI-session connectors.
"""

from .machine import (
    AI_SESSION,
    AI_SESSION_SPEC,
    CHAT_BOT,
    CHAT_BOT_SPEC,
    ConnectorSpec,
    ConnectorState,
    ConnectorStateMachine,
)
from .poller import StatusPoller, StatusSnapshot
from .registry import ConnectorRegistry

__all__ = [
    "AI_SESSION",
    "AI_SESSION_SPEC",
    "CHAT_BOT",
    "CHAT_BOT_SPEC",
    "ConnectorRegistry",
    "ConnectorSpec",
    "ConnectorState",
    "ConnectorStateMachine",
    "StatusPoller",
    "StatusSnapshot",
]
