"""
Local AI Hub - Connector lifecycle and conversation sync for the desktop hub.

Manages the chat-bot and AI-session connectors through the backend command
surface and keeps status, credential and conversation views consistent
across push hints and polling.
"""

from .config import HubConfig, config
from .connectors import (
    AI_SESSION,
    CHAT_BOT,
    ConnectorRegistry,
    ConnectorState,
    ConnectorStateMachine,
    StatusPoller,
)
from .credentials import CredentialStoreAdapter, Persisted, Rejected, TransportError
from .errors import (
    BackendOperationError,
    CredentialPersistFailure,
    HubError,
    PrerequisiteMissing,
    TransportUnavailable,
)
from .hub import Hub, create_hub
from .threads import ThreadCatalog, ThreadReconciler

__version__ = "0.1.0"

__all__ = [
    "AI_SESSION",
    "BackendOperationError",
    "CHAT_BOT",
    "ConnectorRegistry",
    "ConnectorState",
    "ConnectorStateMachine",
    "CredentialPersistFailure",
    "CredentialStoreAdapter",
    "Hub",
    "HubConfig",
    "HubError",
    "Persisted",
    "PrerequisiteMissing",
    "Rejected",
    "StatusPoller",
    "ThreadCatalog",
    "ThreadReconciler",
    "TransportError",
    "TransportUnavailable",
    "config",
    "create_hub",
]
