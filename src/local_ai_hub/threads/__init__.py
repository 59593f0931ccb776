"""
Threads - Conversation list and live conversation view for the AI-session connector.
"""

from .catalog import ThreadCatalog
from .listener import EventChannelListener
from .reconciler import ThreadReconciler

__all__ = [
    "EventChannelListener",
    "ThreadCatalog",
    "ThreadReconciler",
]
