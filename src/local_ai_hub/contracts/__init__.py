"""
Contracts - Protocols the hub depends on.
"""

from .backend import BackendProtocol

__all__ = [
    "BackendProtocol",
]
