"""
Backend - Clients for the hub's command surface.
"""

from .http import BackendConfig, HTTPBackend

__all__ = [
    "BackendConfig",
    "HTTPBackend",
]
