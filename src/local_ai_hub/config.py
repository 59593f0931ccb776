"""
Centralized configuration for Local AI Hub.

Configuration sources (priority order):
1. Environment variables (HUB_*)
2. Default values

Environment variables:
- HUB_BACKEND_URL: Base URL of the backend command surface (default: http://127.0.0.1:9200)
- HUB_BACKEND_TIMEOUT: Request timeout in seconds (default: unset, no timeout)
- HUB_STATUS_POLL_INTERVAL: Status poller interval in seconds (default: 1.0)
- HUB_THREAD_POLL_INTERVAL: Open-thread poll interval in seconds (default: 1.5)
- HUB_THREAD_PAGE_SIZE: Threads per catalog page (default: 40)
- HUB_THREAD_MAX_ITEMS: Max items read per thread (default: 200)
- HUB_LOG_LEVEL: Log level (default: INFO)
- HUB_LOG_BUFFER: In-memory log entries kept for the logs view (default: 1200)
- HUB_RUNTIME_DIR: Runtime directory (default: ~/.local/share/local-ai-hub)
"""

import os
from dataclasses import dataclass
from pathlib import Path

__all__ = ["HubConfig", "config", "DEFAULT_RUNTIME_DIR"]

DEFAULT_RUNTIME_DIR = Path.home() / ".local/share/local-ai-hub"


def _get_env(key: str, default: str) -> str:
    """Get environment variable with HUB_ prefix."""
    return os.environ.get(f"HUB_{key}", default)


def _get_env_int(key: str, default: int) -> int:
    """Get integer environment variable."""
    return int(_get_env(key, str(default)))


def _get_env_float(key: str, default: float) -> float:
    """Get float environment variable."""
    return float(_get_env(key, str(default)))


def _get_env_optional_float(key: str) -> float | None:
    """Get float environment variable, None when unset or empty."""
    val = os.environ.get(f"HUB_{key}")
    return float(val) if val else None


def _get_env_path(key: str, default: Path) -> Path:
    """Get path environment variable."""
    val = os.environ.get(f"HUB_{key}")
    return Path(val) if val else default


@dataclass(frozen=True)
class HubConfig:
    """Immutable hub configuration."""

    backend_url: str = _get_env("BACKEND_URL", "http://127.0.0.1:9200")
    backend_timeout: float | None = _get_env_optional_float("BACKEND_TIMEOUT")
    backend_pool_size: int = 4

    status_poll_interval: float = _get_env_float("STATUS_POLL_INTERVAL", 1.0)
    thread_poll_interval: float = _get_env_float("THREAD_POLL_INTERVAL", 1.5)
    thread_page_size: int = _get_env_int("THREAD_PAGE_SIZE", 40)
    thread_max_items: int = _get_env_int("THREAD_MAX_ITEMS", 200)

    log_level: str = _get_env("LOG_LEVEL", "INFO")
    log_buffer_size: int = _get_env_int("LOG_BUFFER", 1200)

    runtime_dir: Path = _get_env_path("RUNTIME_DIR", DEFAULT_RUNTIME_DIR)

    # Log rotation
    log_max_bytes: int = 5 * 1024 * 1024  # 5MB
    log_backup_count: int = 3

    @property
    def log_dir(self) -> Path:
        """Log directory."""
        return self.runtime_dir / "logs"

    @property
    def log_file(self) -> Path:
        """Log file path."""
        return self.log_dir / "hub.log"

    def ensure_dirs(self) -> None:
        """Create runtime directories if they don't exist."""
        self.runtime_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(exist_ok=True)


# Global singleton
config = HubConfig()
