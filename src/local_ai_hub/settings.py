"""
Config Editor - Whole-document edits of the persisted configuration.

The backend only accepts the full document, so every change is
read-modify-write: fetch the current document, change one field, save
the whole thing back.
"""

from collections.abc import Callable

import structlog

from .contracts import BackendProtocol
from .errors import HubError
from .models import AppConfig, CredentialMode

__all__ = ["ConfigEditor"]

logger = structlog.get_logger(__name__)


class ConfigEditor:
    """Settings panel model.

    Failures are kept in ``error`` (cleared on the next success) and the
    method returns None, so the panel can show them inline.

    Example:
        editor = ConfigEditor(backend)
        await editor.load()
        await editor.allow_chat(123456789)
    """

    def __init__(self, backend: BackendProtocol) -> None:
        self.backend = backend
        self.config: AppConfig | None = None
        self.error: str | None = None

    async def load(self) -> AppConfig | None:
        try:
            self.config = await self.backend.get_config()
        except HubError as e:
            self._record_error("load", e)
            return None
        self.error = None
        return self.config

    async def save(self, cfg: AppConfig) -> AppConfig | None:
        """Replace the whole document."""
        try:
            await self.backend.save_config(cfg)
        except HubError as e:
            self._record_error("save", e)
            return None
        self.config = cfg
        self.error = None
        logger.info("config_saved")
        return cfg

    async def update(self, change: Callable[[AppConfig], None]) -> AppConfig | None:
        """Fetch the latest document, apply ``change`` to a copy, save it."""
        current = await self.load()
        if current is None:
            return None
        updated = current.model_copy(deep=True)
        change(updated)
        return await self.save(updated)

    async def allow_chat(self, chat_id: int) -> AppConfig | None:
        def change(cfg: AppConfig) -> None:
            if chat_id not in cfg.telegram.allowed_chat_ids:
                cfg.telegram.allowed_chat_ids.append(chat_id)
        return await self.update(change)

    async def disallow_chat(self, chat_id: int) -> AppConfig | None:
        def change(cfg: AppConfig) -> None:
            cfg.telegram.allowed_chat_ids = [c for c in cfg.telegram.allowed_chat_ids if c != chat_id]
        return await self.update(change)

    async def set_poll_timeout(self, seconds: int) -> AppConfig | None:
        def change(cfg: AppConfig) -> None:
            cfg.telegram.poll_timeout_sec = max(1, min(int(seconds), 60))
        return await self.update(change)

    async def set_token_storage(self, mode: CredentialMode) -> AppConfig | None:
        def change(cfg: AppConfig) -> None:
            cfg.telegram.token_storage = CredentialMode(mode)
        return await self.update(change)

    async def set_workspace(self, path: str | None) -> AppConfig | None:
        def change(cfg: AppConfig) -> None:
            cfg.codex.workspace_dir = path.strip() if path and path.strip() else None
        return await self.update(change)

    async def set_instructions(self, text: str, fallback_only: bool) -> AppConfig | None:
        def change(cfg: AppConfig) -> None:
            cfg.codex.universal_instructions = text
            cfg.codex.universal_fallback_only = fallback_only
        return await self.update(change)

    async def set_shared_history(self, enabled: bool) -> AppConfig | None:
        def change(cfg: AppConfig) -> None:
            cfg.codex.shared_history = enabled
        return await self.update(change)

    async def set_language(self, language: str | None) -> AppConfig | None:
        def change(cfg: AppConfig) -> None:
            cfg.ui.language = language or None
        return await self.update(change)

    def _record_error(self, action: str, error: HubError) -> None:
        self.error = str(error)
        logger.warning("config_update_failed", action=action, error=self.error)
