"""
Models - Pydantic views of everything the backend returns.

Connector and config documents use snake_case on the wire; thread
documents come straight from the AI-session process and use camelCase
(aliases below). Both spellings are accepted when validating.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

__all__ = [
    "AISessionConfig",
    "AppConfig",
    "AuthMode",
    "ChatBotConfig",
    "ConnectorStatus",
    "Credential",
    "CredentialMode",
    "Doctor",
    "LogEntry",
    "LogLevel",
    "Role",
    "SelfTestResult",
    "ThreadDetail",
    "ThreadItem",
    "ThreadPage",
    "ThreadSummary",
    "UiConfig",
]


class AuthMode(str, Enum):
    APIKEY = "apikey"
    CHATGPT = "chatgpt"


class CredentialMode(str, Enum):
    KEYCHAIN = "keychain"
    FILE = "file"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class LogLevel(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


# ─────────────────────────────────────────────────────────────────────────────
# Connectors
# ─────────────────────────────────────────────────────────────────────────────


class ConnectorStatus(BaseModel):
    """Last observed status of one connector.

    login_url/login_id only live while an interactive login is pending.
    """

    id: str
    running: bool = False
    initialized: bool = False
    last_error: str | None = None
    auth_mode: AuthMode | None = None
    login_url: str | None = None
    login_id: str | None = None
    identity: str | None = None
    last_poll_ms: int | None = None

    @model_validator(mode="after")
    def _drop_login_once_authenticated(self) -> "ConnectorStatus":
        if self.auth_mode is not None:
            self.login_url = None
            self.login_id = None
        return self

    @property
    def login_pending(self) -> bool:
        return self.login_url is not None


class Doctor(BaseModel):
    """Read-only prerequisite probe used to gate connect()."""

    runtime_ok: bool = False
    runtime_path: str | None = None
    package_manager_ok: bool = False
    package_manager_path: str | None = None
    local_binary_ok: bool = False
    local_binary_version: str | None = None

    def missing_for_install(self) -> list[str]:
        missing = []
        if not self.runtime_ok:
            missing.append("runtime")
        if not self.package_manager_ok:
            missing.append("package_manager")
        return missing


class Credential(BaseModel):
    stored: bool = False
    mode: CredentialMode = CredentialMode.KEYCHAIN
    error: str | None = None


class SelfTestResult(BaseModel):
    ok: bool
    identity: str | None = None
    sent_probe: bool = False
    error: str | None = None


class LogEntry(BaseModel):
    ts_unix_ms: int
    level: LogLevel
    source: str
    msg: str


# ─────────────────────────────────────────────────────────────────────────────
# Threads
# ─────────────────────────────────────────────────────────────────────────────


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ThreadSummary(_CamelModel):
    id: str
    title: str | None = None
    preview: str | None = None
    updated_at: int | None = None
    created_at: int | None = None
    archived: bool = False
    source_kind: str | None = None


class ThreadPage(_CamelModel):
    threads: list[ThreadSummary] = Field(default_factory=list)
    next_cursor: str | None = None


class ThreadItem(_CamelModel):
    role: Role
    text: str = ""


class ThreadDetail(_CamelModel):
    id: str
    title: str | None = None
    preview: str | None = None
    updated_at: int | None = None
    in_progress: bool | None = None
    items: list[ThreadItem] = Field(default_factory=list)

    def differs_from(self, other: "ThreadDetail | None") -> bool:
        """Change detection used by the reconciler.

        Only updatedAt and item count are compared.
        """
        if other is None or other.id != self.id:
            return True
        return other.updated_at != self.updated_at or len(other.items) != len(self.items)


# ─────────────────────────────────────────────────────────────────────────────
# Persisted config document (owned by the backend's config store)
# ─────────────────────────────────────────────────────────────────────────────


class _Section(BaseModel):
    model_config = ConfigDict(extra="allow")


class ChatBotConfig(_Section):
    allowed_chat_ids: list[int] = Field(default_factory=list)
    poll_timeout_sec: int = 20
    token_storage: CredentialMode = CredentialMode.KEYCHAIN


class AISessionConfig(_Section):
    workspace_dir: str | None = None
    shared_history: bool = False
    universal_instructions: str = ""
    universal_fallback_only: bool = True


class UiConfig(_Section):
    language: str | None = None


class AppConfig(_Section):
    """Whole configuration document; always saved as a unit."""

    telegram: ChatBotConfig = Field(default_factory=ChatBotConfig)
    codex: AISessionConfig = Field(default_factory=AISessionConfig)
    ui: UiConfig = Field(default_factory=UiConfig)
