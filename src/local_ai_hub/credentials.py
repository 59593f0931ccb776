"""
Credential Store Adapter - Bot token persistence through the backend.

The backend's credential_set can succeed as a call and still report
stored=False (keychain refused the write, read-back mismatch, ...).
set() therefore returns a tagged outcome instead of a bool plus an
optional error, and save() turns everything except Persisted into an
exception.
"""

from dataclasses import dataclass

import structlog

from .contracts import BackendProtocol
from .errors import BackendOperationError, CredentialPersistFailure, TransportUnavailable
from .models import Credential, CredentialMode

__all__ = [
    "CredentialStoreAdapter",
    "Persisted",
    "Rejected",
    "SetOutcome",
    "TransportError",
    "corrective_hint",
]

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Persisted:
    """Secret is stored and readable."""
    credential: Credential


@dataclass(frozen=True, slots=True)
class Rejected:
    """Call completed, secret is not stored."""
    reason: str
    hint: str | None = None
    credential: Credential | None = None


@dataclass(frozen=True, slots=True)
class TransportError:
    """Backend could not be reached; nothing is known about the store."""
    reason: str


SetOutcome = Persisted | Rejected | TransportError


def corrective_hint(mode: CredentialMode | None) -> str:
    """What the user can do about a failed write in the given storage mode."""
    if mode == CredentialMode.FILE:
        return "Check that the app data directory is writable."
    return 'Switch token storage to "File (fallback)" and try again.'


class CredentialStoreAdapter:
    """Client-side view of the secure credential store.

    Example:
        creds = CredentialStoreAdapter(backend)

        outcome = await creds.set(token)
        if isinstance(outcome, Rejected):
            show_error(outcome.reason, outcome.hint)

        # Or let the adapter raise
        await creds.save(token)
    """

    def __init__(self, backend: BackendProtocol) -> None:
        self.backend = backend
        self.last: Credential | None = None

    async def status(self) -> Credential:
        credential = await self.backend.credential_status()
        self.last = credential
        return credential

    async def set(self, secret: str) -> SetOutcome:
        """Store a secret and classify the result."""
        secret = secret.strip()
        if not secret:
            return Rejected("Token is empty.")

        try:
            credential = await self.backend.credential_set(secret)
        except TransportUnavailable as e:
            logger.warning("credential_set_unreachable", error=e.reason)
            return TransportError(e.reason)
        except BackendOperationError as e:
            logger.warning("credential_set_failed", error=e.message)
            mode = self.last.mode if self.last else None
            return Rejected(e.message, corrective_hint(mode))

        self.last = credential
        if not credential.stored:
            reason = credential.error or "Token was not found after saving."
            logger.warning("credential_not_persisted", mode=credential.mode.value, error=reason)
            return Rejected(reason, corrective_hint(credential.mode), credential)

        logger.info("credential_persisted", mode=credential.mode.value)
        return Persisted(credential)

    async def save(self, secret: str) -> Credential:
        """set() that raises on anything but Persisted.

        Raises:
            CredentialPersistFailure: Secret was not stored
            TransportUnavailable: Backend unreachable
        """
        outcome = await self.set(secret)
        if isinstance(outcome, Persisted):
            return outcome.credential
        if isinstance(outcome, TransportError):
            raise TransportUnavailable(outcome.reason)
        mode = outcome.credential.mode.value if outcome.credential else None
        raise CredentialPersistFailure(outcome.reason, outcome.hint, mode)

    async def delete(self) -> None:
        await self.backend.credential_delete()
        self.last = None
        logger.info("credential_deleted")
