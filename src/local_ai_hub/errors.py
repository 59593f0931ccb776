"""
Errors - Failure taxonomy shared by every hub component.

- TransportUnavailable: backend unreachable; pollers keep last-known state
- PrerequisiteMissing: a required tool or secret is absent; blocks connect()
- CredentialPersistFailure: the credential store reported stored=false
- BackendOperationError: any other failure reported by the backend

Out-of-order responses are not an error type: generations and the
in-flight guard drop them before they reach a view.
"""

__all__ = [
    "BackendOperationError",
    "CredentialPersistFailure",
    "HubError",
    "PrerequisiteMissing",
    "TransportUnavailable",
]


class HubError(Exception):
    """Base class for hub failures."""


class TransportUnavailable(HubError):
    """Raised when the backend cannot be reached.

    Reasons:
    - No transport configured or connected
    - Connection refused / reset
    - Backend reported itself unavailable (503)
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Backend unavailable: {reason}")


class PrerequisiteMissing(HubError):
    """Raised client-side when a connector cannot start.

    Attributes:
        connector_id: Connector that was asked to connect/install
        missing: Names of the missing prerequisites
    """

    def __init__(self, connector_id: str, missing: list[str]):
        self.connector_id = connector_id
        self.missing = list(missing)
        super().__init__(
            f"Connector '{connector_id}' is missing prerequisites: {', '.join(self.missing)}"
        )


class CredentialPersistFailure(HubError):
    """The credential store accepted the call but did not persist the secret."""

    def __init__(self, reason: str, hint: str | None = None, mode: str | None = None):
        self.reason = reason
        self.hint = hint
        self.mode = mode
        message = reason if not hint else f"{reason} {hint}"
        super().__init__(message)


class BackendOperationError(HubError):
    """Backend executed the command and reported a failure."""

    def __init__(self, command: str, message: str):
        self.command = command
        self.message = message
        super().__init__(f"{command} failed: {message}")
