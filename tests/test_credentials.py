"""Tests for the credential store adapter."""

import pytest

from local_ai_hub.credentials import (
    CredentialStoreAdapter,
    Persisted,
    Rejected,
    TransportError,
    corrective_hint,
)
from local_ai_hub.errors import (
    BackendOperationError,
    CredentialPersistFailure,
    TransportUnavailable,
)
from local_ai_hub.models import Credential, CredentialMode


@pytest.fixture
def creds(backend):
    return CredentialStoreAdapter(backend)


class TestSet:
    """Test tagged outcomes of set()."""

    @pytest.mark.asyncio
    async def test_persisted(self, backend, creds):
        """Stored secret is reported as Persisted."""
        backend.credential = Credential(stored=False)

        outcome = await creds.set("  123:abc  ")

        assert isinstance(outcome, Persisted)
        assert outcome.credential.stored
        assert backend.calls == [("credential_set", ("123:abc",))]

    @pytest.mark.asyncio
    async def test_empty_secret(self, backend, creds):
        """Blank input is rejected without a backend call."""
        outcome = await creds.set("   ")

        assert outcome == Rejected("Token is empty.")
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_not_stored_is_rejected(self, backend, creds):
        """A completed call with stored=false is a rejection, not success."""
        backend.set_result = Credential(
            stored=False,
            mode=CredentialMode.KEYCHAIN,
            error="keychain write denied",
        )

        outcome = await creds.set("123:abc")

        assert isinstance(outcome, Rejected)
        assert outcome.reason == "keychain write denied"
        assert outcome.hint == corrective_hint(CredentialMode.KEYCHAIN)
        assert "File (fallback)" in outcome.hint

    @pytest.mark.asyncio
    async def test_not_stored_without_error(self, backend, creds):
        """Missing error text falls back to a generic reason."""
        backend.set_result = Credential(stored=False, mode=CredentialMode.FILE)

        outcome = await creds.set("123:abc")

        assert outcome.reason == "Token was not found after saving."
        assert outcome.hint == "Check that the app data directory is writable."

    @pytest.mark.asyncio
    async def test_transport_error(self, backend, creds):
        """Unreachable backend is its own outcome."""
        backend.fail("credential_set", TransportUnavailable("refused"))

        outcome = await creds.set("123:abc")

        assert outcome == TransportError("refused")

    @pytest.mark.asyncio
    async def test_backend_error(self, backend, creds):
        """A backend failure is a rejection with a hint."""
        backend.fail("credential_set", BackendOperationError("credential_set", "locked"))

        outcome = await creds.set("123:abc")

        assert isinstance(outcome, Rejected)
        assert outcome.reason == "locked"
        assert outcome.hint is not None


class TestSave:
    """Test the raising variant."""

    @pytest.mark.asyncio
    async def test_save_returns_credential(self, backend, creds):
        """Persisted secret returns the credential."""
        credential = await creds.save("123:abc")

        assert credential.stored
        assert creds.last == credential

    @pytest.mark.asyncio
    async def test_save_not_stored_raises(self, backend, creds):
        """stored=false raises CredentialPersistFailure with a hint."""
        backend.set_result = Credential(stored=False, mode=CredentialMode.KEYCHAIN, error="denied")

        with pytest.raises(CredentialPersistFailure) as exc_info:
            await creds.save("123:abc")

        assert exc_info.value.reason == "denied"
        assert exc_info.value.mode == "keychain"
        assert exc_info.value.hint

    @pytest.mark.asyncio
    async def test_save_unreachable_raises(self, backend, creds):
        """Transport failure raises TransportUnavailable."""
        backend.fail("credential_set", TransportUnavailable("refused"))

        with pytest.raises(TransportUnavailable):
            await creds.save("123:abc")


class TestStatusAndDelete:
    """Test status and delete."""

    @pytest.mark.asyncio
    async def test_status_cached(self, backend, creds):
        """Status is remembered as the last known credential."""
        credential = await creds.status()

        assert creds.last == credential

    @pytest.mark.asyncio
    async def test_delete(self, backend, creds):
        """Delete removes the secret and forgets the cached status."""
        await creds.status()

        await creds.delete()

        assert creds.last is None
        assert not (await creds.status()).stored
