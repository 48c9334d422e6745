"""
Storage backend registry tests.
"""

import httpx
import pytest

from dropbox_storage import storage as registry
from dropbox_storage.core.config import settings
from dropbox_storage.core.errors import ConfigurationError, ErrorCode
from dropbox_storage.storage.dropbox import DropboxStorageBackend


@pytest.fixture
def isolated_registry(monkeypatch):
    """Let a test register backends without leaking them."""
    monkeypatch.setattr(registry, "_registry", dict(registry._registry))
    return registry


@pytest.fixture
def fresh_get_storage():
    registry.get_storage.cache_clear()
    yield registry.get_storage
    registry.get_storage.cache_clear()


@pytest.mark.unit
def test_dropbox_is_registered():
    """Test importing the package registers the Dropbox backend."""
    assert "Dropbox" in registry.registered()


@pytest.mark.unit
def test_dial_dropbox():
    """Test dialing by name builds a configured backend."""
    backend = registry.dial("Dropbox", token="tok", page_size="3")

    assert isinstance(backend, DropboxStorageBackend)
    assert backend.page_size == 3


@pytest.mark.unit
@pytest.mark.parametrize("name", ["DROPBOX", "dropbox", "s3"])
def test_dial_unknown_backend(name):
    """Test names are matched case-sensitively."""
    with pytest.raises(ConfigurationError) as exc_info:
        registry.dial(name, token="tok")

    assert exc_info.value.code == ErrorCode.CONFIG_UNKNOWN_BACKEND
    assert exc_info.value.details["registered"] == registry.registered()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_dial_passes_shared_client():
    """Test a client given to dial reaches the backend unowned."""
    async with httpx.AsyncClient() as client:
        backend = registry.dial("Dropbox", client=client, token="tok")

        assert backend.client is client
        await backend.close()
        assert not client.is_closed


@pytest.mark.unit
def test_dial_without_token():
    """Test the backend's own option checks surface through dial."""
    with pytest.raises(ConfigurationError) as exc_info:
        registry.dial("Dropbox")

    assert exc_info.value.code == ErrorCode.CONFIG_MISSING_OPTION


@pytest.mark.unit
def test_register_custom_backend(isolated_registry):
    """Test a new factory is reachable through dial with its options."""
    received = {}

    def factory(options):
        received.update(options)
        return "backend"

    isolated_registry.register("Memory", factory)

    assert isolated_registry.dial("Memory", path="/tmp") == "backend"
    assert received == {"path": "/tmp"}


@pytest.mark.unit
def test_register_duplicate_name(isolated_registry):
    """Test a name cannot be registered twice."""
    with pytest.raises(ValueError):
        isolated_registry.register("Dropbox", lambda options: None)


@pytest.mark.unit
def test_register_empty_name(isolated_registry):
    """Test an empty name is rejected."""
    with pytest.raises(ValueError):
        isolated_registry.register("", lambda options: None)


@pytest.mark.unit
def test_get_storage_uses_settings(monkeypatch, fresh_get_storage):
    """Test get_storage dials the configured backend once."""
    monkeypatch.setattr(settings, "DROPBOX_TOKEN", "configured-token")
    monkeypatch.setattr(settings, "DROPBOX_PAGE_SIZE", 7)

    backend = fresh_get_storage()

    assert isinstance(backend, DropboxStorageBackend)
    assert backend.page_size == 7
    assert fresh_get_storage() is backend


@pytest.mark.unit
def test_get_storage_without_token(monkeypatch, fresh_get_storage):
    """Test a missing token is a configuration error."""
    monkeypatch.setattr(settings, "DROPBOX_TOKEN", None)

    with pytest.raises(ConfigurationError):
        fresh_get_storage()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_storage_shares_client(monkeypatch, fresh_get_storage):
    """Test get_storage hands a long-lived client to the backend it builds."""
    monkeypatch.setattr(settings, "DROPBOX_TOKEN", "configured-token")

    async with httpx.AsyncClient() as client:
        backend = fresh_get_storage(client)

        assert backend.client is client
        assert fresh_get_storage(client) is backend
        assert fresh_get_storage().client is None
