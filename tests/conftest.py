"""
Pytest configuration and shared fixtures for dropbox-storage tests.

This module provides:
- The in-memory Dropbox mock and an HTTP client wired to it
- Storage backend fixtures
- Helpers for building failing transports
"""

from typing import AsyncGenerator, Callable

import httpx
import pytest

from dropbox_storage.storage.dropbox import DropboxStorageBackend
from tests.mock_dropbox_api import TEST_TOKEN, MockDropboxStore, app, store


API_URL = "http://api.dropbox.test"
CONTENT_URL = "http://content.dropbox.test"


# ============================================================================
# Mock Dropbox fixtures
# ============================================================================

@pytest.fixture
def dropbox_api() -> MockDropboxStore:
    """Fresh in-memory Dropbox state for each test.

    Returns:
        MockDropboxStore: The mock's file store and request log
    """
    store.reset()
    yield store
    store.reset()


@pytest.fixture
async def http_client(dropbox_api: MockDropboxStore) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client that routes every request to the mock Dropbox app.

    Yields:
        httpx.AsyncClient: Shared client, closed after the test
    """
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app)) as client:
        yield client


# ============================================================================
# Storage fixtures
# ============================================================================

@pytest.fixture
def storage(http_client: httpx.AsyncClient) -> DropboxStorageBackend:
    """Dropbox backend talking to the mock.

    Returns:
        DropboxStorageBackend: Backend with the default page size
    """
    return DropboxStorageBackend(
        token=TEST_TOKEN,
        client=http_client,
        api_url=API_URL,
        content_url=CONTENT_URL,
    )


@pytest.fixture
def make_storage(http_client: httpx.AsyncClient) -> Callable[..., DropboxStorageBackend]:
    """Factory for backends with non-default settings (page size, token)."""

    def _make(**kwargs) -> DropboxStorageBackend:
        kwargs.setdefault("token", TEST_TOKEN)
        kwargs.setdefault("client", http_client)
        kwargs.setdefault("api_url", API_URL)
        kwargs.setdefault("content_url", CONTENT_URL)
        return DropboxStorageBackend(**kwargs)

    return _make


@pytest.fixture
async def transport_storage() -> AsyncGenerator[Callable[..., DropboxStorageBackend], None]:
    """Build a backend over an httpx.MockTransport handler.

    Use this for responses the mock app cannot produce, such as transport
    failures, 5xx statuses or malformed bodies.
    """
    clients = []

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> DropboxStorageBackend:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return DropboxStorageBackend(
            token=TEST_TOKEN,
            client=client,
            api_url=API_URL,
            content_url=CONTENT_URL,
        )

    yield _make

    for client in clients:
        await client.aclose()


# ============================================================================
# Test data fixtures
# ============================================================================

@pytest.fixture
def sample_blob() -> bytes:
    """Sample blob contents."""
    return b"This is test data for the Dropbox storage backend"
