"""Storage backend registry.

Backends register a factory under a case-sensitive name; callers select one
by name with an option bag of strings.
"""

from functools import lru_cache
from typing import Callable, Dict, List, Optional

import httpx

from dropbox_storage.core.config import settings
from dropbox_storage.core.errors import ErrorCode, config_error
from .protocol import Lister, RefInfo, StorageBackend
from . import dropbox


# Called as factory(options), or factory(options, client=...) with a shared client
Factory = Callable[..., StorageBackend]

_registry: Dict[str, Factory] = {}


def register(name: str, factory: Factory) -> None:
    """Make a backend factory available under name.

    Raises:
        ValueError: If name is empty or already registered
    """
    if not name:
        raise ValueError("backend name must not be empty")
    if name in _registry:
        raise ValueError(f"storage backend {name!r} already registered")
    _registry[name] = factory


def registered() -> List[str]:
    """Names of all registered backends, sorted."""
    return sorted(_registry)


def dial(name: str, client: Optional[httpx.AsyncClient] = None, **options: str) -> StorageBackend:
    """Create the backend registered under name.

    Args:
        name: Registered backend name (case-sensitive)
        client: Optional shared HTTP client, handed to the factory and never
            closed by the backend
        **options: Backend specific string options, e.g. token="..."

    Returns:
        StorageBackend: New backend instance

    Raises:
        ConfigurationError: If no backend has that name, or the backend
            rejects the options
    """
    factory = _registry.get(name)
    if factory is None:
        raise config_error(
            "storage.dial",
            ErrorCode.CONFIG_UNKNOWN_BACKEND,
            f"unknown storage backend {name!r}",
            {"registered": registered()},
        )
    if client is None:
        return factory(options)
    return factory(options, client=client)


@lru_cache()
def get_storage(client: Optional[httpx.AsyncClient] = None) -> StorageBackend:
    """Factory function for the configured storage backend.

    Returns the backend named by STORAGE_BACKEND, built from the settings'
    option bag. One instance is created per client and shared.

    Without a client every backend call opens and closes its own connection;
    long-running processes should pass one client they own and close it on
    shutdown.

    Raises:
        ConfigurationError: If the backend is unknown or misconfigured
    """
    return dial(settings.STORAGE_BACKEND, client=client, **settings.storage_options())


register("Dropbox", dropbox.new)


__all__ = [
    "dial",
    "get_storage",
    "register",
    "registered",
    "Lister",
    "RefInfo",
    "StorageBackend",
]
