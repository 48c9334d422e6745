"""Storage backend protocol definition."""

from dataclasses import dataclass
from typing import List, Protocol, Tuple, runtime_checkable


@dataclass(frozen=True)
class RefInfo:
    """One entry of a listing: a stored reference and its size in bytes."""
    ref: str
    size: int


class StorageBackend(Protocol):
    """Protocol defining the interface for storage backends.

    A backend stores opaque blobs under caller-chosen references. Callers
    only ever talk to this interface, so backends can be swapped by name
    through the registry without changing application code.
    """

    async def download(self, ref: str) -> bytes:
        """Return the full contents stored under ref.

        Raises:
            NotFoundError: If ref does not exist
            StorageIOError: On any other failure
        """
        ...

    async def put(self, ref: str, contents: bytes) -> None:
        """Store contents under ref, replacing any previous value.

        Raises:
            StorageIOError: On failure
        """
        ...

    async def delete(self, ref: str) -> None:
        """Remove ref.

        Raises:
            NotFoundError: If ref does not exist
            StorageIOError: On any other failure
        """
        ...

    def link_base(self) -> str:
        """Return the base URL under which refs are publicly readable.

        Raises:
            NotSupportedError: If the backend offers no public links
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the backend."""
        ...


@runtime_checkable
class Lister(Protocol):
    """Optional capability: paginated listing of every stored reference."""

    async def list(self, token: str) -> Tuple[List[RefInfo], str]:
        """Return one page of references.

        Args:
            token: "" for the first page, otherwise the token returned by
                the previous call

        Returns:
            Tuple of (entries, next_token). next_token is "" once the
            listing is complete.
        """
        ...
