"""Abstract base class for raw asset byte storage.

Blob storage itself is an external concern; the service only needs to put
bytes at upload time, read them back when classification (re-)runs and
remove them when an asset is deleted.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: LocalBlobStore (designvault/providers/blob/)
class IBlobStore(ABC):
    @abstractmethod
    async def put(self, storage_key: str, data: bytes) -> None:
        """Durably store *data* under *storage_key*."""

    @abstractmethod
    async def get(self, storage_key: str) -> bytes:
        """Return the bytes stored under *storage_key*.

        Raises
        ------
        FileNotFoundError
            If nothing is stored under the key.
        """

    @abstractmethod
    async def delete(self, storage_key: str) -> bool:
        """Remove the blob; returns ``False`` if nothing was stored under the key."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this blob backend."""
