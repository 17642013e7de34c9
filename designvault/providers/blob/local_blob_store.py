"""Local filesystem blob store.

Stores each blob as a file under ``root`` at its storage key.  File I/O
runs in a worker thread so the event loop is never blocked by disk access.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from designvault.interfaces.blob_store import IBlobStore
from designvault.utils.logging import get_logger

logger = get_logger(__name__)


class LocalBlobStore(IBlobStore):
    """Blob store rooted at a local directory."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def _resolve(self, storage_key: str) -> Path:
        path = (self._root / storage_key).resolve()
        if not path.is_relative_to(self._root.resolve()):
            raise ValueError(f"Storage key escapes blob root: {storage_key}")
        return path

    async def put(self, storage_key: str, data: bytes) -> None:
        path = self._resolve(storage_key)
        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, data)
        logger.debug("blob_stored", storage_key=storage_key, size_bytes=len(data))

    async def get(self, storage_key: str) -> bytes:
        return await asyncio.to_thread(self._resolve(storage_key).read_bytes)

    async def delete(self, storage_key: str) -> bool:
        path = self._resolve(storage_key)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        logger.debug("blob_deleted", storage_key=storage_key)
        return True

    def get_provider_name(self) -> str:
        return "local"
