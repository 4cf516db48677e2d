"""
Download sink: the local stand-in for a browser's native download manager.

A submission is `(url, filename, conflict policy)`. Remote URLs are fetched,
`blob:` URLs are read from the BlobStore, and the bytes are saved through
DownloadStorage.

Blob handles are transient in-memory objects (zip archives built by the
dispatcher). Whoever creates one is responsible for revoking it.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Awaitable, Callable, Optional, Protocol

from src.backend.errors import NetworkFailure
from src.backend.fs.storage import ConflictPolicy, DownloadStorage

BLOB_SCHEME = "blob:"

# Type for async fetch function: (url) -> bytes
AsyncFetchFunc = Callable[[str], Awaitable[bytes]]

logger = logging.getLogger(__name__)


class DownloadSink(Protocol):
    async def submit(
        self,
        url: str,
        filename: str,
        *,
        conflict: ConflictPolicy = ConflictPolicy.UNIQUIFY,
    ) -> Path:
        """Start a download; raises on rejection."""
        ...


class BlobStore:
    """
    Registry of transient in-memory objects addressable by `blob:` URLs.

    Usage:
        url = blobs.create(zip_bytes)
        ...
        blobs.revoke(url)  # idempotent
    """

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    def __len__(self) -> int:
        return len(self._blobs)

    def __contains__(self, url: object) -> bool:
        return url in self._blobs

    def create(self, data: bytes) -> str:
        url = f"{BLOB_SCHEME}xmd/{uuid.uuid4()}"
        self._blobs[url] = data
        return url

    def get(self, url: str) -> Optional[bytes]:
        return self._blobs.get(url)

    def revoke(self, url: str) -> bool:
        """Release a handle. Returns False if it was already released."""
        return self._blobs.pop(url, None) is not None


class LocalDownloadSink:
    """
    Saves submitted downloads into a DownloadStorage.

    Usage:
        sink = LocalDownloadSink(storage, fetch=fetcher.fetch_async, blobs=blobs)
        path = await sink.submit("https://video.twimg.com/.../a.mp4", "alice-42.mp4")
    """

    def __init__(
        self,
        storage: DownloadStorage,
        *,
        fetch: AsyncFetchFunc,
        blobs: Optional[BlobStore] = None,
    ) -> None:
        self._storage = storage
        self._fetch = fetch
        self._blobs = blobs if blobs is not None else BlobStore()

    @property
    def storage(self) -> DownloadStorage:
        return self._storage

    @property
    def blobs(self) -> BlobStore:
        return self._blobs

    async def _read(self, url: str) -> bytes:
        if url.startswith(BLOB_SCHEME):
            data = self._blobs.get(url)
            if data is None:
                raise NetworkFailure(f"blob handle already released: {url}")
            return data
        return await self._fetch(url)

    async def submit(
        self,
        url: str,
        filename: str,
        *,
        conflict: ConflictPolicy = ConflictPolicy.UNIQUIFY,
    ) -> Path:
        """
        Download `url` and save it as `filename`.

        Raises:
            NetworkFailure: If the content cannot be fetched.
            OSError / ValueError: If the file cannot be saved.
        """
        content = await self._read(url)
        path = await asyncio.to_thread(self._storage.save, filename, content, conflict)
        logger.info("Saved %s (%d bytes)", path, len(content))
        return path
