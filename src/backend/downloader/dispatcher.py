"""
Download dispatcher: individual downloads vs. zip bundling.

Dispatch rules for the items of one record:
- Videos and GIFs are always downloaded individually, best-effort
- A single image is downloaded individually
- Several images are fetched concurrently and bundled into one zip; if any
  fetch, the packing, or the archive submission fails, every image goes
  through the individual path instead (media is never dropped)

Filename: <stem>.<ext> per item, <base stem>.zip for the archive.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence

from src.backend.fs.archive_zip import ArchiveEntry, build_zip_archive
from src.backend.fs.naming import archive_filename, media_filename
from src.backend.fs.storage import ConflictPolicy
from src.shared.media.models import MediaItem

from .sink import AsyncFetchFunc, BlobStore, DownloadSink
from .strategies import Strategy, StrategyFailure, first_success

# Time given to a submitted archive download before its blob is released.
DEFAULT_RELEASE_DELAY_S = 60.0

logger = logging.getLogger(__name__)


class DownloadStatus(str, Enum):
    """Status of a single download submission."""
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class DownloadResult:
    """Result of one submitted download (a media file or an archive)."""
    status: DownloadStatus
    filename: str
    url: str
    record_ids: tuple[str, ...]

    # Set on success
    file_path: Optional[Path] = None

    # Set on failure
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "filename": self.filename,
            "url": self.url,
            "record_ids": list(self.record_ids),
            "file_path": str(self.file_path) if self.file_path else None,
            "error": self.error,
        }


@dataclass
class DispatchReport:
    """Outcome of dispatching one set of items."""
    downloads: list[DownloadResult] = field(default_factory=list)
    archive: Optional[DownloadResult] = None
    strategy_failures: list[StrategyFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self._all() if r.status == DownloadStatus.SUCCESS)

    @property
    def failed(self) -> int:
        return sum(1 for r in self._all() if r.status == DownloadStatus.FAILED)

    def _all(self) -> list[DownloadResult]:
        return self.downloads + ([self.archive] if self.archive is not None else [])

    def to_dict(self) -> dict:
        return {
            "downloads": [r.to_dict() for r in self.downloads],
            "archive": self.archive.to_dict() if self.archive else None,
            "strategy_failures": [f.to_dict() for f in self.strategy_failures],
            "succeeded": self.succeeded,
            "failed": self.failed,
        }


def _record_ids(items: Sequence[MediaItem]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(item.record_id for item in items))


class DownloadDispatcher:
    """
    Chooses and executes the download strategy for a set of items.

    Usage:
        dispatcher = DownloadDispatcher(sink=sink, fetch=fetcher.fetch_async, blobs=sink.blobs)
        report = await dispatcher.dispatch(cache.query_by_record(record_id))
    """

    def __init__(
        self,
        *,
        sink: DownloadSink,
        fetch: AsyncFetchFunc,
        blobs: BlobStore,
        release_delay_s: float = DEFAULT_RELEASE_DELAY_S,
    ) -> None:
        self._sink = sink
        self._fetch = fetch
        self._blobs = blobs
        self._release_delay_s = max(0.0, float(release_delay_s))

    async def dispatch(self, items: Sequence[MediaItem]) -> DispatchReport:
        """
        Download `items`.

        Never raises for download failures: they are logged and reported.
        """
        images = [item for item in items if item.kind.is_image]
        non_images = [item for item in items if not item.kind.is_image]
        report = DispatchReport()

        async def images_path() -> None:
            if len(images) <= 1:
                report.downloads.extend(await self._download_individually(images))
                return
            outcome = await first_success(
                [
                    Strategy("archive", lambda: self._download_archive(images)),
                    Strategy("individual", lambda: self._download_individually(images)),
                ]
            )
            report.strategy_failures.extend(outcome.failures)
            if outcome.strategy == "archive":
                report.archive = outcome.result
            else:
                report.downloads.extend(outcome.result)

        async def non_images_path() -> None:
            report.downloads.extend(await self._download_individually(non_images))

        await asyncio.gather(non_images_path(), images_path())

        logger.info(
            "Dispatched %d item(s) (%d image(s)): %d succeeded, %d failed",
            len(items),
            len(images),
            report.succeeded,
            report.failed,
        )
        return report

    async def _download_individually(self, items: Sequence[MediaItem]) -> list[DownloadResult]:
        return list(await asyncio.gather(*(self._download_item(item) for item in items)))

    async def _download_item(self, item: MediaItem) -> DownloadResult:
        filename = media_filename(item)
        try:
            path = await self._sink.submit(item.source_url, filename, conflict=ConflictPolicy.UNIQUIFY)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Download failed for %s (%s): %s", filename, item.source_url, exc)
            return DownloadResult(
                status=DownloadStatus.FAILED,
                filename=filename,
                url=item.source_url,
                record_ids=(item.record_id,),
                error=str(exc),
            )
        return DownloadResult(
            status=DownloadStatus.SUCCESS,
            filename=filename,
            url=item.source_url,
            record_ids=(item.record_id,),
            file_path=path,
        )

    async def _fetch_entry(self, item: MediaItem) -> ArchiveEntry:
        return ArchiveEntry(filename=media_filename(item), data=await self._fetch(item.source_url))

    async def _download_archive(self, images: Sequence[MediaItem]) -> DownloadResult:
        """
        Fetch, zip and submit `images` as one download.

        Raises:
            Any fetch, packing or submission error; the caller falls back.
        """
        # Every fetch settles before a failure propagates.
        fetched = await asyncio.gather(*(self._fetch_entry(item) for item in images), return_exceptions=True)
        for entry in fetched:
            if isinstance(entry, BaseException):
                raise entry
        entries = list(fetched)
        archive = build_zip_archive(entries)
        filename = archive_filename(images) or "media.zip"

        url = self._blobs.create(archive.data)
        try:
            path = await self._sink.submit(url, filename, conflict=ConflictPolicy.UNIQUIFY)
        except Exception:
            self._blobs.revoke(url)
            raise
        asyncio.get_running_loop().call_later(self._release_delay_s, self._blobs.revoke, url)

        logger.info(
            "Archive %s submitted (%d file(s), %d bytes)",
            filename,
            archive.files_archived,
            archive.bytes_archived,
        )
        return DownloadResult(
            status=DownloadStatus.SUCCESS,
            filename=filename,
            url=url,
            record_ids=_record_ids(images),
            file_path=path,
        )
