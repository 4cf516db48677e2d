from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from src.backend.cache.dedup import dedupe
from src.backend.cache.media_cache import MediaCache
from src.backend.downloader.dispatcher import DispatchReport, DownloadDispatcher
from src.backend.downloader.sink import BlobStore, LocalDownloadSink
from src.backend.downloader.strategies import Strategy, StrategiesExhausted, StrategyFailure, first_success
from src.backend.errors import ParseFailure
from src.backend.fs.storage import DownloadStorage
from src.backend.net.fetch import MediaFetcher
from src.backend.scraper.media_extractor import decode_document, extract
from src.backend.scraper.tweet_detail import TweetDetailClient
from src.backend.settings.store import SettingsStore
from src.shared.media.models import MediaItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    extracted: int
    added: int


@dataclass(frozen=True)
class Resolution:
    """Items found for a record and where they came from."""
    record_id: str
    items: tuple[MediaItem, ...]
    source: Optional[str]  # "cache" | "tweet_detail" | None
    failures: tuple[StrategyFailure, ...] = ()


class MediaSession:
    """
    One page/navigation session: response ingest -> cache -> download.

    The session owns the media cache. The interception side feeds complete
    response bodies to `ingest_response`; the trigger side asks for
    `download_record` / `download_items`; a navigation boundary calls `reset`.
    """

    def __init__(
        self,
        *,
        dispatcher: DownloadDispatcher,
        detail_client: Optional[TweetDetailClient] = None,
        cache: Optional[MediaCache] = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._detail_client = detail_client
        self._cache = cache if cache is not None else MediaCache()

    @property
    def cache(self) -> MediaCache:
        return self._cache

    def ingest_document(self, document: Any) -> IngestResult:
        items = dedupe(extract(document))
        added = self._cache.merge(items)
        if items:
            logger.info("Ingested %d media item(s), %d new", len(items), added)
        return IngestResult(extracted=len(items), added=added)

    def ingest_response(self, body: Union[bytes, str]) -> IngestResult:
        """
        Feed one fully buffered response body.

        Bodies that are not JSON (HTML error pages, truncated chunks) are
        ignored.
        """
        try:
            document = decode_document(body)
        except ParseFailure as exc:
            logger.debug("Skipping non-JSON response body: %s", exc)
            return IngestResult(extracted=0, added=0)
        return self.ingest_document(document)

    async def _from_cache(self, record_id: str) -> list[MediaItem]:
        return self._cache.query_by_record(record_id)

    async def _from_detail(self, record_id: str) -> list[MediaItem]:
        if self._detail_client is None:
            return []
        return await self._detail_client.fetch_record_media(record_id)

    async def resolve_record(self, record_id: str) -> Resolution:
        """
        Find the media of a record: session cache first, then TweetDetail.

        Never raises: when every source fails the resolution is empty and
        carries the individual failures.
        """
        record_id = record_id.strip()
        try:
            outcome = await first_success(
                [
                    Strategy("cache", lambda: self._from_cache(record_id)),
                    Strategy("tweet_detail", lambda: self._from_detail(record_id)),
                ],
                accept=bool,
            )
        except StrategiesExhausted as exc:
            logger.warning("No media found for record %s", record_id)
            return Resolution(record_id=record_id, items=(), source=None, failures=exc.failures)

        if outcome.strategy != "cache":
            logger.info("Cache empty for %s, resolved via %s", record_id, outcome.strategy)
        return Resolution(
            record_id=record_id,
            items=tuple(outcome.result),
            source=outcome.strategy,
            failures=outcome.failures,
        )

    async def download_record(self, record_id: str) -> tuple[Resolution, Optional[DispatchReport]]:
        """
        Resolve and download a record.

        Returns:
            The resolution, and the dispatch report (None if nothing was found).
        """
        resolution = await self.resolve_record(record_id)
        if not resolution.items:
            return resolution, None
        return resolution, await self._dispatcher.dispatch(resolution.items)

    async def download_items(self, items: Sequence[MediaItem]) -> DispatchReport:
        return await self._dispatcher.dispatch(dedupe(items))

    def reset(self) -> None:
        """Navigation boundary: forget everything extracted so far."""
        self._cache.reset()


def build_media_session(
    *,
    store: SettingsStore,
    repo_root: Optional[Path] = None,
    cache: Optional[MediaCache] = None,
) -> MediaSession:
    """
    Wire a session from persisted settings.

    Download root, retry, proxy and timeouts are read once; credentials are
    read on every detail fetch so they can be configured after startup.
    Pass the previous session's `cache` to rebuild without losing it.
    """
    settings = store.load()
    proxy = settings.get_proxy()
    retry = settings.get_retry()

    download_root = Path(settings.download_root).expanduser()
    if not download_root.is_absolute() and repo_root is not None:
        download_root = repo_root / download_root

    fetcher = MediaFetcher(timeout_s=settings.fetch_timeout_s, retry=retry, proxy=proxy)
    blobs = BlobStore()
    sink = LocalDownloadSink(DownloadStorage(download_root), fetch=fetcher.fetch_async, blobs=blobs)
    dispatcher = DownloadDispatcher(
        sink=sink,
        fetch=fetcher.fetch_async,
        blobs=blobs,
        release_delay_s=settings.archive_release_delay_s,
    )
    detail_client = TweetDetailClient(
        credentials_provider=store.load_credentials,
        proxy=proxy.get_url(),
        retry=retry,
    )
    return MediaSession(dispatcher=dispatcher, detail_client=detail_client, cache=cache)
