"""
Tests for src/backend/pipeline/session.py

Covers:
- Ingesting captured responses
- Cache first resolution with detail fetch fallback
- Building a session from stored settings
"""

import asyncio
import json
import tempfile
import unittest
from pathlib import Path
from typing import Sequence

from src.backend.cache.media_cache import MediaCache
from src.backend.downloader.dispatcher import DispatchReport
from src.backend.errors import CredentialMissing
from src.backend.pipeline.session import MediaSession, build_media_session
from src.backend.settings.models import Credentials, GlobalSettings
from src.backend.settings.store import SettingsStore
from src.shared.media.models import MediaItem, MediaKind


def _tweet(record_id: str, handle: str, photos: Sequence[str], quoted=None) -> dict:
    node = {
        "rest_id": record_id,
        "core": {"user_results": {"result": {"legacy": {"screen_name": handle}}}},
        "legacy": {"id_str": record_id, "created_at": "Mon Apr 22 14:41:30 +0000 2024"},
    }
    if photos:
        node["legacy"]["extended_entities"] = {
            "media": [{"type": "photo", "media_url_https": f"https://pbs.twimg.com/media/{p}.jpg"} for p in photos]
        }
    if quoted is not None:
        node["quoted_status_result"] = {"result": quoted}
    return node


def _body(*tweets: dict) -> bytes:
    return json.dumps({"data": {"entries": [{"content": {"tweet_results": {"result": t}}} for t in tweets]}}).encode()


class _RecordingDispatcher:
    def __init__(self):
        self.dispatched: list[list[MediaItem]] = []

    async def dispatch(self, items: Sequence[MediaItem]) -> DispatchReport:
        self.dispatched.append(list(items))
        return DispatchReport()


class _FakeDetailClient:
    def __init__(self, items=None, error: Exception = None):
        self.items = items or []
        self.error = error
        self.requested: list[str] = []

    async def fetch_record_media(self, record_id: str) -> list[MediaItem]:
        self.requested.append(record_id)
        if self.error is not None:
            raise self.error
        return list(self.items)


def _detail_item(record_id: str = "500") -> MediaItem:
    return MediaItem(
        kind=MediaKind.VIDEO,
        source_url="https://video.twimg.com/vid/1280x720/a.mp4",
        display_name=f"dave-{record_id}",
        record_id=record_id,
    )


class TestIngest(unittest.TestCase):
    def test_ingest_merges_new_items_only(self):
        """Re-ingesting the same response adds nothing."""
        session = MediaSession(dispatcher=_RecordingDispatcher())
        body = _body(_tweet("100", "alice", ["a", "b"]))

        first = session.ingest_response(body)
        second = session.ingest_response(body)

        self.assertEqual((first.extracted, first.added), (2, 2))
        self.assertEqual((second.extracted, second.added), (2, 0))
        self.assertEqual(len(session.cache), 2)

    def test_non_json_body_is_ignored(self):
        session = MediaSession(dispatcher=_RecordingDispatcher())
        result = session.ingest_response(b"<!DOCTYPE html><html>")
        self.assertEqual((result.extracted, result.added), (0, 0))
        self.assertEqual(len(session.cache), 0)

    def test_reset_clears_cache(self):
        session = MediaSession(dispatcher=_RecordingDispatcher())
        session.ingest_response(_body(_tweet("100", "alice", ["a"])))
        session.reset()
        self.assertEqual(session.cache.snapshot(), [])


class TestResolveAndDownload(unittest.TestCase):
    def test_cache_hit_includes_quoted_media_and_skips_detail(self):
        """A cache hit never calls the detail client."""
        detail = _FakeDetailClient([_detail_item()])
        dispatcher = _RecordingDispatcher()
        session = MediaSession(dispatcher=dispatcher, detail_client=detail)
        session.ingest_response(_body(_tweet("200", "bob", ["own"], quoted=_tweet("100", "alice", ["q"]))))

        resolution, report = asyncio.run(session.download_record(" 200 "))

        self.assertEqual(resolution.source, "cache")
        self.assertEqual(sorted(i.record_id for i in resolution.items), ["100", "200"])
        self.assertIsNotNone(report)
        self.assertEqual(len(dispatcher.dispatched[0]), 2)
        self.assertEqual(detail.requested, [])

    def test_cache_miss_falls_back_to_detail_without_caching(self):
        """Detail results are downloaded but not cached."""
        detail = _FakeDetailClient([_detail_item("500")])
        session = MediaSession(dispatcher=_RecordingDispatcher(), detail_client=detail)

        resolution = asyncio.run(session.resolve_record("500"))

        self.assertEqual(resolution.source, "tweet_detail")
        self.assertEqual([i.record_id for i in resolution.items], ["500"])
        self.assertEqual([f.strategy for f in resolution.failures], ["cache"])
        self.assertEqual(detail.requested, ["500"])
        self.assertEqual(len(session.cache), 0)

    def test_all_sources_failing_yields_empty_resolution(self):
        """Resolution never raises; failures are reported."""
        detail = _FakeDetailClient(error=CredentialMissing("session credentials not configured"))
        dispatcher = _RecordingDispatcher()
        session = MediaSession(dispatcher=dispatcher, detail_client=detail)

        resolution, report = asyncio.run(session.download_record("500"))

        self.assertEqual(resolution.items, ())
        self.assertIsNone(resolution.source)
        self.assertIsNone(report)
        self.assertEqual([f.strategy for f in resolution.failures], ["cache", "tweet_detail"])
        self.assertIn("CredentialMissing", resolution.failures[1].error)
        self.assertEqual(dispatcher.dispatched, [])

    def test_without_detail_client_cache_miss_is_empty(self):
        session = MediaSession(dispatcher=_RecordingDispatcher())
        resolution = asyncio.run(session.resolve_record("1"))
        self.assertEqual(resolution.items, ())

    def test_download_items_dedupes(self):
        dispatcher = _RecordingDispatcher()
        session = MediaSession(dispatcher=dispatcher)
        item = _detail_item()

        asyncio.run(session.download_items([item, item]))

        self.assertEqual(dispatcher.dispatched, [[item]])


class TestBuildMediaSession(unittest.TestCase):
    def test_build_from_settings_and_keep_cache(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            tmp_path = Path(tmpdir)
            store = SettingsStore(path=tmp_path / "config.json", environ={})
            store.save(GlobalSettings(credentials=Credentials(auth_token="a", ct0="b"), download_root="dl"))
            cache = MediaCache()

            session = build_media_session(store=store, repo_root=tmp_path, cache=cache)
            session.ingest_response(_body(_tweet("100", "alice", ["a"])))

            self.assertIs(session.cache, cache)
            self.assertEqual(len(cache), 1)


if __name__ == "__main__":
    unittest.main()
