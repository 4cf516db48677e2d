"""
Tests for src/backend/pipeline/api.py

Covers:
- Response ingestion and cache endpoints
- Download requests by record id, status URL or explicit items
"""

import json
import unittest
from typing import Sequence

from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.backend.downloader.dispatcher import DispatchReport, DownloadResult, DownloadStatus
from src.backend.pipeline.api import create_media_router
from src.backend.pipeline.session import MediaSession
from src.shared.media.models import MediaItem, MediaKind


def _response_body() -> bytes:
    tweet = {
        "rest_id": "1782199752874246406",
        "core": {"user_results": {"result": {"legacy": {"screen_name": "XDevelopers"}}}},
        "legacy": {
            "id_str": "1782199752874246406",
            "created_at": "Mon Apr 22 14:41:30 +0000 2024",
            "extended_entities": {
                "media": [
                    {"type": "photo", "media_url_https": "https://pbs.twimg.com/media/a.jpg"},
                    {"type": "photo", "media_url_https": "https://pbs.twimg.com/media/b.jpg"},
                ]
            },
        },
    }
    return json.dumps({"data": {"tweetResult": {"result": tweet}}}).encode("utf-8")


class _RecordingDispatcher:
    def __init__(self):
        self.dispatched: list[list[MediaItem]] = []

    async def dispatch(self, items: Sequence[MediaItem]) -> DispatchReport:
        self.dispatched.append(list(items))
        return DispatchReport(
            downloads=[
                DownloadResult(
                    status=DownloadStatus.SUCCESS,
                    filename=f"{item.display_name}.jpg",
                    url=item.source_url,
                    record_ids=(item.record_id,),
                )
                for item in items
            ]
        )


class TestMediaApi(unittest.TestCase):
    def setUp(self):
        self.dispatcher = _RecordingDispatcher()
        self.session = MediaSession(dispatcher=self.dispatcher)
        app = FastAPI()
        app.include_router(create_media_router(session_provider=lambda: self.session))
        self.client = TestClient(app)

    def test_ingest_and_query_cache(self):
        """Ingested responses show up in the record cache."""
        resp = self.client.post("/api/media/responses", content=_response_body())
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"extracted": 2, "added": 2, "cached": 2})

        resp = self.client.get("/api/media/cache/1782199752874246406")
        data = resp.json()
        self.assertEqual(data["count"], 2)
        self.assertEqual(data["items"][0]["display_name"], "XDevelopers-1782199752874246406-20240422_144130-1")
        self.assertEqual(data["items"][0]["kind"], "image")
        self.assertEqual(data["items"][1]["position"], 2)

    def test_record_cache_separates_own_media_from_quoted(self):
        """Record cache reports quoted media in count and only its own in own_count."""
        self.session.cache.merge(
            [
                MediaItem(
                    kind=MediaKind.IMAGE,
                    source_url="https://pbs.twimg.com/media/quoted.jpg?name=orig",
                    display_name="bob-100-20240422_144130",
                    record_id="100",
                    referenced_by="200",
                ),
                MediaItem(
                    kind=MediaKind.VIDEO,
                    source_url="https://video.twimg.com/vid/own.mp4",
                    display_name="alice-200-20240422_144130",
                    record_id="200",
                ),
            ]
        )

        data = self.client.get("/api/media/cache/200").json()

        self.assertEqual(data["count"], 2)
        self.assertEqual(data["own_count"], 1)
        self.assertEqual(self.client.get("/api/media/cache/100").json()["own_count"], 1)

    def test_malformed_body_is_not_an_error(self):
        """A truncated body is ignored, not rejected."""
        resp = self.client.post("/api/media/responses", content=b"{truncated")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["added"], 0)

    def test_reset_cache(self):
        self.client.post("/api/media/responses", content=_response_body())
        resp = self.client.delete("/api/media/cache")
        self.assertEqual(resp.json(), {"count": 0, "items": []})
        self.assertEqual(self.client.get("/api/media/cache").json()["count"], 0)

    def test_download_by_status_url(self):
        """A status URL resolves to the record and downloads its media."""
        self.client.post("/api/media/responses", content=_response_body())

        resp = self.client.post(
            "/api/media/download",
            json={"status_url": "https://x.com/XDevelopers/status/1782199752874246406/photo/1"},
        )

        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["record_id"], "1782199752874246406")
        self.assertEqual(data["source"], "cache")
        self.assertEqual(data["report"]["succeeded"], 2)
        self.assertEqual(len(self.dispatcher.dispatched[0]), 2)

    def test_download_unknown_record_is_404(self):
        """A record with no media anywhere is a 404."""
        resp = self.client.post("/api/media/download", json={"record_id": "123"})
        self.assertEqual(resp.status_code, 404)
        self.assertIn("123", resp.json()["detail"])

    def test_download_explicit_items(self):
        item = {
            "kind": "video",
            "source_url": "https://video.twimg.com/vid/a.mp4",
            "display_name": "alice-9",
            "record_id": "9",
        }
        resp = self.client.post("/api/media/download", json={"items": [item]})

        self.assertEqual(resp.status_code, 200)
        self.assertIsNone(resp.json()["record_id"])
        self.assertEqual(self.dispatcher.dispatched[0][0].display_name, "alice-9")

    def test_download_rejects_bad_input(self):
        """Zero or several inputs and bad ids are a 400."""
        for body in (
            {},
            {"record_id": "1", "status_url": "https://x.com/a/status/1"},
            {"status_url": "https://example.com/a/status/1"},
            {"record_id": "abc"},
        ):
            with self.subTest(body=body):
                self.assertEqual(self.client.post("/api/media/download", json=body).status_code, 400)


if __name__ == "__main__":
    unittest.main()
