"""
Tests for src/backend/settings/models.py and store.py

Covers:
- Persistence and sanitizing of stored settings
- Environment credential fallback
"""

import json
import tempfile
import unittest
from dataclasses import replace
from pathlib import Path

from src.backend.net.proxy import ProxyConfig
from src.backend.net.retry import RetryConfig
from src.backend.settings.models import Credentials, GlobalSettings
from src.backend.settings.store import SettingsStore, credentials_from_env


class TestCredentials(unittest.TestCase):
    def test_cookie_string(self):
        self.assertEqual(Credentials(auth_token=" a ", ct0="b").to_cookie_string(), "auth_token=a; ct0=b")
        self.assertEqual(
            Credentials(auth_token="a", ct0="b", twid="u%3D1").to_cookie_string(),
            "auth_token=a; ct0=b; twid=u%3D1",
        )

    def test_completeness(self):
        self.assertTrue(Credentials(auth_token="a", ct0="b").is_complete())
        self.assertFalse(Credentials(auth_token="a", ct0="  ").is_complete())


class TestSettingsStore(unittest.TestCase):
    def test_missing_file_yields_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            settings = SettingsStore(path=Path(tmpdir) / "config.json", environ={}).load()

            self.assertIsNone(settings.credentials)
            self.assertEqual(settings.download_root, "downloads")
            self.assertEqual(settings.fetch_timeout_s, 30.0)
            self.assertEqual(settings.archive_release_delay_s, 60.0)
            self.assertEqual(settings.get_retry().max_retries, 2)
            self.assertFalse(settings.get_proxy().is_active())

    def test_save_and_load_roundtrip(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "data" / "config.json"
            store = SettingsStore(path=path, environ={})
            store.save(
                GlobalSettings(
                    credentials=Credentials(auth_token="a", ct0="b", twid="t"),
                    download_root="/srv/media",
                    fetch_timeout_s=12.5,
                    archive_release_delay_s=5,
                    retry=RetryConfig(max_retries=4),
                    proxy=ProxyConfig(enabled=True, url="socks5://127.0.0.1:1080"),
                )
            )

            loaded = store.load()

            self.assertEqual(loaded.credentials, Credentials(auth_token="a", ct0="b", twid="t"))
            self.assertEqual(loaded.download_root, "/srv/media")
            self.assertEqual(loaded.fetch_timeout_s, 12.5)
            self.assertEqual(loaded.archive_release_delay_s, 5.0)
            self.assertEqual(loaded.get_retry().max_retries, 4)
            self.assertEqual(loaded.get_proxy().get_url(), "socks5://127.0.0.1:1080")
            self.assertEqual(json.loads(path.read_text(encoding="utf-8"))["version"], 1)
            self.assertFalse(path.with_suffix(".json.tmp").exists())

    def test_corrupt_file_falls_back_to_defaults(self):
        """A corrupt config file yields defaults."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            path.write_text("{not json", encoding="utf-8")

            with self.assertLogs("src.backend.settings.store", level="WARNING"):
                settings = SettingsStore(path=path, environ={}).load()

            self.assertEqual(settings.download_root, "downloads")

    def test_invalid_numbers_use_defaults(self):
        settings = GlobalSettings.from_persist_dict({"fetch_timeout_s": "soon", "archive_release_delay_s": -1})
        self.assertEqual(settings.fetch_timeout_s, 30.0)
        self.assertEqual(settings.archive_release_delay_s, 60.0)

    def test_environment_credentials_fill_in_but_are_not_persisted(self):
        """Environment credentials are used but never written."""
        env = {"XMD_AUTH_TOKEN": "env-token", "XMD_CT0": "env-ct0"}
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            store = SettingsStore(path=path, environ=env)

            self.assertEqual(store.load_credentials(), Credentials(auth_token="env-token", ct0="env-ct0"))

            store.update(mutator=lambda s: replace(s, download_root="/tmp/x"))
            self.assertNotIn("credentials", json.loads(path.read_text(encoding="utf-8")))

    def test_stored_credentials_win_over_environment(self):
        """Stored credentials take precedence over the environment."""
        env = {"XMD_AUTH_TOKEN": "env-token", "XMD_CT0": "env-ct0"}
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SettingsStore(path=Path(tmpdir) / "config.json", environ=env)
            store.update(mutator=lambda s: s.with_credentials(Credentials(auth_token="file", ct0="file")))

            self.assertEqual(store.load_credentials().auth_token, "file")

            store.clear_credentials()
            self.assertEqual(store.load_credentials().auth_token, "env-token")

    def test_incomplete_environment_is_ignored(self):
        self.assertIsNone(credentials_from_env({"XMD_AUTH_TOKEN": "only-token"}))
        self.assertIsNone(credentials_from_env({}))

    def test_update_requires_settings(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SettingsStore(path=Path(tmpdir) / "config.json", environ={})
            with self.assertRaises(TypeError):
                store.update(mutator=lambda s: None)


if __name__ == "__main__":
    unittest.main()
