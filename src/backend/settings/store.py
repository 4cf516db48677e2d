from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Callable, Mapping, Optional

from .models import Credentials, GlobalSettings

# Environment fallback for credentials not saved through the settings API.
ENV_AUTH_TOKEN = "XMD_AUTH_TOKEN"
ENV_CT0 = "XMD_CT0"
ENV_TWID = "XMD_TWID"

logger = logging.getLogger(__name__)


def credentials_from_env(environ: Optional[Mapping[str, str]] = None) -> Optional[Credentials]:
    env = os.environ if environ is None else environ
    auth_token = (env.get(ENV_AUTH_TOKEN) or "").strip()
    ct0 = (env.get(ENV_CT0) or "").strip()
    twid = (env.get(ENV_TWID) or "").strip() or None
    if not (auth_token and ct0):
        return None
    return Credentials(auth_token=auth_token, ct0=ct0, twid=twid)


class SettingsStore:
    """
    JSON-file backed GlobalSettings.

    Stored credentials win; environment credentials are only used when the
    file has none, and are never written back.
    """

    def __init__(self, *, path: Path, environ: Optional[Mapping[str, str]] = None) -> None:
        self._path = path
        self._environ = environ
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _load_file(self) -> GlobalSettings:
        if not self._path.exists():
            return GlobalSettings()

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable settings file %s: %s", self._path, exc)
            return GlobalSettings()

        if not isinstance(raw, dict):
            logger.warning("Ignoring settings file %s: top-level value is not an object", self._path)
            return GlobalSettings()

        return GlobalSettings.from_persist_dict(raw)

    def load(self) -> GlobalSettings:
        with self._lock:
            settings = self._load_file()
        if not settings.credentials_configured():
            env_creds = credentials_from_env(self._environ)
            if env_creds is not None:
                settings = settings.with_credentials(env_creds)
        return settings

    def load_credentials(self) -> Optional[Credentials]:
        settings = self.load()
        return settings.credentials if settings.credentials_configured() else None

    def save(self, settings: GlobalSettings) -> None:
        payload = settings.to_persist_dict()

        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
            tmp_path.replace(self._path)

    def update(self, *, mutator: Callable[[GlobalSettings], GlobalSettings]) -> GlobalSettings:
        with self._lock:
            current = self._load_file()
            updated = mutator(current)
            if not isinstance(updated, GlobalSettings):
                raise TypeError("mutator must return GlobalSettings")
            self.save(updated)
            return updated

    def clear_credentials(self) -> GlobalSettings:
        return self.update(mutator=lambda settings: settings.with_credentials(None))
