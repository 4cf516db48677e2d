from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from .pipeline.api import create_media_router
from .pipeline.session import MediaSession, build_media_session
from .settings.api import create_settings_router
from .settings.models import GlobalSettings
from .settings.store import SettingsStore

logger = logging.getLogger(__name__)


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def create_app(*, repo_root: Optional[Path] = None) -> FastAPI:
    repo_root = repo_root or _repo_root()
    data_dir = repo_root / "data"
    config_path = data_dir / "config.json"

    store = SettingsStore(path=config_path)
    app = FastAPI(title="x-media-grabber-local")
    app.state.settings_store = store
    app.state.repo_root = repo_root
    app.state.media_session = build_media_session(store=store, repo_root=repo_root)

    def current_session() -> MediaSession:
        return app.state.media_session

    def rebuild_session(_settings: GlobalSettings) -> None:
        # Settings changes apply to the next download; extracted media survives.
        previous: MediaSession = app.state.media_session
        app.state.media_session = build_media_session(store=store, repo_root=repo_root, cache=previous.cache)
        logger.info("Settings changed, media session rebuilt")

    app.include_router(create_settings_router(store=store, repo_root=repo_root, on_change=rebuild_session))
    app.include_router(create_media_router(session_provider=current_session))
    return app


app = create_app()
