from __future__ import annotations

import tempfile
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..net.retry import RetryConfig
from ..net.proxy import ProxyConfig
from .models import Credentials, GlobalSettings
from .store import SettingsStore

# Called with the saved settings after every successful change.
SettingsListener = Callable[[GlobalSettings], None]


class CredentialsIn(BaseModel):
    auth_token: str = Field(min_length=1)
    ct0: str = Field(min_length=1)
    twid: Optional[str] = None


class DownloadRootIn(BaseModel):
    download_root: str = Field(min_length=1)


class DownloadOptionsIn(BaseModel):
    fetch_timeout_s: float = Field(gt=0.0, le=600.0, default=30.0)
    archive_release_delay_s: float = Field(ge=0.0, le=3600.0, default=60.0)


class RetryIn(BaseModel):
    max_retries: int = Field(ge=0, le=10, default=2)
    base_delay_s: float = Field(ge=0.1, le=60.0, default=1.5)
    max_delay_s: float = Field(ge=1.0, le=300.0, default=30.0)
    enabled: bool = True


class ProxyIn(BaseModel):
    enabled: bool = False
    url: str = ""


class CredentialsStatusOut(BaseModel):
    configured: bool
    auth_token_set: bool
    ct0_set: bool
    twid_set: bool


class RetryOut(BaseModel):
    max_retries: int
    base_delay_s: float
    max_delay_s: float
    enabled: bool


class ProxyOut(BaseModel):
    enabled: bool
    url_configured: bool  # Don't expose actual URL for security


class SettingsOut(BaseModel):
    credentials: CredentialsStatusOut
    download_root: str
    fetch_timeout_s: float
    archive_release_delay_s: float
    retry: RetryOut
    proxy: ProxyOut


def _public_settings(settings: GlobalSettings) -> SettingsOut:
    auth_token_set = bool(settings.credentials and settings.credentials.auth_token.strip())
    ct0_set = bool(settings.credentials and settings.credentials.ct0.strip())
    twid_set = bool(settings.credentials and (settings.credentials.twid or "").strip())

    retry = settings.get_retry()
    proxy = settings.get_proxy()

    return SettingsOut(
        credentials=CredentialsStatusOut(
            configured=bool(auth_token_set and ct0_set),
            auth_token_set=auth_token_set,
            ct0_set=ct0_set,
            twid_set=twid_set,
        ),
        download_root=settings.download_root,
        fetch_timeout_s=settings.fetch_timeout_s,
        archive_release_delay_s=settings.archive_release_delay_s,
        retry=RetryOut(
            max_retries=retry.max_retries,
            base_delay_s=retry.base_delay_s,
            max_delay_s=retry.max_delay_s,
            enabled=retry.enabled,
        ),
        proxy=ProxyOut(
            enabled=proxy.enabled,
            url_configured=bool(proxy.url.strip()),
        ),
    )


def _resolve_download_root(download_root: str, *, repo_root: Path) -> Path:
    raw = download_root.strip()
    if not raw:
        raise ValueError("Download Root 不能为空")

    p = Path(raw).expanduser()
    if not p.is_absolute():
        p = (repo_root / p).resolve()
    return p


def _ensure_dir_writable(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ValueError(f"无法创建目录：{exc}") from exc

    if not path.is_dir():
        raise ValueError("Download Root 不是目录")

    try:
        with tempfile.NamedTemporaryFile(prefix=".xmd_write_test_", dir=str(path), delete=True):
            pass
    except PermissionError as exc:
        raise ValueError("Download Root 无写权限") from exc
    except OSError as exc:
        raise ValueError(f"无法写入 Download Root：{exc}") from exc


def _replace_settings(store: SettingsStore, **changes: Any) -> GlobalSettings:
    return store.update(mutator=lambda settings: replace(settings, **changes))


def create_settings_router(
    *, store: SettingsStore, repo_root: Path, on_change: Optional[SettingsListener] = None
) -> APIRouter:
    router = APIRouter(prefix="/api/settings", tags=["settings"])

    def _saved(updated: GlobalSettings) -> SettingsOut:
        if on_change is not None:
            on_change(updated)
        # Report the effective view (environment credentials included).
        return _public_settings(store.load())

    @router.get("", response_model=SettingsOut)
    def get_settings() -> SettingsOut:
        return _public_settings(store.load())

    @router.post("/credentials", response_model=SettingsOut)
    def set_credentials(body: CredentialsIn) -> SettingsOut:
        twid = body.twid.strip() if body.twid and body.twid.strip() else None
        creds = Credentials(auth_token=body.auth_token.strip(), ct0=body.ct0.strip(), twid=twid)
        return _saved(_replace_settings(store, credentials=creds))

    @router.delete("/credentials", response_model=SettingsOut)
    def clear_credentials() -> SettingsOut:
        return _saved(store.clear_credentials())

    @router.post("/download-root", response_model=SettingsOut)
    def set_download_root(body: DownloadRootIn) -> SettingsOut:
        try:
            root = _resolve_download_root(body.download_root, repo_root=repo_root)
            _ensure_dir_writable(root)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        return _saved(_replace_settings(store, download_root=str(root)))

    @router.post("/download-options", response_model=SettingsOut)
    def set_download_options(body: DownloadOptionsIn) -> SettingsOut:
        return _saved(
            _replace_settings(
                store,
                fetch_timeout_s=body.fetch_timeout_s,
                archive_release_delay_s=body.archive_release_delay_s,
            )
        )

    @router.post("/retry", response_model=SettingsOut)
    def set_retry(body: RetryIn) -> SettingsOut:
        if body.max_delay_s < body.base_delay_s:
            raise HTTPException(status_code=400, detail="max_delay_s must be >= base_delay_s")

        retry = RetryConfig(
            max_retries=body.max_retries,
            base_delay_s=body.base_delay_s,
            max_delay_s=body.max_delay_s,
            enabled=body.enabled,
        )

        return _saved(_replace_settings(store, retry=retry))

    @router.post("/proxy", response_model=SettingsOut)
    def set_proxy(body: ProxyIn) -> SettingsOut:
        proxy = ProxyConfig(
            enabled=body.enabled,
            url=body.url.strip(),
        )

        is_valid, error = proxy.validate()
        if not is_valid:
            raise HTTPException(status_code=400, detail=error)

        return _saved(_replace_settings(store, proxy=proxy))

    @router.delete("/proxy", response_model=SettingsOut)
    def clear_proxy() -> SettingsOut:
        return _saved(_replace_settings(store, proxy=ProxyConfig(enabled=False, url="")))

    return router
