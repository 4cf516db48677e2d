from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Optional

from ..net.retry import RetryConfig
from ..net.proxy import ProxyConfig


DEFAULT_DOWNLOAD_ROOT = "downloads"
DEFAULT_FETCH_TIMEOUT_S = 30.0
DEFAULT_ARCHIVE_RELEASE_DELAY_S = 60.0


@dataclass(frozen=True)
class Credentials:
    """Session cookies used by the TweetDetail fallback (`ct0` doubles as CSRF token)."""

    auth_token: str
    ct0: str
    twid: Optional[str] = None

    def is_complete(self) -> bool:
        return bool(self.auth_token.strip()) and bool(self.ct0.strip())

    def to_cookie_string(self) -> str:
        parts = [
            f"auth_token={self.auth_token.strip()}",
            f"ct0={self.ct0.strip()}",
        ]
        if self.twid and self.twid.strip():
            parts.append(f"twid={self.twid.strip()}")
        return "; ".join(parts)

    def to_persist_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "auth_token": self.auth_token,
            "ct0": self.ct0,
        }
        if self.twid:
            data["twid"] = self.twid
        return data

    @classmethod
    def from_persist_dict(cls, data: dict[str, Any]) -> "Credentials":
        return cls(
            auth_token=str(data.get("auth_token", "") or ""),
            ct0=str(data.get("ct0", "") or ""),
            twid=(str(data.get("twid")) if data.get("twid") is not None else None),
        )


def _positive_float(value: Any, default: float) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= 0 else default


@dataclass
class GlobalSettings:
    credentials: Optional[Credentials] = None
    download_root: str = DEFAULT_DOWNLOAD_ROOT
    fetch_timeout_s: float = DEFAULT_FETCH_TIMEOUT_S
    archive_release_delay_s: float = DEFAULT_ARCHIVE_RELEASE_DELAY_S
    retry: Optional[RetryConfig] = None
    proxy: Optional[ProxyConfig] = None

    def credentials_configured(self) -> bool:
        return self.credentials is not None and self.credentials.is_complete()

    def get_retry(self) -> RetryConfig:
        """Get retry config, using defaults if not set."""
        return self.retry or RetryConfig()

    def get_proxy(self) -> ProxyConfig:
        """Get proxy config, using defaults if not set."""
        return self.proxy or ProxyConfig()

    def with_credentials(self, credentials: Optional[Credentials]) -> "GlobalSettings":
        return replace(self, credentials=credentials)

    def to_persist_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "version": 1,
            "download_root": self.download_root,
            "fetch_timeout_s": self.fetch_timeout_s,
            "archive_release_delay_s": self.archive_release_delay_s,
        }
        if self.credentials is not None:
            data["credentials"] = self.credentials.to_persist_dict()
        if self.retry is not None:
            data["retry"] = self.retry.to_persist_dict()
        if self.proxy is not None:
            data["proxy"] = self.proxy.to_persist_dict()
        return data

    @classmethod
    def from_persist_dict(cls, data: dict[str, Any]) -> "GlobalSettings":
        raw_creds = data.get("credentials")
        credentials = None
        if isinstance(raw_creds, dict):
            credentials = Credentials.from_persist_dict(raw_creds)

        download_root = str(data.get("download_root", DEFAULT_DOWNLOAD_ROOT) or DEFAULT_DOWNLOAD_ROOT)

        raw_retry = data.get("retry")
        retry = RetryConfig.from_persist_dict(raw_retry) if isinstance(raw_retry, dict) else None

        raw_proxy = data.get("proxy")
        proxy = ProxyConfig.from_persist_dict(raw_proxy) if isinstance(raw_proxy, dict) else None

        return cls(
            credentials=credentials,
            download_root=download_root,
            fetch_timeout_s=_positive_float(data.get("fetch_timeout_s"), DEFAULT_FETCH_TIMEOUT_S),
            archive_release_delay_s=_positive_float(
                data.get("archive_release_delay_s"), DEFAULT_ARCHIVE_RELEASE_DELAY_S
            ),
            retry=retry,
            proxy=proxy,
        )
