"""
Proxy configuration shared by media fetches (urllib) and detail requests
(twscrape).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse
from urllib.request import ProxyHandler

VALID_PROXY_SCHEMES = frozenset({"http", "https", "socks4", "socks5"})


@dataclass
class ProxyConfig:
    """
    Proxy configuration.

    Attributes:
        enabled: Whether proxy is enabled.
        url: Proxy URL (e.g., "http://host:port", "socks5://host:port").
    """
    enabled: bool = False
    url: str = ""

    def is_active(self) -> bool:
        return self.enabled and bool(self.url.strip())

    def get_url(self) -> Optional[str]:
        """Proxy URL if active, else None."""
        return self.url.strip() if self.is_active() else None

    def to_persist_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "url": self.url,
        }

    @classmethod
    def from_persist_dict(cls, data: dict[str, Any]) -> "ProxyConfig":
        return cls(
            enabled=bool(data.get("enabled", False)),
            url=str(data.get("url", "") or ""),
        )

    def validate(self) -> tuple[bool, str]:
        """
        Validate the proxy configuration.

        Returns:
            (is_valid, error_message) tuple.
        """
        if not self.enabled:
            return True, ""

        url = self.url.strip()
        if not url:
            return False, "Proxy is enabled but URL is empty"

        try:
            parsed = urlparse(url)
        except ValueError as exc:
            return False, f"Invalid proxy URL: {exc}"

        if not parsed.scheme:
            return False, "Proxy URL must include scheme (e.g., http://, socks5://)"

        if parsed.scheme.lower() not in VALID_PROXY_SCHEMES:
            return False, f"Unsupported proxy scheme: {parsed.scheme}. Use: {', '.join(sorted(VALID_PROXY_SCHEMES))}"

        if not parsed.netloc:
            return False, "Proxy URL must include host (and optionally port)"

        return True, ""


def get_urllib_proxy_handlers(config: Optional[ProxyConfig]) -> dict[str, str]:
    """
    Per-protocol proxy mapping for urllib.

    Returns:
        {"http": url, "https": url}, or {} if the proxy is not active.
    """
    url = config.get_url() if config is not None else None
    if not url:
        return {}
    return {"http": url, "https": url}


def build_proxy_handler(config: Optional[ProxyConfig]) -> ProxyHandler:
    """
    urllib handler routing requests through the proxy.

    An inactive proxy yields a handler with an empty mapping, which disables
    environment proxies as well so the setting is authoritative.
    """
    return ProxyHandler(get_urllib_proxy_handlers(config))
