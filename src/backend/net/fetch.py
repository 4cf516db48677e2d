"""
Blocking media byte fetcher (urllib) with retry and optional proxy.

Async callers go through `fetch_async`, which runs the request in a worker
thread so the event loop keeps serving other downloads.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, build_opener

from src.backend.errors import NetworkFailure

from .proxy import ProxyConfig, build_proxy_handler
from .retry import RetryableError, RetryConfig, with_retry

DEFAULT_TIMEOUT_S = 30.0
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

logger = logging.getLogger(__name__)


class MediaFetcher:
    """
    Fetch media bytes from X's CDN (pbs.twimg.com / video.twimg.com).

    Usage:
        fetcher = MediaFetcher(timeout_s=30.0, retry=RetryConfig(), proxy=None)
        data = fetcher.fetch("https://pbs.twimg.com/media/abc.jpg?name=orig")
        data = await fetcher.fetch_async(url)
    """

    def __init__(
        self,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        retry: Optional[RetryConfig] = None,
        proxy: Optional[ProxyConfig] = None,
    ) -> None:
        self._timeout_s = timeout_s
        self._retry = retry or RetryConfig()
        self._opener = build_opener(build_proxy_handler(proxy))
        self._headers = {
            "User-Agent": DEFAULT_USER_AGENT,
            "Accept": "*/*",
            "Referer": "https://x.com/",
        }

    def _fetch_once(self, url: str) -> bytes:
        req = Request(url, headers=self._headers)
        try:
            with self._opener.open(req, timeout=self._timeout_s) as resp:
                return resp.read()
        except HTTPError as exc:
            status = int(getattr(exc, "code", 0) or 0)
            raise RetryableError(
                f"HTTP {status} for {url}",
                status_code=status,
                should_retry=self._retry.is_retryable_status(status),
            ) from exc
        except (URLError, TimeoutError, ConnectionError) as exc:
            raise RetryableError(f"Network error for {url}: {exc}") from exc

    def fetch(self, url: str) -> bytes:
        """
        Download `url` fully into memory.

        Raises:
            NetworkFailure: Once retries are exhausted or on a non-retryable
                status.
        """
        try:
            return with_retry(lambda: self._fetch_once(url), config=self._retry)
        except NetworkFailure:
            raise
        except (OSError, ValueError) as exc:
            raise NetworkFailure(f"Fetch failed for {url}: {exc}") from exc

    async def fetch_async(self, url: str) -> bytes:
        return await asyncio.to_thread(self.fetch, url)
