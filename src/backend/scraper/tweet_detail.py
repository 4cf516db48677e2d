from __future__ import annotations

import logging
import tempfile
from typing import Any, Callable, Optional

from src.backend.cache.dedup import dedupe
from src.backend.errors import CredentialMissing, NetworkFailure, ParseFailure
from src.backend.net.fetch import DEFAULT_USER_AGENT
from src.backend.net.retry import RetryConfig, with_retry_async
from src.shared.media.models import MediaItem

from ..settings.models import Credentials
from .media_extractor import extract

CredentialsProvider = Callable[[], Optional[Credentials]]
# (accounts_db_path, proxy) -> twscrape.API-compatible object
ApiFactory = Callable[[str, Optional[str]], Any]

logger = logging.getLogger(__name__)


def _default_api_factory(debug: bool) -> ApiFactory:
    try:
        from twscrape import API  # type: ignore
    except Exception as exc:  # noqa: BLE001
        raise RuntimeError("Missing dependency twscrape: install the project (twscrape>=0.17.0)") from exc

    def factory(accounts_db: str, proxy: Optional[str]) -> Any:
        return API(
            pool=accounts_db,
            debug=debug,
            proxy=proxy,
            raise_when_no_account=False,
        )

    return factory


def _parse_record_id(record_id: str) -> int:
    raw = (record_id or "").strip()
    if not raw.isdigit():
        raise ValueError(f"record id must be numeric: {record_id!r}")
    return int(raw)


class TweetDetailClient:
    """
    Last-resort fetch of a single record through the TweetDetail endpoint.

    Used when the session cache has nothing for a record (e.g. the page was
    rendered from a response the interceptor never saw). Backed by `twscrape`
    with cookie credentials; each call uses a throwaway accounts database.
    """

    def __init__(
        self,
        *,
        credentials_provider: CredentialsProvider,
        proxy: Optional[str] = None,
        retry: Optional[RetryConfig] = None,
        debug: bool = False,
        account_username: str = "xmd_cookie",
        api_factory: Optional[ApiFactory] = None,
    ) -> None:
        self._credentials_provider = credentials_provider
        self._proxy = proxy
        self._retry = retry or RetryConfig()
        self._debug = debug
        self._account_username = account_username
        self._api_factory = api_factory

    def _credentials(self) -> Credentials:
        credentials = self._credentials_provider()
        if credentials is None or not credentials.is_complete():
            raise CredentialMissing("session credentials not configured (need auth_token + ct0)")
        return credentials

    async def fetch_document(self, record_id: str) -> Any:
        """
        Fetch the raw TweetDetail JSON for `record_id`.

        Raises:
            ValueError: If `record_id` is not numeric.
            CredentialMissing: If no usable credentials are configured.
            NetworkFailure: If the request fails or no response is returned.
            ParseFailure: If the response body is not JSON.
        """
        tweet_id = _parse_record_id(record_id)
        credentials = self._credentials()
        factory = self._api_factory or _default_api_factory(self._debug)

        with tempfile.TemporaryDirectory(prefix="xmd_twscrape_") as tmpdir:
            api = factory(f"{tmpdir}/accounts.db", self._proxy or None)
            await api.pool.add_account(
                self._account_username,
                "x",
                "xmd@example.com",
                "x",
                cookies=credentials.to_cookie_string(),
                user_agent=DEFAULT_USER_AGENT,
            )

            rep = await with_retry_async(lambda: api.tweet_details_raw(tweet_id), config=self._retry)
            if rep is None:
                raise NetworkFailure(
                    "TweetDetail request failed (session expired, account locked or rate limited)"
                )

            try:
                return rep.json()
            except ValueError as exc:
                raise ParseFailure(f"TweetDetail response is not JSON: {exc}") from exc

    async def fetch_record_media(self, record_id: str) -> list[MediaItem]:
        """
        Media of `record_id` only; quoted or surrounding records in the
        conversation are ignored.
        """
        document = await self.fetch_document(record_id)
        target = record_id.strip()
        items = [item for item in dedupe(extract(document)) if item.record_id == target]
        logger.info("TweetDetail fallback found %d media item(s) for %s", len(items), target)
        return items
