"""
Exponential backoff retry for media fetches and detail requests.

Transient failures (429, 5xx, connection errors wrapped as RetryableError) are
retried a few times; anything else propagates on the first attempt.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Set, TypeVar

from src.backend.errors import NetworkFailure

DEFAULT_MAX_RETRIES = 2
DEFAULT_BASE_DELAY_S = 1.5
DEFAULT_MAX_DELAY_S = 30.0
DEFAULT_JITTER_FACTOR = 0.25  # 25% jitter on top of computed delay

DEFAULT_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

T = TypeVar("T")
logger = logging.getLogger(__name__)


class RetryableError(NetworkFailure):
    """
    Network failure that may be retried.

    Attributes:
        should_retry: Whether this error should trigger another attempt.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        should_retry: bool = True,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.should_retry = should_retry


def _clamped(value: Any, default: float, *, low: float, high: Optional[float] = None) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        parsed = default
    parsed = max(low, parsed)
    if high is not None:
        parsed = min(high, parsed)
    return parsed


@dataclass
class RetryConfig:
    """
    Configuration for retry with exponential backoff.

    Attributes:
        max_retries: Retries after the first attempt (0 = single attempt).
        base_delay_s: Delay before the first retry.
        max_delay_s: Cap for the exponential delay.
        jitter_factor: Random jitter as fraction of computed delay (0.0-1.0).
        retryable_status_codes: HTTP status codes that trigger a retry.
        enabled: If False, functions run exactly once.
    """
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_s: float = DEFAULT_BASE_DELAY_S
    max_delay_s: float = DEFAULT_MAX_DELAY_S
    jitter_factor: float = DEFAULT_JITTER_FACTOR
    retryable_status_codes: Set[int] = field(
        default_factory=lambda: set(DEFAULT_RETRYABLE_STATUS_CODES)
    )
    enabled: bool = True

    def to_persist_dict(self) -> dict:
        return {
            "max_retries": self.max_retries,
            "base_delay_s": self.base_delay_s,
            "max_delay_s": self.max_delay_s,
            "jitter_factor": self.jitter_factor,
            "retryable_status_codes": sorted(self.retryable_status_codes),
            "enabled": self.enabled,
        }

    @classmethod
    def from_persist_dict(cls, data: dict) -> "RetryConfig":
        try:
            max_retries = int(data.get("max_retries", DEFAULT_MAX_RETRIES))
        except (TypeError, ValueError):
            max_retries = DEFAULT_MAX_RETRIES

        codes: set[int] = set()
        raw_codes = data.get("retryable_status_codes")
        if isinstance(raw_codes, (list, tuple)):
            for code in raw_codes:
                try:
                    codes.add(int(code))
                except (TypeError, ValueError):
                    continue

        return cls(
            max_retries=max(0, max_retries),
            base_delay_s=_clamped(data.get("base_delay_s"), DEFAULT_BASE_DELAY_S, low=0.1),
            max_delay_s=_clamped(data.get("max_delay_s"), DEFAULT_MAX_DELAY_S, low=1.0),
            jitter_factor=_clamped(data.get("jitter_factor"), DEFAULT_JITTER_FACTOR, low=0.0, high=1.0),
            retryable_status_codes=codes or set(DEFAULT_RETRYABLE_STATUS_CODES),
            enabled=bool(data.get("enabled", True)),
        )

    def compute_delay(self, attempt: int) -> float:
        """
        Delay before retry number `attempt` (0-indexed): base * 2^attempt,
        capped at max_delay_s, plus jitter.
        """
        delay = min(self.base_delay_s * (2 ** attempt), self.max_delay_s)
        return delay + delay * random.uniform(0, self.jitter_factor)

    def is_retryable_status(self, status_code: int) -> bool:
        return status_code in self.retryable_status_codes


def extract_status_code(exc: BaseException) -> Optional[int]:
    """Best-effort HTTP status code of an exception (urllib, httpx, ours)."""
    status = getattr(exc, "status_code", None)
    if status is None:
        # urllib.error.HTTPError
        status = getattr(exc, "code", None)
    if status is None:
        # httpx.HTTPStatusError
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _retry_delay(exc: Exception, attempt: int, cfg: RetryConfig) -> Optional[float]:
    """Delay before the next attempt, or None if `exc` must propagate."""
    if attempt >= cfg.max_retries:
        return None
    if isinstance(exc, RetryableError):
        if not exc.should_retry:
            return None
    else:
        status = extract_status_code(exc)
        if status is None or not cfg.is_retryable_status(status):
            return None
    return cfg.compute_delay(attempt)


def _log_retry(attempt: int, cfg: RetryConfig, delay: float, exc: Exception) -> None:
    logger.warning(
        "Retry %d/%d after %.2fs: %s",
        attempt + 1,
        cfg.max_retries,
        delay,
        exc,
    )


def with_retry(
    func: Callable[[], T],
    *,
    config: Optional[RetryConfig] = None,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
) -> T:
    """
    Call `func` with retry and exponential backoff (blocking).

    Raises:
        The last exception once retries are exhausted or it is not retryable.
    """
    cfg = config or RetryConfig()
    if not cfg.enabled:
        return func()

    attempt = 0
    while True:
        try:
            return func()
        except Exception as exc:
            delay = _retry_delay(exc, attempt, cfg)
            if delay is None:
                raise
            if on_retry:
                on_retry(attempt, exc, delay)
            else:
                _log_retry(attempt, cfg, delay, exc)
            time.sleep(delay)
            attempt += 1


async def with_retry_async(
    func: Callable[[], Awaitable[T]],
    *,
    config: Optional[RetryConfig] = None,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
) -> T:
    """
    Await `func()` with retry and exponential backoff.

    Raises:
        The last exception once retries are exhausted or it is not retryable.
    """
    cfg = config or RetryConfig()
    if not cfg.enabled:
        return await func()

    attempt = 0
    while True:
        try:
            return await func()
        except Exception as exc:
            delay = _retry_delay(exc, attempt, cfg)
            if delay is None:
                raise
            if on_retry:
                on_retry(attempt, exc, delay)
            else:
                _log_retry(attempt, cfg, delay, exc)
            await asyncio.sleep(delay)
            attempt += 1
