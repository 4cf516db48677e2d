"""
Network utilities: media fetcher, retry with exponential backoff, and proxy config.
"""

from .fetch import MediaFetcher
from .retry import (
    RetryConfig,
    RetryableError,
    with_retry,
    with_retry_async,
)
from .proxy import ProxyConfig

__all__ = [
    "MediaFetcher",
    "RetryConfig",
    "RetryableError",
    "with_retry",
    "with_retry_async",
    "ProxyConfig",
]
