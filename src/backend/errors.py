"""
Error taxonomy for the extraction and download engine.

None of these abort the service: each one resolves to "fewer results" or
"fall back to a simpler path" at the layer that catches it.
"""

from __future__ import annotations

from typing import Optional


class MediaEngineError(Exception):
    """Base class for engine errors."""


class ParseFailure(MediaEngineError):
    """A response body (or URL) could not be parsed."""


class NetworkFailure(MediaEngineError):
    """
    A fetch or download was rejected.

    Attributes:
        status_code: HTTP status code, when the failure came from a response.
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CredentialMissing(MediaEngineError):
    """No session credentials (auth_token + ct0) for the detail fetch."""
