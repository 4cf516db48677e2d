"""
Media file naming conventions.

Stem format: <handle>-<recordId>[-<YYYYMMDD_HHMMSS>][-<position>]

- handle: author screen name of the record
- recordId: id of the record (tweet) containing the media
- YYYYMMDD_HHMMSS: creation time of the record in UTC (omitted if unknown)
- position: 1-based media index, only when the record has several media

Final filename: <stem>.<ext>, with the extension taken from the media URL.
Archives are named after the first image's stem without its position.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Sequence
from urllib.parse import urlparse

from src.shared.media.models import MediaItem

# Primary media handled is video, so an extensionless URL is assumed mp4.
DEFAULT_EXTENSION = "mp4"
ARCHIVE_EXTENSION = "zip"

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


def parse_created_at(value: Any) -> datetime:
    """
    Parse X legacy `created_at`.

    Examples:
    - "Mon Apr 22 14:41:30 +0000 2024"
    - ISO-8601 variants (fallback)

    Raises:
        ValueError: If the value is missing or matches neither format.
    """

    if not isinstance(value, str) or not value.strip():
        raise ValueError("created_at missing")

    raw = value.strip()

    try:
        dt = datetime.strptime(raw, "%a %b %d %H:%M:%S %z %Y")
        return dt.astimezone(timezone.utc)
    except ValueError:
        pass

    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    dt = datetime.fromisoformat(raw)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_record_timestamp(created_at: Any) -> str:
    """
    Render a record's creation time as `YYYYMMDD_HHMMSS` (UTC).

    Returns:
        The formatted timestamp, or "" when absent or unparseable.
    """
    try:
        return parse_created_at(created_at).strftime(TIMESTAMP_FORMAT)
    except ValueError:
        return ""


def build_display_name(
    handle: str,
    record_id: str,
    timestamp: str,
    index: int,
    total: int,
) -> str:
    """
    Build the filename stem for one media element of a record.

    Args:
        handle: Author screen name.
        record_id: Record identifier.
        timestamp: Output of `format_record_timestamp` ("" to omit).
        index: 0-based position of the element in the record's media list.
        total: Number of media elements in the record.

    Returns:
        `{handle}-{record_id}[-{timestamp}]`, suffixed with `-{index + 1}`
        when `total > 1`.
    """
    base = f"{handle}-{record_id}"
    if timestamp:
        base = f"{base}-{timestamp}"
    if total > 1:
        return f"{base}-{index + 1}"
    return base


def get_extension_from_url(url: str, default: str = DEFAULT_EXTENSION) -> str:
    """
    Extract a file extension from the last segment of a URL path.

    Args:
        url: The media URL.
        default: Extension used when the URL carries none.

    Returns:
        Extension without dot.
    """
    try:
        path = urlparse(url).path
    except ValueError:
        return default

    last_segment = path.rsplit("/", 1)[-1]
    if "." not in last_segment:
        return default

    ext = last_segment.rsplit(".", 1)[-1]
    if not ext or not ext.isalnum():
        return default
    return ext


def media_filename(item: MediaItem) -> str:
    """Final filename for an individual download: `{stem}.{ext}`."""
    return f"{item.display_name}.{get_extension_from_url(item.source_url)}"


def strip_position_suffix(item: MediaItem) -> str:
    """
    Recover the shared base stem of a multi-media record.

    Only a positional suffix is removed, so a single-media stem such as
    `alice-42` is returned unchanged.
    """
    stem = item.display_name
    suffix = f"-{item.position}" if item.position is not None else None
    if suffix and stem.endswith(suffix):
        return stem[: -len(suffix)]
    return stem


def archive_filename(items: Sequence[MediaItem]) -> Optional[str]:
    """
    Name of the zip bundling `items`, derived from the first item.

    Returns:
        `{base stem}.zip`, or None for an empty sequence.
    """
    if not items:
        return None
    return f"{strip_position_suffix(items[0])}.{ARCHIVE_EXTENSION}"
