"""
Stable domain model for extracted media (pure logic layer).

Goals:
- Carry only what naming, caching and dispatching need
- Round-trip through plain dicts for the HTTP API and CLI output
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    ANIMATED_GIF = "gif"

    @property
    def is_image(self) -> bool:
        return self is MediaKind.IMAGE


@dataclass(frozen=True)
class MediaItem:
    """
    One downloadable media element attached to a record (tweet).

    `referenced_by` is set only when the record was reached through a quote
    relationship; it holds the id of the quoting record.
    """

    kind: MediaKind
    source_url: str
    display_name: str
    record_id: str
    referenced_by: Optional[str] = None
    position: Optional[int] = None  # 1-based, None for single-media records

    @property
    def key(self) -> tuple[str, str]:
        return (self.record_id, self.source_url)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "source_url": self.source_url,
            "display_name": self.display_name,
            "record_id": self.record_id,
            "referenced_by": self.referenced_by,
            "position": self.position,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "MediaItem":
        referenced_by = data.get("referenced_by")
        position = data.get("position")
        return MediaItem(
            kind=MediaKind(str(data["kind"])),
            source_url=str(data["source_url"]),
            display_name=str(data["display_name"]),
            record_id=str(data["record_id"]),
            referenced_by=(str(referenced_by) if referenced_by is not None else None),
            position=(int(position) if position is not None else None),
        )
