from __future__ import annotations

from .models import MediaItem, MediaKind

__all__ = [
    "MediaItem",
    "MediaKind",
]
