"""
Key-based deduplication for extracted media.

Implements "first wins" deduplication across overlapping API responses:
- The key of an item is (record_id, source_url)
- The first occurrence of a key is kept, in first-seen order
- Later occurrences are dropped and counted as duplicates

The DedupIndex keeps the known keys for the lifetime of a media cache and is
cleared together with it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from src.shared.media.models import MediaItem

MediaKey = tuple[str, str]


def media_key(item: MediaItem) -> MediaKey:
    """Dedup key of an item: (record_id, source_url)."""
    return (item.record_id, item.source_url)


class DedupResult(str, Enum):
    """Result of a deduplication check."""
    NEW = "new"              # Key not seen yet, item should be kept
    DUPLICATE = "duplicate"  # Key already known, item should be skipped


@dataclass
class DedupIndex:
    """
    In-memory index of media keys seen so far.

    Usage:
        index = DedupIndex()
        for item in items:
            if index.check_and_register(item) == DedupResult.NEW:
                kept.append(item)
    """

    _keys: set[MediaKey] = field(default_factory=set)

    # Statistics
    _total_checked: int = 0
    _duplicates_found: int = 0

    @property
    def known_keys(self) -> frozenset[MediaKey]:
        return frozenset(self._keys)

    @property
    def total_checked(self) -> int:
        return self._total_checked

    @property
    def duplicates_found(self) -> int:
        return self._duplicates_found

    def is_known(self, item: MediaItem) -> bool:
        return media_key(item) in self._keys

    def check_and_register(self, item: MediaItem) -> DedupResult:
        """
        Check whether an item is a duplicate and register its key if new.

        Args:
            item: The extracted media item.

        Returns:
            DedupResult.NEW for a first occurrence, DUPLICATE otherwise.
        """
        self._total_checked += 1
        key = media_key(item)
        if key in self._keys:
            self._duplicates_found += 1
            return DedupResult.DUPLICATE
        self._keys.add(key)
        return DedupResult.NEW

    def clear(self) -> None:
        """Forget all keys and reset statistics."""
        self._keys.clear()
        self._total_checked = 0
        self._duplicates_found = 0

    def stats(self) -> dict:
        return {
            "total_checked": self._total_checked,
            "duplicates_found": self._duplicates_found,
            "unique_keys": len(self._keys),
        }


def dedupe(items: Iterable[MediaItem]) -> list[MediaItem]:
    """
    Drop repeated items, preserving first-seen order.

    `dedupe(items + items) == dedupe(items)` for any list of items.
    """
    index = DedupIndex()
    return [item for item in items if index.check_and_register(item) == DedupResult.NEW]
