"""
Session-scoped media cache.

Holds every item extracted during one page/navigation session, merged in
arrival order and deduplicated by (record_id, source_url). The session owner
clears it on a navigation reset.
"""

from __future__ import annotations

import logging
from typing import Iterable

from src.shared.media.models import MediaItem

from .dedup import DedupIndex, DedupResult

logger = logging.getLogger(__name__)


class MediaCache:
    """
    Ordered, deduplicated store of extracted media.

    Usage:
        cache = MediaCache()
        cache.merge(extract(document))
        items = cache.query_by_record("1782199752874246406")
        cache.reset()  # on navigation
    """

    def __init__(self) -> None:
        self._items: list[MediaItem] = []
        self._index = DedupIndex()

    def __len__(self) -> int:
        return len(self._items)

    @property
    def dedup_index(self) -> DedupIndex:
        return self._index

    def merge(self, new_items: Iterable[MediaItem]) -> int:
        """
        Append items whose key is not cached yet.

        Merging the same items twice adds nothing the second time.

        Returns:
            Number of items added.
        """
        added = 0
        for item in new_items:
            if self._index.check_and_register(item) == DedupResult.NEW:
                self._items.append(item)
                added += 1
        if added:
            logger.debug("Media cache merged %d new item(s), %d cached", added, len(self._items))
        return added

    def query_by_record(self, record_id: str) -> list[MediaItem]:
        """
        Items belonging to a record, including media of records it quotes.

        Returns:
            Items whose record_id or referenced_by equals `record_id`, in
            cache order.
        """
        return [
            item
            for item in self._items
            if item.record_id == record_id or item.referenced_by == record_id
        ]

    def count_for_record(self, record_id: str) -> int:
        """Number of items directly attached to `record_id`."""
        return sum(1 for item in self._items if item.record_id == record_id)

    def snapshot(self) -> list[MediaItem]:
        return list(self._items)

    def reset(self) -> None:
        dropped = len(self._items)
        self._items.clear()
        self._index.clear()
        logger.info("Media cache reset (%d item(s) dropped)", dropped)
