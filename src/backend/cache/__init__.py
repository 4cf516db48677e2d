"""
Session media cache with key-based deduplication.

Provides:
- (record_id, source_url) deduplication (dedup.py)
- Ordered, resettable media cache (media_cache.py)
"""

from .dedup import DedupIndex, DedupResult, dedupe, media_key
from .media_cache import MediaCache

__all__ = [
    "DedupIndex",
    "DedupResult",
    "MediaCache",
    "dedupe",
    "media_key",
]
