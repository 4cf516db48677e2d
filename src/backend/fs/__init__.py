"""
File system utilities for media downloads.

Provides:
- Download directory management with conflict policies (storage.py)
- File naming conventions (naming.py)
- In-memory zip assembly for bundled images (archive_zip.py)
"""

from .storage import ConflictPolicy, DownloadStorage
from .naming import (
    archive_filename,
    build_display_name,
    format_record_timestamp,
    get_extension_from_url,
    media_filename,
)
from .archive_zip import ArchiveEntry, ArchiveResult, build_zip_archive

__all__ = [
    "ConflictPolicy",
    "DownloadStorage",
    "archive_filename",
    "build_display_name",
    "format_record_timestamp",
    "get_extension_from_url",
    "media_filename",
    "ArchiveEntry",
    "ArchiveResult",
    "build_zip_archive",
]
