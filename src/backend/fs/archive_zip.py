"""
In-memory zip assembly for bundled image downloads.

The dispatcher fetches every image of a record first, then packs them here
under their final filenames and hands the bytes to the download sink.
"""

from __future__ import annotations

import io
import zipfile
from typing import Iterable, NamedTuple


class ArchiveEntry(NamedTuple):
    """One file inside an archive."""
    filename: str
    data: bytes


class ArchiveResult(NamedTuple):
    """Result of an archive operation."""
    data: bytes
    files_archived: int
    bytes_archived: int


def build_zip_archive(entries: Iterable[ArchiveEntry]) -> ArchiveResult:
    """
    Pack entries into a deflate-compressed zip held in memory.

    Entries with a filename already used in the archive are stored with a
    ` (n)` suffix instead of overwriting.

    Args:
        entries: (filename, data) pairs.

    Returns:
        ArchiveResult with the zip bytes and statistics.

    Raises:
        ValueError: If there is nothing to archive.
        zipfile.BadZipFile / OSError: If compression fails.
    """
    buffer = io.BytesIO()
    used_names: set[str] = set()
    files_archived = 0
    bytes_archived = 0

    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for entry in entries:
            name = _unique_name(entry.filename, used_names)
            used_names.add(name)
            zf.writestr(name, entry.data)
            files_archived += 1
            bytes_archived += len(entry.data)

    if not files_archived:
        raise ValueError("no files to archive")

    return ArchiveResult(
        data=buffer.getvalue(),
        files_archived=files_archived,
        bytes_archived=bytes_archived,
    )


def _unique_name(filename: str, used: set[str]) -> str:
    if filename not in used:
        return filename
    stem, dot, ext = filename.rpartition(".")
    if not dot:
        stem, ext = filename, ""
    n = 1
    while True:
        candidate = f"{stem} ({n}).{ext}" if dot else f"{stem} ({n})"
        if candidate not in used:
            return candidate
        n += 1
