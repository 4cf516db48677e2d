"""
Download directory management.

Directory structure:
    <download_root>/<filename>

Saving follows a browser download manager's conflict policies: `uniquify`
(default) keeps existing files and picks `name (1).ext`, `name (2).ext`, ...;
`overwrite` replaces them. Writes are atomic (temp file + replace).
"""

from __future__ import annotations

import os
import tempfile
from enum import Enum
from pathlib import Path, PurePath


class ConflictPolicy(str, Enum):
    """What to do when the target filename already exists."""
    UNIQUIFY = "uniquify"
    OVERWRITE = "overwrite"


def _safe_filename(filename: str) -> str:
    # Keep only the final component so names cannot escape the root.
    name = PurePath(filename.replace("\\", "/")).name.strip()
    if not name or name in (".", ".."):
        raise ValueError(f"invalid filename: {filename!r}")
    return name


class DownloadStorage:
    """
    Saves downloaded files under a single download root.

    Usage:
        storage = DownloadStorage(Path("downloads"))
        path = storage.save("alice-42.jpg", data)  # downloads/alice-42.jpg
        path = storage.save("alice-42.jpg", data)  # downloads/alice-42 (1).jpg
    """

    def __init__(self, download_root: Path):
        self._download_root = Path(download_root).resolve()

    @property
    def download_root(self) -> Path:
        return self._download_root

    def ensure_root(self) -> Path:
        """
        Create the download root if needed.

        Raises:
            OSError: If the directory cannot be created.
        """
        self._download_root.mkdir(parents=True, exist_ok=True)
        return self._download_root

    def resolve_target(self, filename: str, conflict: ConflictPolicy = ConflictPolicy.UNIQUIFY) -> Path:
        """
        Path a file named `filename` would be saved to.

        Raises:
            ValueError: If `filename` has no usable final component.
        """
        name = _safe_filename(filename)
        target = self._download_root / name
        if conflict == ConflictPolicy.OVERWRITE or not target.exists():
            return target

        stem, suffix = target.stem, target.suffix
        n = 1
        while True:
            candidate = self._download_root / f"{stem} ({n}){suffix}"
            if not candidate.exists():
                return candidate
            n += 1

    def save(
        self,
        filename: str,
        content: bytes,
        conflict: ConflictPolicy = ConflictPolicy.UNIQUIFY,
    ) -> Path:
        """
        Write `content` under `filename` honoring the conflict policy.

        Returns:
            Final path of the saved file.

        Raises:
            OSError: If the file cannot be written.
        """
        self.ensure_root()
        final_path = self.resolve_target(filename, conflict)
        fd, tmp_path_str = tempfile.mkstemp(
            dir=str(final_path.parent),
            prefix=f".{final_path.name}.",
            suffix=".tmp",
        )
        tmp_path = Path(tmp_path_str)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, final_path)
        finally:
            try:
                tmp_path.unlink()
            except FileNotFoundError:
                pass
        return final_path

    def list_files(self) -> list[Path]:
        """Saved files (temp files excluded)."""
        if not self._download_root.exists():
            return []
        return sorted(
            f
            for f in self._download_root.iterdir()
            if f.is_file() and not f.name.startswith(".")
        )
