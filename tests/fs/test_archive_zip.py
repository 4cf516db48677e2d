"""
Tests for src/backend/fs/archive_zip.py
"""

import io
import unittest
import zipfile

from src.backend.fs.archive_zip import ArchiveEntry, build_zip_archive


class TestBuildZipArchive(unittest.TestCase):
    def test_entries_are_stored_under_their_filenames(self):
        """Each entry is stored under its own filename."""
        result = build_zip_archive(
            [
                ArchiveEntry("alice-42-1.jpg", b"first"),
                ArchiveEntry("alice-42-2.png", b"second!"),
            ]
        )

        self.assertEqual(result.files_archived, 2)
        self.assertEqual(result.bytes_archived, len(b"first") + len(b"second!"))
        with zipfile.ZipFile(io.BytesIO(result.data)) as zf:
            self.assertEqual(zf.namelist(), ["alice-42-1.jpg", "alice-42-2.png"])
            self.assertEqual(zf.read("alice-42-2.png"), b"second!")
            self.assertEqual(zf.getinfo("alice-42-1.jpg").compress_type, zipfile.ZIP_DEFLATED)

    def test_duplicate_names_are_suffixed(self):
        """Colliding entry names get a numbered suffix."""
        result = build_zip_archive(
            [
                ArchiveEntry("a.jpg", b"1"),
                ArchiveEntry("a.jpg", b"2"),
                ArchiveEntry("a.jpg", b"3"),
                ArchiveEntry("noext", b"4"),
                ArchiveEntry("noext", b"5"),
            ]
        )

        with zipfile.ZipFile(io.BytesIO(result.data)) as zf:
            self.assertEqual(zf.namelist(), ["a.jpg", "a (1).jpg", "a (2).jpg", "noext", "noext (1)"])
            self.assertEqual(zf.read("a (2).jpg"), b"3")

    def test_empty_archive_is_rejected(self):
        """An archive needs at least one entry."""
        with self.assertRaises(ValueError):
            build_zip_archive([])


if __name__ == "__main__":
    unittest.main()
