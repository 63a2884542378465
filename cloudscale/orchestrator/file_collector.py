"""File collection utilities for folder runs."""
import mimetypes
from pathlib import Path
from typing import List, Optional

from ..models import ALLOWED_MIME_TYPES, SourceFile

# not in every platform mime table
mimetypes.add_type("image/webp", ".webp")
mimetypes.add_type("image/bmp", ".bmp")


def guess_mime_type(path: Path) -> Optional[str]:
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type


class FileCollector:
    """Collects supported images from folders."""

    @staticmethod
    def collect_files(folder: Path) -> List[SourceFile]:
        """
        Collect all supported images recursively, in sorted path order.

        Args:
            folder: Root folder to scan

        Returns:
            List of SourceFile; anything outside the MIME allow-list is skipped
        """
        folder = Path(folder)
        files = []
        for item in sorted(folder.rglob("*")):
            if not item.is_file():
                continue
            mime_type = guess_mime_type(item)
            if mime_type in ALLOWED_MIME_TYPES:
                files.append(SourceFile.from_path(item, mime_type, root=folder))
        return files

    @staticmethod
    def folder_name(folder: Path) -> str:
        return Path(folder).resolve().name or "images"
