"""In-memory archive of upscaled images."""
import io
import logging
import re
import zipfile
from typing import Dict, List

from ..exceptions import ArchiveError
from ..models import ArchiveArtifact, ArchiveEntry

logger = logging.getLogger(__name__)

UPSCALED_SUFFIX = "_upscaled"
DEFAULT_EXTENSION = "jpg"
DEFAULT_FOLDER_NAME = "images"
COMPRESSION_LEVEL = 3


def upscaled_name(filename: str) -> str:
    """
    Insert the upscaled suffix before the extension.

    ``photo.JPG`` -> ``photo_upscaled.jpg``, ``noext`` -> ``noext_upscaled.jpg``.
    """
    parts = filename.split(".")
    ext = parts[-1].lower() if len(parts) > 1 else DEFAULT_EXTENSION
    base = re.sub(r"\.[^.]+$", "", filename)
    return f"{base}{UPSCALED_SUFFIX}.{ext}"


def archive_name(folder_name: str) -> str:
    return f"{folder_name or DEFAULT_FOLDER_NAME}{UPSCALED_SUFFIX}.zip"


class ArchiveBuilder:
    """Collects named byte buffers for one run and bundles them into a ZIP."""

    def __init__(self, compression_level: int = COMPRESSION_LEVEL):
        self._compression_level = compression_level
        self._entries: Dict[str, ArchiveEntry] = {}

    def add(self, name: str, data: bytes) -> ArchiveEntry:
        """Register an entry; a repeated name replaces the earlier buffer."""
        if name in self._entries:
            logger.warning(f"Archive entry {name} already exists, replacing it")
        entry = ArchiveEntry(name=name, data=data)
        self._entries[name] = entry
        return entry

    @property
    def entries(self) -> List[ArchiveEntry]:
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def finalize(self, folder_name: str) -> ArchiveArtifact:
        """
        Build the compressed bundle.

        Raises:
            ArchiveError: if there is nothing to bundle or compression fails.
        """
        if not self._entries:
            raise ArchiveError("Archive has no entries")

        buffer = io.BytesIO()
        try:
            with zipfile.ZipFile(
                buffer,
                "w",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=self._compression_level,
            ) as bundle:
                for entry in self._entries.values():
                    bundle.writestr(entry.name, entry.data)
        except (OSError, ValueError, zipfile.BadZipFile) as exc:
            raise ArchiveError(f"Could not build archive: {exc}") from exc

        artifact = ArchiveArtifact(
            name=archive_name(folder_name),
            data=buffer.getvalue(),
            entry_count=len(self._entries),
        )
        logger.info(f"Archive {artifact.name} built: {artifact.entry_count} entries, {artifact.size} bytes")
        return artifact
