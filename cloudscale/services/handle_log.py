"""Append-only record of remote assets created by uploads."""
import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from ..models import HandleRecord

logger = logging.getLogger(__name__)


class HandleLog:
    """Writes one JSON line per uploaded asset so it can be cleaned up later."""

    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def append(self, record: HandleRecord) -> None:
        """Append ``record`` off the event loop."""
        line = {
            "cloudName": record.cloud_name,
            "publicId": record.public_id,
            "filename": record.filename,
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }
        await asyncio.to_thread(self._write, line)
        logger.debug(f"Recorded handle {record.public_id} in {self._path}")

    def _write(self, line: Dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(line) + "\n")
