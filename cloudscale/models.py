"""
Models for cloudscale.

Immutable dataclasses for inputs and results, small mutable records for
run state.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import ConfigError


ALLOWED_MIME_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif", "image/bmp")

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 5
DEFAULT_CONCURRENCY = 2


class ItemState(Enum):
    """Lifecycle state of a single file within a run."""
    WAITING = "waiting"
    UPLOADING = "uploading"
    TRANSFORMING = "transforming"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemState.COMPLETED, ItemState.FAILED)

    @property
    def is_active(self) -> bool:
        return self in (ItemState.UPLOADING, ItemState.TRANSFORMING)


_ORDER = {
    ItemState.WAITING: 0,
    ItemState.UPLOADING: 1,
    ItemState.TRANSFORMING: 2,
    ItemState.COMPLETED: 3,
    ItemState.FAILED: 3,
}


def can_transition(current: ItemState, new: ItemState) -> bool:
    """Check whether ``current -> new`` keeps the lifecycle monotonic."""
    if current.is_terminal:
        return False
    if new is ItemState.WAITING:
        return False
    return _ORDER[new] >= _ORDER[current]


@dataclass(frozen=True)
class SourceFile:
    """Immutable reference to a locally selected image."""
    name: str
    size: int
    mime_type: str
    path: Path
    relative_path: Optional[Path] = None

    @classmethod
    def from_path(cls, path: Path, mime_type: str, root: Optional[Path] = None) -> "SourceFile":
        path = Path(path)
        relative = path.relative_to(root) if root is not None else None
        return cls(
            name=path.name,
            size=path.stat().st_size,
            mime_type=mime_type,
            path=path,
            relative_path=relative,
        )

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


@dataclass
class BatchStats:
    """Aggregate counters for one run."""
    total: int = 0
    processing: int = 0
    completed: int = 0
    errors: int = 0

    def snapshot(self) -> "BatchStats":
        return replace(self)

    def as_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "processing": self.processing,
            "completed": self.completed,
            "errors": self.errors,
        }


@dataclass(frozen=True)
class ArchiveEntry:
    """A named byte buffer destined for the archive."""
    name: str
    data: bytes


@dataclass(frozen=True)
class ArchiveArtifact:
    """Finalized archive bundle, ready to be saved."""
    name: str
    data: bytes
    entry_count: int

    @property
    def size(self) -> int:
        return len(self.data)

    def save(self, directory: Path) -> Path:
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / self.name
        target.write_bytes(self.data)
        return target


@dataclass(frozen=True)
class ItemEvent:
    """Progress event for a single item."""
    index: int
    filename: str
    state: ItemState
    progress: Optional[int] = None


@dataclass(frozen=True)
class HandleRecord:
    """Remote asset created by an upload, kept for later cleanup."""
    index: int
    filename: str
    public_id: str
    cloud_name: str


@dataclass(frozen=True)
class ItemResult:
    """Outcome of one item within a run."""
    index: int
    filename: str
    state: ItemState
    output_name: Optional[str] = None
    error: Optional[str] = None
    size_bytes: int = 0

    @property
    def success(self) -> bool:
        return self.state == ItemState.COMPLETED

    @classmethod
    def ok(cls, index: int, filename: str, output_name: Optional[str] = None, size_bytes: int = 0):
        return cls(
            index=index,
            filename=filename,
            state=ItemState.COMPLETED,
            output_name=output_name,
            size_bytes=size_bytes,
        )

    @classmethod
    def fail(cls, index: int, filename: str, error: str, size_bytes: int = 0):
        return cls(index=index, filename=filename, state=ItemState.FAILED, error=error, size_bytes=size_bytes)


@dataclass
class RunResult:
    """Result of a batch run."""
    success: bool
    folder_name: str
    total_files: int
    completed_files: int
    failed_files: int
    windows: List[Tuple[int, ...]] = field(default_factory=list)
    results: List[ItemResult] = field(default_factory=list)
    artifact: Optional[ArchiveArtifact] = None
    error: Optional[str] = None

    @property
    def all_success(self) -> bool:
        return self.failed_files == 0


def clamp_concurrency(value: Any) -> int:
    """Coerce a stored concurrency value into ``[1, 5]``; falsy or invalid gives the default."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        number = 0
    if not number:
        number = DEFAULT_CONCURRENCY
    return max(MIN_CONCURRENCY, min(number, MAX_CONCURRENCY))


@dataclass(frozen=True)
class RunConfig:
    """Immutable configuration for one run."""
    cloud_name: str
    upload_preset: str
    concurrency: int = DEFAULT_CONCURRENCY
    cooldown: float = 0.6
    max_attempts: int = 3
    backoff: float = 2.0
    tags: str = "cloudscale_temp"
    api_base: str = "https://api.cloudinary.com"
    delivery_base: str = "https://res.cloudinary.com"

    def __post_init__(self):
        object.__setattr__(self, "concurrency", clamp_concurrency(self.concurrency))

    @classmethod
    def from_settings(cls, settings: Optional[Dict[str, Any]], **overrides) -> "RunConfig":
        """
        Validate a persisted settings record and build a config.

        Raises:
            ConfigError: if the cloud name or upload preset is missing.
        """
        settings = settings or {}
        cloud_name = str(settings.get("cloudName") or "").strip()
        upload_preset = str(settings.get("uploadPreset") or "").strip()
        missing = [
            label
            for label, value in (("cloudName", cloud_name), ("uploadPreset", upload_preset))
            if not value
        ]
        if missing:
            raise ConfigError(
                f"Configure Cloudinary settings first (missing: {', '.join(missing)})"
            )
        return cls(
            cloud_name=cloud_name,
            upload_preset=upload_preset,
            concurrency=settings.get("concurrency"),
            **overrides,
        )

    @property
    def upload_url(self) -> str:
        return f"{self.api_base.rstrip('/')}/v1_1/{self.cloud_name}/image/upload"

    def transform_url(self, public_id: str) -> str:
        return f"{self.delivery_base.rstrip('/')}/{self.cloud_name}/image/upload/e_upscale/{public_id}"
