"""
CloudScale - batch image upscaling through Cloudinary.

Uploads every image of a folder, requests the ``e_upscale`` transform,
downloads the results and bundles them into one ZIP archive.

Usage:
    from cloudscale import UpscaleOrchestrator, RunConfig

    config = RunConfig(cloud_name="demo", upload_preset="unsigned", concurrency=3)

    async with UpscaleOrchestrator() as upscaler:
        upscaler.load_folder(Path("holiday"))
        upscaler.session.on_item_fail(lambda r: print(f"Failed: {r.filename}"))
        result = await upscaler.start(config)

    if result.artifact:
        result.artifact.save(Path("."))
"""
from .exceptions import (
    ArchiveError,
    CloudScaleError,
    ConfigError,
    NoImagesError,
    RunInProgressError,
    TransformError,
    UploadError,
)
from .models import (
    ArchiveArtifact,
    BatchStats,
    ItemEvent,
    ItemResult,
    ItemState,
    RunConfig,
    RunResult,
    SourceFile,
)
from .orchestrator import UpscaleOrchestrator, RunSession
from .services import CloudinaryClient, SettingsStore

__version__ = "0.1.0"
__all__ = [
    # Main
    "UpscaleOrchestrator",
    "RunSession",
    # Models
    "ArchiveArtifact",
    "BatchStats",
    "ItemEvent",
    "ItemResult",
    "ItemState",
    "RunConfig",
    "RunResult",
    "SourceFile",
    # Services
    "CloudinaryClient",
    "SettingsStore",
    # Errors
    "CloudScaleError",
    "ConfigError",
    "UploadError",
    "TransformError",
    "ArchiveError",
    "NoImagesError",
    "RunInProgressError",
]
