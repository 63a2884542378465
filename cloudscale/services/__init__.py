"""Services for cloudscale."""
from .api_client import CloudinaryClient
from .archive import ArchiveBuilder, archive_name, upscaled_name
from .handle_log import HandleLog
from .settings import SettingsStore, resolve_settings

__all__ = [
    "CloudinaryClient",
    "ArchiveBuilder",
    "archive_name",
    "upscaled_name",
    "HandleLog",
    "SettingsStore",
    "resolve_settings",
]
