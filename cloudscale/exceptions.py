"""Exception hierarchy for cloudscale."""
from typing import Optional


class CloudScaleError(RuntimeError):
    """Base class for all cloudscale errors."""


class ConfigError(CloudScaleError):
    """Raised when credentials or settings are missing or invalid."""


class UploadError(CloudScaleError):
    """Raised when the remote upload endpoint rejects a file."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransformError(CloudScaleError):
    """Raised when the transformed asset cannot be fetched."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ArchiveError(CloudScaleError):
    """Raised when the archive bundle cannot be generated."""


class NoImagesError(CloudScaleError):
    """Raised when a folder holds no supported images."""


class RunInProgressError(CloudScaleError):
    """Raised when a run is requested while another one is active."""
