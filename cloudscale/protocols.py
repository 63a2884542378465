"""
Protocols (Interfaces) for Dependency Inversion.

The pipeline only depends on these, so tests can pass in mocks.
"""
from typing import Protocol, runtime_checkable

from .models import RunConfig, SourceFile


@runtime_checkable
class IUploadClient(Protocol):
    """Interface for the remote upload step."""

    async def upload(self, source: SourceFile, config: RunConfig) -> str:
        """Upload a file and return its processing handle."""
        ...


@runtime_checkable
class IFetcher(Protocol):
    """Interface for the retry-wrapped fetch."""

    async def fetch(self, url: str, max_attempts: int = 3, backoff: float = 2.0) -> bytes:
        """GET a URL and return the body."""
        ...


@runtime_checkable
class IArchiveSink(Protocol):
    """Interface for anything that accepts archive entries."""

    def add(self, name: str, data: bytes) -> object:
        """Register a named buffer."""
        ...
