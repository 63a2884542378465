"""Core orchestrator - coordinates folder loading and batch runs."""
import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Sequence

import httpx

from ..exceptions import NoImagesError
from ..models import RunConfig, RunResult, SourceFile
from ..services.api_client import CloudinaryClient
from .file_collector import FileCollector
from .pipeline import ItemPipeline
from .scheduler import BatchScheduler
from .session import RunSession


class UpscaleOrchestrator:
    """
    Orchestrates upscale runs using injected services.

    Usage:
        async with UpscaleOrchestrator() as upscaler:
            upscaler.load_folder(Path("~/Pictures/holiday"))
            upscaler.session.on_item_fail(lambda r: print(f"Failed: {r.filename}"))
            result = await upscaler.start(config)
            if result.artifact:
                result.artifact.save(Path("."))
    """

    def __init__(
        self,
        client: Optional[CloudinaryClient] = None,
        session: Optional[RunSession] = None,
        timeout: float = 120,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            client: Pre-built client (entered and closed by the caller)
            session: Session to drive; a new one is created if omitted
            timeout: HTTP timeout in seconds for the internal client
            transport: Optional httpx transport for the internal client
            sleep: Coroutine used for backoff and cooldown waits
        """
        self._external_client = client
        self._client: Optional[CloudinaryClient] = client
        self._session = session or RunSession()
        self._timeout = timeout
        self._transport = transport
        self._sleep = sleep or asyncio.sleep

    async def __aenter__(self):
        """Open the HTTP client."""
        if self._external_client is None:
            self._client = CloudinaryClient(
                timeout=self._timeout,
                transport=self._transport,
                sleep=self._sleep,
            )
            await self._client.__aenter__()
        return self

    async def __aexit__(self, *args):
        """Cleanup resources."""
        if self._external_client is None and self._client:
            await self._client.__aexit__(*args)
            self._client = None

    @property
    def session(self) -> RunSession:
        return self._session

    def load_folder(self, folder: Path) -> List[SourceFile]:
        """
        Load every supported image under ``folder``.

        Raises:
            NoImagesError: if nothing matches the allow-list.
        """
        files = FileCollector.collect_files(folder)
        if not files:
            raise NoImagesError("No supported images found.")
        self._session.load(files, FileCollector.folder_name(folder))
        return files

    def load_files(self, files: Sequence[SourceFile], folder_name: str = "") -> None:
        if not files:
            raise NoImagesError("No supported images found.")
        self._session.load(files, folder_name)

    def reset(self) -> bool:
        return self._session.reset()

    async def start(self, config: RunConfig) -> RunResult:
        """
        Run every loaded file through the pipeline.

        Raises:
            RunInProgressError: if a run is already active.
            NoImagesError: if no files are loaded.
        """
        assert self._client is not None, "use 'async with UpscaleOrchestrator()'"
        if not self._session.files:
            raise NoImagesError("No images loaded.")

        await self._session.begin()
        pipeline = ItemPipeline(self._client, self._client, self._session, config)
        scheduler = BatchScheduler(pipeline, self._session, config, sleep=self._sleep)
        try:
            return await scheduler.run()
        except Exception as exc:
            await self._session.abort(exc)
            raise
