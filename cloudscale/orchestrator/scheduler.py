import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

from cloudscale.exceptions import ArchiveError
from cloudscale.models import ItemResult, RunConfig, RunResult
from cloudscale.orchestrator.parallel import partition_windows
from cloudscale.orchestrator.pipeline import ItemPipeline
from cloudscale.orchestrator.session import RunSession
from cloudscale.services.archive import ArchiveBuilder

logger = logging.getLogger(__name__)

ALL_FAILED_MESSAGE = "All images failed. Check your Cloudinary credentials."


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


class BatchScheduler:
    """
    Runs the loaded files through the pipeline in fixed-size windows.

    Every item of a window is processed concurrently and the window is a
    barrier: the next one starts only after all of its items settled, plus
    a cooldown to stay under the remote rate limit.
    """

    def __init__(
        self,
        pipeline: ItemPipeline,
        session: RunSession,
        config: RunConfig,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self._pipeline = pipeline
        self._session = session
        self._config = config
        self._sleep = sleep or asyncio.sleep

    async def run(self) -> RunResult:
        """Process every window, then finalize the archive. Expects ``session.begin()`` to have run."""
        files = self._session.files
        windows = partition_windows(len(files), self._config.concurrency)
        archive = ArchiveBuilder()
        results: List[ItemResult] = []

        logger.info(
            f"Starting run: {len(files)} files in {len(windows)} window(s) of up to {self._config.concurrency}"
        )

        for number, window in enumerate(windows, 1):
            logger.debug(f"Window {number}/{len(windows)}: items {list(window)}")
            await self._session.start_window(number, window)

            outcomes = await asyncio.gather(
                *(self._pipeline.process(files[index], index, archive) for index in window),
                return_exceptions=True,
            )

            for index, outcome in zip(window, outcomes):
                if isinstance(outcome, Exception):
                    logger.error(f"Failed: {files[index].name}: {_describe(outcome)}")
                    results.append(await self._session.fail_item(index, _describe(outcome)))
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    results.append(await self._session.complete_item(index, outcome))

            await self._session.complete_window(number, window)

            if number < len(windows):
                await self._sleep(self._config.cooldown)

        stats = self._session.stats
        artifact = None
        error = None
        if stats.completed > 0:
            try:
                artifact = await asyncio.to_thread(archive.finalize, self._session.folder_name)
            except ArchiveError as exc:
                logger.error(f"Archive generation failed: {exc}")
                error = str(exc)
        else:
            logger.error(ALL_FAILED_MESSAGE)
            error = ALL_FAILED_MESSAGE

        result = RunResult(
            success=artifact is not None,
            folder_name=self._session.folder_name,
            total_files=stats.total,
            completed_files=stats.completed,
            failed_files=stats.errors,
            windows=windows,
            results=results,
            artifact=artifact,
            error=error,
        )
        logger.info(f"Run complete: {stats.completed} completed, {stats.errors} failed")
        await self._session.finish(result)
        return result
