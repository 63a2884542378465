from typing import Callable, List, Optional, Sequence, Tuple
import logging

from cloudscale.exceptions import RunInProgressError
from cloudscale.models import (
    ArchiveArtifact,
    BatchStats,
    HandleRecord,
    ItemEvent,
    ItemResult,
    ItemState,
    RunResult,
    SourceFile,
    can_transition,
)
from cloudscale.utils.events import EventEmitter
logger = logging.getLogger(__name__)

FOLDER_LABEL_LIMIT = 16


class RunSession:
    """
    State of the loaded folder and the current run, with event-based progress.

    Usage:
        session = RunSession()
        session.load(files, "holiday")

        session.on_item_state(lambda event: print(event.index, event.state))
        session.on_item_fail(lambda result: print(f"Failed: {result.filename}"))
        session.on_finish(lambda result: print(f"{result.completed_files} done"))
    """
    def __init__(self):
        self._events = EventEmitter()
        self._files: List[SourceFile] = []
        self._states: List[ItemState] = []
        self._stats = BatchStats()
        self._folder_name = ""
        self._downloadable: Optional[ArchiveArtifact] = None
        self._running = False

    # Event subscription methods
    def on_start(self, callback: Callable[[BatchStats], None]):
        """Called when a run starts. Receives the initial BatchStats."""
        self._events.on("start", callback)

    def on_window_start(self, callback: Callable[[int, Tuple[int, ...]], None]):
        """Called before a window runs. Receives (window_number, indices)."""
        self._events.on("window_start", callback)

    def on_item_state(self, callback: Callable[[ItemEvent], None]):
        """Called on every item state or progress change. Receives ItemEvent."""
        self._events.on("item_state", callback)

    def on_handle_created(self, callback: Callable[[HandleRecord], None]):
        """Called when an upload created a remote asset. Receives HandleRecord."""
        self._events.on("handle_created", callback)

    def on_item_complete(self, callback: Callable[[ItemResult], None]):
        """Called when an item completes. Receives ItemResult."""
        self._events.on("item_complete", callback)

    def on_item_fail(self, callback: Callable[[ItemResult], None]):
        """Called when an item fails. Receives ItemResult."""
        self._events.on("item_fail", callback)

    def on_stats(self, callback: Callable[[BatchStats], None]):
        """Called after every counter change. Receives a BatchStats snapshot."""
        self._events.on("stats", callback)

    def on_window_complete(self, callback: Callable[[int, Tuple[int, ...]], None]):
        """Called once every item of a window has settled. Receives (window_number, indices)."""
        self._events.on("window_complete", callback)

    def on_finish(self, callback: Callable[[RunResult], None]):
        """Called when a run produced an archive. Receives RunResult."""
        self._events.on("finish", callback)

    def on_run_fail(self, callback: Callable[[RunResult], None]):
        """Called when a run produced no archive. Receives RunResult."""
        self._events.on("run_fail", callback)

    def on_error(self, callback: Callable[[Exception], None]):
        """Called when a run aborts on an unexpected error. Receives Exception."""
        self._events.on("error", callback)

    # State properties
    @property
    def files(self) -> List[SourceFile]:
        return list(self._files)

    @property
    def states(self) -> List[ItemState]:
        return list(self._states)

    @property
    def stats(self) -> BatchStats:
        """Current counters (copy)."""
        return self._stats.snapshot()

    @property
    def folder_name(self) -> str:
        return self._folder_name

    @property
    def folder_label(self) -> str:
        """Folder name shortened for display."""
        name = self._folder_name or "images"
        if len(name) > FOLDER_LABEL_LIMIT:
            return name[:FOLDER_LABEL_LIMIT - 2] + "…"
        return name

    @property
    def downloadable(self) -> Optional[ArchiveArtifact]:
        """Archive of the last successful run, if any."""
        return self._downloadable

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending_count(self) -> int:
        """Items not yet in a terminal state."""
        return sum(1 for state in self._states if not state.is_terminal)

    @property
    def credit_estimate(self) -> int:
        """One transform credit per file."""
        return self._stats.total

    # Control methods
    def load(self, files: Sequence[SourceFile], folder_name: str = ""):
        """Replace the loaded files, discarding states, stats and any archive."""
        if self._running:
            raise RunInProgressError("Cannot load files while a run is active")
        self._files = list(files)
        self._folder_name = folder_name or ""
        self._states = [ItemState.WAITING] * len(self._files)
        self._stats = BatchStats(total=len(self._files))
        self._downloadable = None
        logger.debug(f"Loaded {len(self._files)} file(s) from {self._folder_name or '(unnamed)'}")

    def reset(self) -> bool:
        """Clear everything. No-op while a run is active; returns whether it reset."""
        if self._running:
            logger.debug("Reset ignored: run in progress")
            return False
        self._files = []
        self._states = []
        self._stats = BatchStats()
        self._folder_name = ""
        self._downloadable = None
        return True

    async def begin(self):
        """Mark the session running and start from fresh item states."""
        if self._running:
            raise RunInProgressError("A run is already in progress")
        self._running = True
        self._states = [ItemState.WAITING] * len(self._files)
        self._stats = BatchStats(total=len(self._files))
        self._downloadable = None
        await self._events.emit("start", self.stats)

    async def set_state(self, index: int, state: ItemState, progress: Optional[int] = None):
        """
        Move an item to ``state`` and update the counters incrementally.

        Raises:
            ValueError: if the move would leave a terminal state or go back.
        """
        current = self._states[index]
        if not can_transition(current, state):
            raise ValueError(f"Illegal transition for item {index}: {current.value} -> {state.value}")

        self._states[index] = state
        if state.is_active and not current.is_active:
            self._stats.processing += 1
        elif current.is_active and not state.is_active:
            self._stats.processing = max(0, self._stats.processing - 1)
        if state is ItemState.COMPLETED:
            self._stats.completed += 1
        elif state is ItemState.FAILED:
            self._stats.errors += 1

        await self._events.emit(
            "item_state",
            ItemEvent(index=index, filename=self._files[index].name, state=state, progress=progress),
        )
        if state is not current:
            await self._events.emit("stats", self.stats)

    async def start_window(self, number: int, indices: Tuple[int, ...]):
        """Pre-mark every item of a window as uploading."""
        await self._events.emit("window_start", number, indices)
        for index in indices:
            await self.set_state(index, ItemState.UPLOADING, 10)

    async def complete_window(self, number: int, indices: Tuple[int, ...]):
        await self._events.emit("window_complete", number, indices)

    async def complete_item(self, index: int, output_name: Optional[str] = None) -> ItemResult:
        await self.set_state(index, ItemState.COMPLETED, 100)
        source = self._files[index]
        result = ItemResult.ok(index, source.name, output_name, size_bytes=source.size)
        await self._events.emit("item_complete", result)
        return result

    async def fail_item(self, index: int, error: str) -> ItemResult:
        await self.set_state(index, ItemState.FAILED, 0)
        source = self._files[index]
        result = ItemResult.fail(index, source.name, error, size_bytes=source.size)
        await self._events.emit("item_fail", result)
        return result

    async def emit_handle_created(self, record: HandleRecord):
        await self._events.emit("handle_created", record)

    async def finish(self, result: RunResult):
        """End the run, exposing the archive when there is one."""
        self._running = False
        self._downloadable = result.artifact
        if result.artifact is not None:
            await self._events.emit("finish", result)
        else:
            await self._events.emit("run_fail", result)

    async def abort(self, error: Exception):
        """End the run after an unexpected error."""
        self._running = False
        logger.error(f"Run aborted: {error}", exc_info=True)
        await self._events.emit("error", error)
