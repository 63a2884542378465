"""Tests for the windowed batch scheduler."""
import io
import math
import zipfile

import pytest

from cloudscale.models import ItemState, RunConfig
from cloudscale.orchestrator.parallel import partition_windows
from cloudscale.orchestrator.pipeline import ItemPipeline
from cloudscale.orchestrator.scheduler import ALL_FAILED_MESSAGE, BatchScheduler
from cloudscale.orchestrator.session import RunSession

from .conftest import FakeCloudinary, make_sources


@pytest.mark.parametrize("total, size", [(0, 3), (1, 1), (7, 3), (9, 3), (10, 5), (4, 5)])
def test_partition_windows(total, size):
    windows = partition_windows(total, size)

    assert len(windows) == math.ceil(total / size)
    assert all(0 < len(window) <= size for window in windows)
    assert [index for window in windows for index in window] == list(range(total))


def test_partition_windows_rejects_zero():
    with pytest.raises(ValueError):
        partition_windows(3, 0)


async def _run(files, config, fake, sleep, session=None):
    session = session or RunSession()
    session.load(files, "holiday")
    pipeline = ItemPipeline(fake, fake, session, config)
    scheduler = BatchScheduler(pipeline, session, config, sleep=sleep)
    await session.begin()
    return await scheduler.run(), session


@pytest.mark.asyncio
async def test_seven_files_one_failure(config, recording_sleep):
    files = make_sources(7)
    fake = FakeCloudinary(fail_uploads={"img1.jpg"})

    result, session = await _run(files, config, fake, recording_sleep)

    assert result.windows == [(0, 1, 2), (3, 4, 5), (6,)]
    assert result.completed_files == 6
    assert result.failed_files == 1
    assert result.success is True
    assert session.stats.completed == 6
    assert session.stats.errors == 1
    assert session.stats.processing == 0
    assert session.states[1] == ItemState.FAILED
    assert recording_sleep.delays == [0.6, 0.6]

    artifact = session.downloadable
    assert artifact is result.artifact
    assert artifact.name == "holiday_upscaled.zip"
    with zipfile.ZipFile(io.BytesIO(artifact.data)) as bundle:
        names = bundle.namelist()
    assert len(names) == 6
    assert "img1_upscaled.jpg" not in names
    assert "img6_upscaled.jpg" in names


@pytest.mark.asyncio
async def test_windows_are_barriers(config, recording_sleep):
    files = make_sources(7)
    fake = FakeCloudinary(fail_fetches={"img4.jpg"})
    session = RunSession()
    timeline = []
    session.on_item_complete(lambda r: timeline.append(("settled", r.index)))
    session.on_item_fail(lambda r: timeline.append(("settled", r.index)))
    session.on_window_start(lambda number, indices: timeline.append(("window", number)))

    result, _ = await _run(files, config, fake, recording_sleep, session=session)

    for number, window in enumerate(result.windows[:-1], 1):
        next_start = timeline.index(("window", number + 1))
        for index in window:
            assert timeline.index(("settled", index)) < next_start
    assert fake.max_active == 3


@pytest.mark.asyncio
async def test_stats_invariant_holds_at_every_event(config, recording_sleep):
    files = make_sources(5)
    fake = FakeCloudinary(fail_uploads={"img0.jpg"}, fail_fetches={"img3.jpg"})
    session = RunSession()
    violations = []

    def check(_event):
        stats = session.stats
        active = sum(1 for state in session.states if state.is_active)
        if stats.completed + stats.errors + session.pending_count != stats.total:
            violations.append(stats)
        if stats.processing != active:
            violations.append(stats)

    session.on_item_state(check)
    result, _ = await _run(files, config, fake, recording_sleep, session=session)

    assert violations == []
    assert result.completed_files == 3
    assert result.failed_files == 2


@pytest.mark.asyncio
async def test_all_items_fail(recording_sleep):
    config = RunConfig("demo", "p", concurrency=2)
    files = make_sources(3)
    fake = FakeCloudinary(fail_uploads={f.name for f in files})
    session = RunSession()
    notices = []
    session.on_run_fail(notices.append)
    session.on_finish(lambda r: notices.append("finished"))

    result, _ = await _run(files, config, fake, recording_sleep, session=session)

    assert result.success is False
    assert result.artifact is None
    assert result.error == ALL_FAILED_MESSAGE
    assert session.downloadable is None
    assert notices == [result]
    assert session.stats.errors == 3
    assert not any(kind == "fetch" for kind, _ in fake.log)


@pytest.mark.asyncio
async def test_single_window_skips_cooldown(recording_sleep):
    config = RunConfig("demo", "p", concurrency=5)
    result, _ = await _run(make_sources(4), config, FakeCloudinary(), recording_sleep)

    assert result.windows == [(0, 1, 2, 3)]
    assert recording_sleep.delays == []
    assert result.completed_files == 4
