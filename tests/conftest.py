"""Shared fixtures and fakes for cloudscale tests."""
import asyncio
from pathlib import Path
from typing import List

import pytest

from cloudscale.exceptions import TransformError, UploadError
from cloudscale.models import RunConfig, SourceFile


class FakeCloudinary:
    """In-memory stand-in for CloudinaryClient that records every call."""

    def __init__(self, fail_uploads=(), fail_fetches=()):
        self.fail_uploads = set(fail_uploads)
        self.fail_fetches = set(fail_fetches)
        self.log: List[tuple] = []
        self.active = 0
        self.max_active = 0

    async def upload(self, source, config):
        self.log.append(("upload", source.name))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        await asyncio.sleep(0)
        self.active -= 1
        if source.name in self.fail_uploads:
            raise UploadError("Upload HTTP 401", status_code=401)
        return f"id-{source.name}"

    async def fetch(self, url, max_attempts=3, backoff=2.0):
        self.log.append(("fetch", url))
        await asyncio.sleep(0)
        if any(url.endswith(f"id-{name}") for name in self.fail_fetches):
            raise TransformError("HTTP 404", status_code=404)
        return b"upscaled:" + url.encode()


class RecordingSleep:
    """Async sleep replacement that only records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


def make_sources(count: int, ext: str = "jpg") -> List[SourceFile]:
    return [
        SourceFile(
            name=f"img{i}.{ext}",
            size=1000 + i,
            mime_type="image/jpeg",
            path=Path(f"img{i}.{ext}"),
        )
        for i in range(count)
    ]


@pytest.fixture
def config():
    return RunConfig(cloud_name="demo", upload_preset="unsigned", concurrency=3)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
