"""Tests for the Cloudinary HTTP client."""
from pathlib import Path

import httpx
import pytest

from cloudscale.exceptions import TransformError, UploadError
from cloudscale.models import RunConfig, SourceFile
from cloudscale.services.api_client import CloudinaryClient


TRANSFORM_URL = "https://res.cloudinary.com/demo/image/upload/e_upscale/abc"


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "photo.jpg"
    path.write_bytes(b"jpeg-bytes")
    return SourceFile.from_path(path, "image/jpeg")


def _client(handler, sleep=None):
    return CloudinaryClient(transport=httpx.MockTransport(handler), sleep=sleep)


class TestUpload:
    @pytest.mark.asyncio
    async def test_upload_returns_public_id(self, source):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = request.content
            return httpx.Response(200, json={"public_id": "abc", "secure_url": "https://x"})

        config = RunConfig("demo", "unsigned")
        async with _client(handler) as client:
            public_id = await client.upload(source, config)

        assert public_id == "abc"
        assert seen["url"] == "https://api.cloudinary.com/v1_1/demo/image/upload"
        assert b"unsigned" in seen["body"]
        assert b"cloudscale_temp" in seen["body"]
        assert b"jpeg-bytes" in seen["body"]

    @pytest.mark.asyncio
    async def test_upload_prefers_vendor_message(self, source):
        def handler(request):
            return httpx.Response(400, json={"error": {"message": "Upload preset not found"}})

        async with _client(handler) as client:
            with pytest.raises(UploadError, match="Upload preset not found") as info:
                await client.upload(source, RunConfig("demo", "bad"))
        assert info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_upload_falls_back_to_status(self, source):
        def handler(request):
            return httpx.Response(502, text="bad gateway")

        async with _client(handler) as client:
            with pytest.raises(UploadError, match="Upload HTTP 502"):
                await client.upload(source, RunConfig("demo", "p"))

    @pytest.mark.asyncio
    async def test_upload_without_public_id(self, source):
        def handler(request):
            return httpx.Response(200, json={})

        async with _client(handler) as client:
            with pytest.raises(UploadError, match="public_id"):
                await client.upload(source, RunConfig("demo", "p"))

    @pytest.mark.asyncio
    async def test_upload_transport_error(self, source):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(UploadError, match="connection refused"):
                await client.upload(source, RunConfig("demo", "p"))

    @pytest.mark.asyncio
    async def test_requires_context(self, source):
        client = CloudinaryClient()
        with pytest.raises(RuntimeError, match="not initialized"):
            await client.upload(source, RunConfig("demo", "p"))


class TestFetch:
    @pytest.mark.asyncio
    async def test_fails_twice_then_succeeds(self, recording_sleep):
        calls = []

        def handler(request):
            calls.append(str(request.url))
            if len(calls) < 3:
                return httpx.Response(423)
            return httpx.Response(200, content=b"upscaled")

        async with _client(handler, recording_sleep) as client:
            data = await client.fetch(TRANSFORM_URL)

        assert data == b"upscaled"
        assert len(calls) == 3
        assert recording_sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_always_failing_stops_after_three_attempts(self, recording_sleep):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(404 if len(calls) < 3 else 500)

        async with _client(handler, recording_sleep) as client:
            with pytest.raises(TransformError, match="HTTP 500") as info:
                await client.fetch(TRANSFORM_URL)

        assert len(calls) == 3
        assert info.value.status_code == 500
        assert recording_sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_transport_error_propagates_unchanged(self, recording_sleep):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with _client(handler, recording_sleep) as client:
            with pytest.raises(httpx.ReadTimeout):
                await client.fetch(TRANSFORM_URL, max_attempts=2)

        assert recording_sleep.delays == [2.0]

    @pytest.mark.asyncio
    async def test_first_success_does_not_sleep(self, recording_sleep):
        def handler(request):
            return httpx.Response(200, content=b"ok")

        async with _client(handler, recording_sleep) as client:
            assert await client.fetch(TRANSFORM_URL) == b"ok"
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_rejects_zero_attempts(self):
        async with _client(lambda request: httpx.Response(200)) as client:
            with pytest.raises(ValueError):
                await client.fetch(TRANSFORM_URL, max_attempts=0)
