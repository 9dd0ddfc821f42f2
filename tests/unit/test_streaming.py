"""Tests for streaming a response while populating the cache."""

import asyncio
from typing import List

import pytest
from fastapi.responses import StreamingResponse

from image_resizer.core.cache import DiskCacheStore
from image_resizer.core.exceptions import CacheWriteError
from image_resizer.core.pipeline import EncodedImage
from image_resizer.core.protocols import CacheSink, CacheStore
from image_resizer.core.streaming import (
    CHUNK_SIZE,
    CacheFanOut,
    ResponseStreamer,
    iter_chunks,
)


class RecordingSink(CacheSink):
    """In-memory cache sink that can be told to fail on write."""

    def __init__(self, fail_on_write: bool = False):
        self.fail_on_write = fail_on_write
        self.chunks: List[bytes] = []
        self.committed = False
        self.aborted = False

    async def write(self, chunk: bytes) -> None:
        if self.fail_on_write:
            raise CacheWriteError("disk full")
        self.chunks.append(chunk)

    async def commit(self) -> None:
        self.committed = True

    async def abort(self) -> None:
        self.aborted = True


class FailingStore(CacheStore):
    """Cache store whose entries fail on the first write."""

    async def try_serve(self, fingerprint: str) -> None:
        return None

    async def open_writer(self, fingerprint: str) -> RecordingSink:
        return RecordingSink(fail_on_write=True)


def test_iter_chunks():
    """Test that data is split into fixed-size chunks."""
    data = b"x" * (2 * CHUNK_SIZE + 10)
    chunks = list(iter_chunks(data))
    assert [len(c) for c in chunks] == [CHUNK_SIZE, CHUNK_SIZE, 10]
    assert b"".join(chunks) == data


def test_iter_chunks_empty():
    """Test that empty data yields nothing."""
    assert list(iter_chunks(b"")) == []


class TestCacheFanOut:
    """Tests for CacheFanOut."""

    def test_both_sinks_receive_every_chunk(self, fake_logger, metrics):
        """Test that the response and the cache see identical bytes."""
        data = b"y" * (CHUNK_SIZE + 5)
        sink = RecordingSink()

        async def scenario():
            fan_out = CacheFanOut(sink, data, fake_logger, metrics)
            body = [chunk async for chunk in fan_out.response_body()]
            return body, await fan_out.wait_closed()

        body, committed = asyncio.run(scenario())

        assert b"".join(body) == data
        assert b"".join(sink.chunks) == data
        assert committed is True
        assert sink.committed and not sink.aborted
        assert metrics.count("cache_write", success=True) == 1

    def test_cache_failure_is_raised_after_full_response(self, fake_logger, metrics):
        """Test that a failing cache write delivers the body, then raises."""
        data = b"z" * (3 * CHUNK_SIZE)
        sink = RecordingSink(fail_on_write=True)
        body: List[bytes] = []

        async def scenario():
            fan_out = CacheFanOut(sink, data, fake_logger, metrics)
            async for chunk in fan_out.response_body():
                body.append(chunk)
            return await fan_out.wait_closed()

        with pytest.raises(CacheWriteError, match="disk full"):
            asyncio.run(scenario())

        assert b"".join(body) == data
        assert sink.aborted and not sink.committed
        assert metrics.count("cache_write", success=False) == 1
        assert any("disk full" in m for m in fake_logger.messages("ERROR"))

    def test_interrupted_response_discards_entry(self, fake_logger, metrics):
        """Test that a client disconnect aborts the cache entry."""
        data = b"w" * (3 * CHUNK_SIZE)
        sink = RecordingSink()

        async def scenario():
            fan_out = CacheFanOut(sink, data, fake_logger, metrics)
            body = fan_out.response_body()
            first = await body.__anext__()
            await body.aclose()
            return first, await fan_out.wait_closed()

        first, committed = asyncio.run(scenario())

        assert len(first) == CHUNK_SIZE
        assert committed is False
        assert sink.aborted and not sink.committed
        assert fake_logger.messages("WARNING")

    def test_never_started_response_aborts(self, fake_logger):
        """Test that waiting on an unstarted fan-out aborts the sink."""
        sink = RecordingSink()

        async def scenario():
            return await CacheFanOut(sink, b"data", fake_logger).wait_closed()

        assert asyncio.run(scenario()) is False
        assert sink.aborted


class TestResponseStreamer:
    """Tests for ResponseStreamer."""

    def test_stream_writes_cache_entry(self, cache_dir, engine, fake_logger, metrics):
        """Test that a fully streamed response leaves a committed entry."""
        store = DiskCacheStore(str(cache_dir), 60_000, engine, fake_logger)
        streamer = ResponseStreamer(store, fake_logger, metrics)
        output = EncodedImage(data=b"v" * (CHUNK_SIZE + 1), format="PNG")

        async def scenario():
            response = await streamer.stream("abc", output)
            body = [chunk async for chunk in response.body_iterator]
            await response.background()
            return response, body

        response, body = asyncio.run(scenario())

        assert isinstance(response, StreamingResponse)
        assert response.media_type == "image/png"
        assert b"".join(body) == output.data
        assert store.path_for("abc").read_bytes() == output.data
        assert list(cache_dir.glob("*.tmp")) == []

    def test_background_task_raises_cache_failure(self, fake_logger, metrics):
        """Test that the background task surfaces a failed cache write."""
        streamer = ResponseStreamer(FailingStore(), fake_logger, metrics)
        output = EncodedImage(data=b"u" * (CHUNK_SIZE + 1), format="JPEG")
        body: List[bytes] = []

        async def scenario():
            response = await streamer.stream("abc", output)
            async for chunk in response.body_iterator:
                body.append(chunk)
            await response.background()

        with pytest.raises(CacheWriteError):
            asyncio.run(scenario())

        assert b"".join(body) == output.data
