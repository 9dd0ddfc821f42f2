"""Fan-out of one encoded image to the HTTP response and the cache."""

import asyncio
from typing import AsyncIterator, Iterator, Optional

from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from .exceptions import CacheWriteError
from .observability import LogContext, MetricsCollector, track_operation
from .pipeline import EncodedImage
from .protocols import CacheSink, CacheStore, LoggerProtocol

CHUNK_SIZE = 64 * 1024

_END = object()
_ABORT = object()


def iter_chunks(data: bytes, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    for offset in range(0, len(data), chunk_size):
        yield data[offset : offset + chunk_size]


class CacheFanOut:
    """
    One producer, two consumers: the response body and a cache sink.

    Every chunk yielded to the response is also queued for a background task
    writing the cache entry. The response finishes as soon as the last chunk
    is yielded. The cache task finishes on its own; a write failure never
    truncates the response but is raised from wait_closed, after the body
    has been sent.
    """

    def __init__(
        self,
        sink: CacheSink,
        data: bytes,
        logger: LoggerProtocol,
        metrics_collector: Optional[MetricsCollector] = None,
        context: Optional[LogContext] = None,
    ):
        self._sink = sink
        self._data = data
        self._logger = logger
        self._metrics_collector = metrics_collector
        self._context = context
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()
        self._task: Optional["asyncio.Task[bool]"] = None

    async def response_body(self) -> AsyncIterator[bytes]:
        self._task = asyncio.create_task(self._drain())
        completed = False
        try:
            for chunk in iter_chunks(self._data):
                self._queue.put_nowait(chunk)
                yield chunk
            completed = True
        finally:
            self._queue.put_nowait(_END if completed else _ABORT)

    async def _drain(self) -> bool:
        try:
            async with track_operation(
                "cache_write", self._logger, self._metrics_collector, self._context
            ):
                while True:
                    item = await self._queue.get()
                    if item is _END:
                        await self._sink.commit()
                        return True
                    if item is _ABORT:
                        await self._sink.abort()
                        self._logger.warning(
                            "Response interrupted, cache entry discarded", self._context
                        )
                        return False
                    await self._sink.write(item)  # type: ignore[arg-type]
        except CacheWriteError:
            await self._sink.abort()
            raise

    async def wait_closed(self) -> bool:
        """
        Wait for the cache side.

        Returns True when the entry was committed and False when the response
        was interrupted.

        Raises:
            CacheWriteError: If the cache entry could not be written. The
                response body has already been delivered in full.
        """
        if self._task is None:
            await self._sink.abort()
            return False
        return await self._task


class ResponseStreamer:
    """Builds the streaming response that also populates the cache."""

    def __init__(
        self,
        cache_store: CacheStore,
        logger: LoggerProtocol,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self._cache_store = cache_store
        self._logger = logger
        self._metrics_collector = metrics_collector

    async def stream(
        self,
        fingerprint: str,
        output: EncodedImage,
        context: Optional[LogContext] = None,
    ) -> StreamingResponse:
        """
        Open the cache entry, then stream the output to both sinks.

        Raises:
            CacheWriteError: If the cache entry cannot be opened; nothing has
                been sent to the client at that point.
        """
        sink = await self._cache_store.open_writer(fingerprint)
        fan_out = CacheFanOut(
            sink, output.data, self._logger, self._metrics_collector, context
        )

        return StreamingResponse(
            fan_out.response_body(),
            media_type=output.content_type,
            background=BackgroundTask(fan_out.wait_closed),
        )
