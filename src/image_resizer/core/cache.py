"""Disk cache of transformed images, addressed by request fingerprint."""

import asyncio
import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import aiofiles
import aiofiles.os

from .exceptions import CacheReadError, CacheWriteError, ImageResizerError
from .observability import LogContext
from .protocols import CacheSink, CacheStore, ImageEngine, LoggerProtocol


@dataclass(frozen=True)
class CachedImage:
    """A valid cache entry loaded for serving."""

    fingerprint: str
    format: str
    data: bytes

    @property
    def content_type(self) -> str:
        return f"image/{self.format.lower()}"


class CacheWriter(CacheSink):
    """
    Write target for one cache entry.

    Chunks go to a temporary sibling file which is renamed onto the final
    path on commit, so readers never see a partially written entry.
    """

    def __init__(self, final_path: Path, temp_path: Path, handle):
        self._final_path = final_path
        self._temp_path = temp_path
        self._handle = handle
        self._closed = False
        self.bytes_written = 0

    @property
    def final_path(self) -> Path:
        return self._final_path

    @property
    def temp_path(self) -> Path:
        return self._temp_path

    @classmethod
    async def open(cls, final_path: Path) -> "CacheWriter":
        temp_path = final_path.with_name(f"{final_path.name}.{uuid.uuid4().hex}.tmp")
        try:
            await aiofiles.os.makedirs(final_path.parent, exist_ok=True)
            handle = await aiofiles.open(temp_path, "wb")
        except OSError as exc:
            raise CacheWriteError(f"Cannot open cache file {temp_path}: {exc}") from exc
        return cls(final_path, temp_path, handle)

    async def write(self, chunk: bytes) -> None:
        try:
            await self._handle.write(chunk)
        except (OSError, ValueError) as exc:
            raise CacheWriteError(f"Cannot write cache file {self._temp_path}: {exc}") from exc
        self.bytes_written += len(chunk)

    async def _close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._handle.close()

    async def commit(self) -> None:
        try:
            await self._close()
            await aiofiles.os.replace(self._temp_path, self._final_path)
        except OSError as exc:
            await self.abort()
            raise CacheWriteError(
                f"Cannot publish cache file {self._final_path}: {exc}"
            ) from exc

    async def abort(self) -> None:
        try:
            await self._close()
        except OSError:
            pass
        try:
            await aiofiles.os.remove(self._temp_path)
        except FileNotFoundError:
            pass


class DiskCacheStore(CacheStore):
    """Cache store keeping one file per fingerprint in a folder."""

    def __init__(
        self,
        cache_folder: str,
        ttl_ms: int,
        engine: ImageEngine,
        logger: LoggerProtocol,
        clock: Callable[[], float] = time.time,
    ):
        self._cache_folder = Path(cache_folder)
        self._ttl_ms = ttl_ms
        self._engine = engine
        self._logger = logger
        self._clock = clock

    def path_for(self, fingerprint: str) -> Path:
        return self._cache_folder / fingerprint

    def is_valid(self, stat: os.stat_result) -> bool:
        """An entry is valid when it is non-empty and younger than the TTL."""
        age_ms = (self._clock() - stat.st_mtime) * 1000
        return stat.st_size > 0 and age_ms < self._ttl_ms

    async def try_serve(
        self, fingerprint: str, context: Optional[LogContext] = None
    ) -> Optional[CachedImage]:
        """
        Load a valid cache entry for serving.

        Stat and open failures are misses. A valid entry whose format cannot
        be probed is reported as corruption rather than treated as a miss.

        Raises:
            CacheReadError: If the entry exists and is fresh but undecodable.
        """
        path = self.path_for(fingerprint)

        try:
            stat = await aiofiles.os.stat(path)
        except OSError:
            self._logger.debug("Cache miss: no entry", context)
            return None

        if not self.is_valid(stat):
            self._logger.debug(
                "Cache miss: stale or empty entry", context, size=stat.st_size
            )
            return None

        try:
            async with aiofiles.open(path, "rb") as handle:
                data = await handle.read()
        except OSError as exc:
            self._logger.warning(f"Cache miss: cannot open entry: {exc}", context)
            return None

        try:
            image_format = await asyncio.to_thread(self._engine.probe_format, data)
        except ImageResizerError as exc:
            self._logger.error(f"Cached entry is unreadable: {exc}", context)
            raise CacheReadError(
                f"Cached entry {fingerprint} could not be identified"
            ) from exc

        self._logger.debug("Cache hit", context, format=image_format)
        return CachedImage(fingerprint=fingerprint, format=image_format, data=data)

    async def open_writer(self, fingerprint: str) -> CacheWriter:
        """
        Open a fresh write target for the fingerprint.

        Raises:
            CacheWriteError: If the cache folder or file cannot be opened.
        """
        return await CacheWriter.open(self.path_for(fingerprint))
