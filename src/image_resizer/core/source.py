"""Source image acquisition: remote fetch in proxy mode, local read otherwise."""

import re
from pathlib import Path
from typing import Optional

import aiofiles
import httpx

from .exceptions import SourceFetchError, SourceReadError
from .observability import LogContext
from .protocols import LoggerProtocol

ABSOLUTE_URL = re.compile(r"^https?:")


def resolve_location(location: str, scheme: str, host: str, allow_proxy: bool) -> str:
    """
    Resolve the requested location into the form that is fetched and hashed.

    In proxy mode a location that is not an absolute http(s) URL is rewritten
    against the inbound request's scheme and host. Otherwise it is returned
    unchanged and later read relative to the image root.
    """
    if not allow_proxy or ABSOLUTE_URL.match(location):
        return location

    path = location.strip()
    if path.startswith("/"):
        path = path[1:]
    return f"{scheme}://{host}/{path}"


class SourceAcquirer:
    """Turns a resolved location into the source image bytes."""

    def __init__(
        self,
        allow_proxy: bool,
        image_dir: str,
        logger: LoggerProtocol,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._allow_proxy = allow_proxy
        self._image_root = Path(image_dir)
        self._logger = logger
        self._timeout = timeout
        self._transport = transport

    async def acquire(self, location: str, context: Optional[LogContext] = None) -> bytes:
        """
        Fetch or read the source image. A single failure is terminal.

        Raises:
            SourceFetchError: On a transport error or a status >= 400.
            SourceReadError: If the local file cannot be read.
        """
        if self._allow_proxy:
            return await self._fetch(location, context)
        return await self._read_local(location, context)

    async def _fetch(self, url: str, context: Optional[LogContext]) -> bytes:
        self._logger.debug(f"Fetching {url}", context)

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport, follow_redirects=True
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            self._logger.warning(f"Fetch of {url} failed: {exc}", context)
            raise SourceFetchError(f"Could not fetch {url}: {exc}") from exc

        if response.status_code >= 400:
            self._logger.warning(
                f"Fetch of {url} returned status {response.status_code}", context
            )
            raise SourceFetchError(
                f"status {response.status_code}", status_code=response.status_code
            )

        return response.content

    def local_path(self, location: str) -> Path:
        """
        Map a location onto a file under the image root.

        Raises:
            SourceReadError: If the location escapes the image root.
        """
        root = self._image_root.resolve()
        path = (root / location.strip().lstrip("/")).resolve()
        if not path.is_relative_to(root):
            raise SourceReadError(f"{location} is outside the image directory")
        return path

    async def _read_local(self, location: str, context: Optional[LogContext]) -> bytes:
        path = self.local_path(location)
        self._logger.debug(f"Reading {path}", context)

        try:
            async with aiofiles.open(path, "rb") as handle:
                return await handle.read()
        except OSError as exc:
            self._logger.warning(f"Cannot read {path}: {exc}", context)
            raise SourceReadError(f"Could not read {location}: {exc}") from exc
