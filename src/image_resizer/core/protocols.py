"""Protocol definitions for dependency injection and testability."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Protocol, Union

from .models import CropBox, Size


ImageInput = Union[bytes, str, Path]


class EngineImage(Protocol):
    """A decoded image held by the engine."""

    @property
    def format(self) -> str:
        """Format name reported by the decoder, e.g. "JPEG"."""
        ...

    @property
    def output_format(self) -> str:
        """Format the image is re-encoded in."""
        ...

    def size(self) -> Size:
        """Measure the current pixel size."""
        ...

    def crop(self, box: CropBox) -> "EngineImage":
        """Crop to the given rectangle."""
        ...

    def resize(self, target: Size) -> "EngineImage":
        """Resize to exactly the given size."""
        ...

    def auto_orient(self) -> "EngineImage":
        """Apply embedded orientation metadata to the pixel data."""
        ...

    def encode(self, quality: Optional[int] = None) -> bytes:
        """Re-encode in the output format."""
        ...


class ImageEngine(Protocol):
    """Protocol for the image decoding/encoding engine."""

    name: str

    def probe_format(self, source: ImageInput) -> str:
        """Identify the image format without decoding pixel data."""
        ...

    def open(self, source: ImageInput) -> EngineImage:
        """Decode an image."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log debug message."""
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log info message."""
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log warning message."""
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log error message."""
        ...


class CacheSink(ABC):
    """Abstract write target for one cache entry."""

    @abstractmethod
    async def write(self, chunk: bytes) -> None:
        """Append a chunk."""
        ...

    @abstractmethod
    async def commit(self) -> None:
        """Publish the entry under its final name."""
        ...

    @abstractmethod
    async def abort(self) -> None:
        """Discard everything written so far."""
        ...


class CacheStore(ABC):
    """Abstract fingerprint-addressed cache of transformed images."""

    @abstractmethod
    async def try_serve(self, fingerprint: str) -> Optional[Any]:
        """Return a servable cached image, or None on a miss."""
        ...

    @abstractmethod
    async def open_writer(self, fingerprint: str) -> CacheSink:
        """Open a fresh write target for the fingerprint."""
        ...
