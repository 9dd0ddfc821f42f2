"""Custom exceptions and error handling utilities for the image resizer."""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from PIL import UnidentifiedImageError

from .logging_config import get_logger


class ImageResizerError(Exception):
    """Base exception for all image resizer errors."""


class ConfigurationError(ImageResizerError):
    """Error raised for invalid configuration options."""


class ImageProcessingError(ImageResizerError):
    """Error raised when the engine fails to transform an image."""


class UnsupportedFormatError(ImageProcessingError):
    """Error raised when the engine has no decoder for the payload."""


class GeometryError(ImageProcessingError):
    """Error raised for degenerate geometry such as a zero-height canvas."""


class SourceError(ImageResizerError):
    """Error raised when the source image cannot be acquired."""


class SourceFetchError(SourceError):
    """Error raised when a remote fetch fails or answers with status >= 400."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SourceReadError(SourceError):
    """Error raised when a local source file cannot be read."""


class CacheError(ImageResizerError):
    """Base error for cache failures."""


class CacheReadError(CacheError):
    """Error raised when a valid-looking cache entry cannot be decoded."""


class CacheWriteError(CacheError):
    """Error raised when a cache entry cannot be written."""


F = TypeVar("F", bound=Callable[..., Any])

NO_DECODE_DELEGATE = "no decode delegate for this image format"


def with_error_handling(func: F) -> F:
    """Wrap an engine call so every failure surfaces as an ImageResizerError."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:  # type: ignore[override]
        logger = get_logger("engine")
        try:
            return func(*args, **kwargs)
        except ImageResizerError:
            logger.debug(f"Engine error in {func.__name__}", exc_info=True)
            raise
        except UnidentifiedImageError as exc:
            logger.warning(f"Undecodable image in {func.__name__}: {exc}")
            raise UnsupportedFormatError(f"{NO_DECODE_DELEGATE}: {exc}") from exc
        except Exception as exc:  # noqa: BLE001
            logger.error(f"Unhandled error in {func.__name__}: {exc}", exc_info=True)
            raise ImageProcessingError(str(exc)) from exc

    return wrapper  # type: ignore[return-value]
