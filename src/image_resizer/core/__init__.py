"""Core utilities and shared components for the image resizer."""

from .logging_config import (
    configure_logging,
    get_logger,
    setup_logger,
)
from .exceptions import (
    ImageResizerError,
    ConfigurationError,
    ImageProcessingError,
    UnsupportedFormatError,
    GeometryError,
    SourceError,
    SourceFetchError,
    SourceReadError,
    CacheError,
    CacheReadError,
    CacheWriteError,
    with_error_handling,
)
from .models import (
    CropBox,
    Dimensions,
    GeometryPlan,
    ImageRequest,
    ResizerConfig,
    Size,
    TransformSpec,
)
from .fingerprint import build_fingerprint
from .geometry import GeometryPlanner, plan_aspect_crop, plan_resize

__all__ = [
    "ResizerConfig",
    "ImageRequest",
    "TransformSpec",
    "Dimensions",
    "Size",
    "CropBox",
    "GeometryPlan",
    "GeometryPlanner",
    "plan_aspect_crop",
    "plan_resize",
    "build_fingerprint",
    "setup_logger",
    "get_logger",
    "configure_logging",
    "ImageResizerError",
    "ConfigurationError",
    "ImageProcessingError",
    "UnsupportedFormatError",
    "GeometryError",
    "SourceError",
    "SourceFetchError",
    "SourceReadError",
    "CacheError",
    "CacheReadError",
    "CacheWriteError",
    "with_error_handling",
]
