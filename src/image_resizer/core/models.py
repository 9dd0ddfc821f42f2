"""Shared data models for the image resizer."""

import math
import os
import re
import tempfile
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_TTL_MS = 1000 * 60 * 60 * 24 * 7  # 1 week

_LEADING_SIDE = re.compile(r"^[^x]+")
_TRAILING_SIDE = re.compile(r"[^x]+$")
_FALSEY = {"0", "false", "no", "off", ""}


def _to_number(value: Optional[str]) -> Optional[float]:
    """Parse a query value as a finite number, or None."""
    if value is None:
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def _to_positive(value: Optional[str]) -> Optional[float]:
    number = _to_number(value)
    if number is None or number <= 0:
        return None
    return number


def _first_match(pattern: "re.Pattern[str]", value: str) -> Optional[str]:
    match = pattern.search(value)
    return match.group(0) if match else None


class ResizerConfig(BaseModel):
    """Configuration built once at startup and shared by every request."""

    model_config = ConfigDict(frozen=True)

    cache_folder: str = Field(default_factory=tempfile.gettempdir)
    ttl_ms: int = DEFAULT_TTL_MS
    allow_proxy: bool = True
    image_dir: str = Field(default_factory=os.getcwd)
    engine: str = "pillow"
    fetch_timeout: Optional[float] = None
    route: str = "/"
    debug: bool = False

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any
    ) -> "ResizerConfig":
        """
        Build a configuration from IMAGE_RESIZER_* environment variables.

        Explicit keyword overrides win over the environment; anything unset
        falls back to the field defaults.
        """
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        for field_name in cls.model_fields:
            raw = env.get(f"IMAGE_RESIZER_{field_name.upper()}")
            if raw is None:
                continue
            if field_name in ("allow_proxy", "debug"):
                values[field_name] = raw.strip().lower() not in _FALSEY
            else:
                values[field_name] = raw

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class ImageRequest(BaseModel):
    """Raw query parameters of one resize request."""

    model_config = ConfigDict(frozen=True)

    image: str
    resize: str = "0x0"
    crop: str = "0x0"
    quality: Optional[str] = None
    sx: Optional[str] = None
    sy: Optional[str] = None
    sw: Optional[str] = None
    sh: Optional[str] = None
    upscale: Optional[str] = None

    @field_validator("resize", "crop", mode="before")
    @classmethod
    def _default_dimensions(cls, value: Optional[str]) -> str:
        return value or "0x0"

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> "ImageRequest":
        """Build a request from a query-string mapping, ignoring unknown keys."""
        known = {name: params[name] for name in cls.model_fields if name in params}
        return cls(**known)

    def with_location(self, location: str) -> "ImageRequest":
        """Return a copy whose image location is replaced."""
        return self.model_copy(update={"image": location})


class Dimensions(BaseModel):
    """A width/height pair where either side may be unconstrained."""

    model_config = ConfigDict(frozen=True)

    width: Optional[float] = None
    height: Optional[float] = None

    @property
    def requested(self) -> bool:
        return bool(self.width or self.height)

    @classmethod
    def parse(cls, value: str) -> "Dimensions":
        """
        Parse a "WxH" string.

        "50x" constrains only the width, "x50" only the height, and a bare
        "50" constrains both. Zero, negative or non-numeric sides are
        unconstrained.
        """
        return cls(
            width=_to_positive(_first_match(_LEADING_SIDE, value)),
            height=_to_positive(_first_match(_TRAILING_SIDE, value)),
        )


@dataclass(frozen=True)
class Size:
    """Measured pixel size of an image."""

    width: int
    height: int


@dataclass(frozen=True)
class CropBox:
    """A pixel rectangle; a zero width or height extends to the image edge."""

    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class GeometryPlan:
    """Concrete aspect crop and resize target for one request."""

    aspect_crop: Optional[CropBox] = None
    resize_to: Optional[Size] = None


class TransformSpec(BaseModel):
    """Parsed, typed form of an ImageRequest."""

    model_config = ConfigDict(frozen=True)

    resize: Dimensions = Field(default_factory=Dimensions)
    crop_ratio: Dimensions = Field(default_factory=Dimensions)
    custom_crop: Optional[CropBox] = None
    quality: Optional[int] = None
    upscale: bool = False

    @classmethod
    def from_request(cls, request: ImageRequest) -> "TransformSpec":
        return cls(
            resize=Dimensions.parse(request.resize),
            crop_ratio=Dimensions.parse(request.crop),
            custom_crop=parse_custom_crop(
                request.sx, request.sy, request.sw, request.sh
            ),
            quality=parse_quality(request.quality),
            upscale=parse_upscale(request.upscale),
        )


def _crop_number(value: Optional[str]) -> Optional[float]:
    if value is not None and not value.strip():
        return 0.0
    return _to_number(value)


def parse_custom_crop(
    sx: Optional[str], sy: Optional[str], sw: Optional[str], sh: Optional[str]
) -> Optional[CropBox]:
    """
    Return the custom crop only if all four values are numbers >= 0.

    A missing value disables the crop; an empty one is read as 0.
    """
    values = [_crop_number(v) for v in (sx, sy, sw, sh)]
    if any(v is None or v < 0 for v in values):
        return None
    x, y, w, h = (int(v) for v in values)  # type: ignore[arg-type]
    return CropBox(x=x, y=y, width=w, height=h)


def parse_quality(value: Optional[str]) -> Optional[int]:
    number = _to_number(value)
    if number is None:
        return None
    return max(1, min(100, int(round(number))))


def parse_upscale(value: Optional[str]) -> bool:
    return bool(value) and "true" in value.lower()  # type: ignore[union-attr]
