"""Pillow-backed image engine."""

import io
from pathlib import Path
from typing import Any, Dict, Optional

from PIL import Image

from .exceptions import GeometryError, with_error_handling
from .models import CropBox, Size
from .protocols import ImageInput

EXIF_ORIENTATION = 0x0112

_ORIENTATION_TRANSPOSE = {
    2: Image.Transpose.FLIP_LEFT_RIGHT,
    3: Image.Transpose.ROTATE_180,
    4: Image.Transpose.FLIP_TOP_BOTTOM,
    5: Image.Transpose.TRANSPOSE,
    6: Image.Transpose.ROTATE_270,
    7: Image.Transpose.TRANSVERSE,
    8: Image.Transpose.ROTATE_90,
}

# Formats Pillow writes under another name; anything else it cannot write
# falls back to FALLBACK_FORMAT.
_OUTPUT_FORMATS = {"MPO": "JPEG"}
FALLBACK_FORMAT = "PNG"

_LOSSY_FORMATS = {"JPEG", "WEBP"}

_PNG_MODES = {"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"}


def _as_file(source: ImageInput) -> Any:
    if isinstance(source, bytes):
        return io.BytesIO(source)
    return Path(source)


def clamp_crop_box(box: CropBox, size: Size) -> CropBox:
    """
    Fit a crop rectangle inside the image.

    A zero width or height extends the rectangle to the image edge.

    Raises:
        GeometryError: If nothing of the image remains inside the rectangle.
    """
    x = min(box.x, size.width)
    y = min(box.y, size.height)
    width = box.width or size.width - x
    height = box.height or size.height - y
    width = min(width, size.width - x)
    height = min(height, size.height - y)

    if width <= 0 or height <= 0:
        raise GeometryError(
            f"Crop {box.width}x{box.height}+{box.x}+{box.y} lies outside "
            f"the {size.width}x{size.height} image"
        )
    return CropBox(x=x, y=y, width=width, height=height)


class PillowImage:
    """Decoded image plus the metadata that survives transformations."""

    def __init__(self, image: Image.Image, source_format: str, orientation: int = 1):
        self._image = image
        self._format = source_format
        self._orientation = orientation

    @property
    def format(self) -> str:
        return self._format

    @property
    def orientation(self) -> int:
        return self._orientation

    @property
    def output_format(self) -> str:
        output_format = _OUTPUT_FORMATS.get(self._format, self._format)
        Image.init()
        if output_format not in Image.SAVE:
            return FALLBACK_FORMAT
        return output_format

    def _derive(self, image: Image.Image, orientation: Optional[int] = None) -> "PillowImage":
        return PillowImage(
            image,
            self._format,
            self._orientation if orientation is None else orientation,
        )

    def size(self) -> Size:
        width, height = self._image.size
        return Size(width=width, height=height)

    @with_error_handling
    def crop(self, box: CropBox) -> "PillowImage":
        box = clamp_crop_box(box, self.size())
        cropped = self._image.crop((box.x, box.y, box.x + box.width, box.y + box.height))
        return self._derive(cropped)

    @with_error_handling
    def resize(self, target: Size) -> "PillowImage":
        resized = self._image.resize(
            (target.width, target.height), Image.Resampling.LANCZOS
        )
        return self._derive(resized)

    @with_error_handling
    def auto_orient(self) -> "PillowImage":
        method = _ORIENTATION_TRANSPOSE.get(self._orientation)
        if method is None:
            return self._derive(self._image, orientation=1)
        return self._derive(self._image.transpose(method), orientation=1)

    @with_error_handling
    def encode(self, quality: Optional[int] = None) -> bytes:
        output_format = self.output_format
        image = self._image

        if output_format == "JPEG" and image.mode not in ("RGB", "L", "CMYK"):
            image = image.convert("RGB")
        elif output_format == "PNG" and image.mode not in _PNG_MODES:
            image = image.convert("RGBA")

        params: Dict[str, Any] = {}
        if quality is not None and output_format in _LOSSY_FORMATS:
            params["quality"] = quality

        output_stream = io.BytesIO()
        image.save(output_stream, format=output_format, **params)
        return output_stream.getvalue()


class PillowEngine:
    """Image engine built on Pillow."""

    name = "pillow"

    @with_error_handling
    def probe_format(self, source: ImageInput) -> str:
        with Image.open(_as_file(source)) as image:
            return image.format or "unknown"

    @with_error_handling
    def open(self, source: ImageInput) -> PillowImage:
        image = Image.open(_as_file(source))
        image.load()

        source_format = image.format or "PNG"
        orientation = image.getexif().get(EXIF_ORIENTATION, 1)
        return PillowImage(image, source_format, orientation)
