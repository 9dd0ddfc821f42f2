"""Crop and resize planning against a measured image size."""

from typing import Optional

from .exceptions import GeometryError
from .models import CropBox, Dimensions, GeometryPlan, Size, TransformSpec


def _require_area(size: Size) -> None:
    if size.width <= 0 or size.height <= 0:
        raise GeometryError(
            f"Cannot plan geometry for a {size.width}x{size.height} image"
        )


def plan_aspect_crop(size: Size, ratio: Dimensions) -> Optional[CropBox]:
    """
    Compute the centered crop that gives the image the requested ratio.

    Only the axis that is too long is shrunk. Returns None when the ratios
    already match or when the ratio is missing a side.

    Raises:
        GeometryError: If the image has no area.
    """
    if not ratio.requested:
        return None
    _require_area(size)
    if not (ratio.width and ratio.height):
        return None

    source_ratio = size.width / size.height
    target_ratio = ratio.width / ratio.height

    new_width: float = size.width
    new_height: float = size.height
    if source_ratio < target_ratio:
        new_height = size.width / target_ratio
    elif source_ratio > target_ratio:
        new_width = size.height * target_ratio
    else:
        return None

    return CropBox(
        x=int((size.width - new_width) / 2),
        y=int((size.height - new_height) / 2),
        width=max(1, int(round(new_width))),
        height=max(1, int(round(new_height))),
    )


def plan_resize(size: Size, target: Dimensions, upscale: bool) -> Optional[Size]:
    """
    Compute the size that fits the image inside the target box.

    A missing side of the box is unconstrained and the aspect ratio is kept.
    Unless upscale is set the image is never enlarged.

    Raises:
        GeometryError: If the image has no area.
    """
    if not target.requested:
        return None
    _require_area(size)

    scales = []
    if target.width:
        scales.append(target.width / size.width)
    if target.height:
        scales.append(target.height / size.height)
    scale = min(scales)

    if scale == 1 or (scale > 1 and not upscale):
        return None

    return Size(
        width=max(1, int(round(size.width * scale))),
        height=max(1, int(round(size.height * scale))),
    )


class GeometryPlanner:
    """Reconciles the requested geometry with the measured source size."""

    def plan(self, size: Size, spec: TransformSpec) -> GeometryPlan:
        aspect_crop = plan_aspect_crop(size, spec.crop_ratio)

        cropped = size
        if aspect_crop is not None:
            cropped = Size(width=aspect_crop.width, height=aspect_crop.height)

        return GeometryPlan(
            aspect_crop=aspect_crop,
            resize_to=plan_resize(cropped, spec.resize, spec.upscale),
        )
