"""Fill-resize adapter used as the corrective fallback of the crop pipeline."""

from __future__ import annotations

import enum
import math
from typing import Protocol

from PIL import Image, ImageOps

from scale_factors import compute_scale_factors, derive_target_size

RESAMPLING_FILTERS = {
    "nearest": Image.Resampling.NEAREST,
    "box": Image.Resampling.BOX,
    "linear": Image.Resampling.BILINEAR,
    "bilinear": Image.Resampling.BILINEAR,
    "cubic": Image.Resampling.BICUBIC,
    "bicubic": Image.Resampling.BICUBIC,
    "lanczos": Image.Resampling.LANCZOS,
}


class Anchor(enum.Enum):
    """Reference point kept when a fill-resize has to discard content."""

    CENTER = "center"
    TOP_LEFT = "top-left"
    TOP = "top"
    TOP_RIGHT = "top-right"
    LEFT = "left"
    RIGHT = "right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM = "bottom"
    BOTTOM_RIGHT = "bottom-right"

    @property
    def centering(self) -> tuple[float, float]:
        return _CENTERING[self]


_CENTERING = {
    Anchor.CENTER: (0.5, 0.5),
    Anchor.TOP_LEFT: (0.0, 0.0),
    Anchor.TOP: (0.5, 0.0),
    Anchor.TOP_RIGHT: (1.0, 0.0),
    Anchor.LEFT: (0.0, 0.5),
    Anchor.RIGHT: (1.0, 0.5),
    Anchor.BOTTOM_LEFT: (0.0, 1.0),
    Anchor.BOTTOM: (0.5, 1.0),
    Anchor.BOTTOM_RIGHT: (1.0, 1.0),
}


def resampling_filter(name: str) -> Image.Resampling:
    key = str(name).strip().lower()
    if key not in RESAMPLING_FILTERS:
        raise ValueError(f"unknown resampling filter {name!r}, expected one of: {', '.join(RESAMPLING_FILTERS)}")
    return RESAMPLING_FILTERS[key]


class FillResampler(Protocol):
    def fill(
        self, image: Image.Image, width: int, height: int, anchor: Anchor, resampling: Image.Resampling
    ) -> Image.Image:
        ...


class PillowFillResampler:
    """Fill-resize on top of Pillow.

    ``height == 0`` resizes to ``width`` keeping the aspect ratio; otherwise the
    image is scaled to cover ``width x height`` and the excess is cropped
    around ``anchor``.
    """

    def fill(
        self, image: Image.Image, width: int, height: int, anchor: Anchor, resampling: Image.Resampling
    ) -> Image.Image:
        if width <= 0:
            raise ValueError(f"fill width must be positive, got {width}")
        if height == 0:
            height = max(1, int(round(width * image.height / float(image.width))))
            if image.size == (width, height):
                return image.copy()
            return image.resize((width, height), resampling)
        if image.size == (width, height):
            return image.copy()
        return ImageOps.fit(image, (width, height), method=resampling, centering=anchor.centering)


class FillResizer:
    """Resize (not crop) an image so that it fills the requested box.

    With ``legacy_auto_height`` the derived height is not forwarded to the
    resampler, which then fills to the target width with automatic height.
    """

    def __init__(
        self,
        anchor: Anchor = Anchor.CENTER,
        resampling: str = "lanczos",
        resampler: FillResampler | None = None,
        legacy_auto_height: bool = False,
    ) -> None:
        self.anchor = anchor
        self.resampling = resampling_filter(resampling)
        self.resampler = resampler or PillowFillResampler()
        self.legacy_auto_height = legacy_auto_height

    def resize(self, image: Image.Image, width: int, height: int) -> Image.Image:
        scale_x, scale_y = compute_scale_factors(width, height, image.width, image.height)
        if width == 0:
            width = int(math.ceil(image.width / scale_x))
        if height == 0:
            height = int(math.ceil(image.height / scale_y))

        fill_height = 0 if self.legacy_auto_height else height
        return self.resampler.fill(image, width, fill_height, self.anchor, self.resampling)


def fill_crop(image: Image.Image, width: int, height: int) -> Image.Image:
    """Centre-anchored cubic fill-resize to ``width x height`` without any saliency analysis."""
    width, height = derive_target_size(width, height, image.width, image.height)
    return PillowFillResampler().fill(image, width, height, Anchor.CENTER, Image.Resampling.BICUBIC)
