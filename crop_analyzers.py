"""Crop analyzers: find the best ``width x height`` shaped rectangle in an image.

Every analyzer exposes ``find_best_crop(image, width, height) -> CropRect`` and
raises on failure; the pipeline wraps whatever it raises.
"""

from __future__ import annotations

import logging
import math
from typing import NamedTuple, Protocol

import cv2
import numpy as np
import smartcrop
from PIL import Image

DEFAULT_MAX_ANALYSIS_SIZE = 512


class CropRect(NamedTuple):
    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def box(self) -> tuple[int, int, int, int]:
        return (self.left, self.top, self.right, self.bottom)

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> CropRect:
        left = int(x)
        top = int(y)
        return cls(left, top, left + int(w), top + int(h))

    def clamped(self, image_w: int, image_h: int) -> CropRect:
        """Clamp into image bounds; raises ValueError when nothing is left."""
        left = max(0, min(self.left, image_w))
        top = max(0, min(self.top, image_h))
        right = max(0, min(self.right, image_w))
        bottom = max(0, min(self.bottom, image_h))
        if right <= left or bottom <= top:
            raise ValueError(f"empty crop rectangle {self.box} for image {image_w}x{image_h}")
        return CropRect(left, top, right, bottom)


class CropAnalyzer(Protocol):
    def find_best_crop(self, image: Image.Image, width: int, height: int) -> CropRect:
        ...


def check_target_fits(image: Image.Image, width: int, height: int) -> None:
    if width <= 0 or height <= 0:
        raise ValueError(f"crop size must be positive, got {width}x{height}")
    if width > image.width or height > image.height:
        raise ValueError(
            f"image too small for requested crop: image {image.width}x{image.height}, crop {width}x{height}"
        )


def largest_window(image_w: int, image_h: int, width: int, height: int) -> tuple[int, int]:
    """Largest window with the ``width:height`` aspect ratio that fits the image."""
    scale = min(image_w / float(width), image_h / float(height))
    crop_w = max(1, min(image_w, int(math.floor(width * scale))))
    crop_h = max(1, min(image_h, int(math.floor(height * scale))))
    return crop_w, crop_h


class SmartCropAnalyzer:
    """Saliency crop (edges, skin tone, saturation) provided by the smartcrop library."""

    def __init__(self, logger: logging.Logger | None = None, **options) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._cropper = smartcrop.SmartCrop(**options)

    def find_best_crop(self, image: Image.Image, width: int, height: int) -> CropRect:
        check_target_fits(image, width, height)
        rgb = image if image.mode == "RGB" else image.convert("RGB")
        result = self._cropper.crop(rgb, width=width, height=height)
        top_crop = result["top_crop"]
        self._logger.debug(
            "smartcrop top crop x=%s y=%s w=%s h=%s score=%s",
            top_crop["x"],
            top_crop["y"],
            top_crop["width"],
            top_crop["height"],
            top_crop.get("score"),
        )
        rect = CropRect.from_xywh(top_crop["x"], top_crop["y"], top_crop["width"], top_crop["height"])
        return rect.clamped(image.width, image.height)


def _resize_for_analysis(gray: np.ndarray, max_side: int) -> tuple[np.ndarray, float]:
    h, w = gray.shape[:2]
    scale = float(max_side) / float(max(h, w))
    if scale >= 1.0:
        return gray, 1.0
    new_w = max(1, int(round(w * scale)))
    new_h = max(1, int(round(h * scale)))
    return cv2.resize(gray, (new_w, new_h), interpolation=cv2.INTER_AREA), scale


def edge_saliency_map(gray: np.ndarray) -> np.ndarray:
    gx = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3)
    gy = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3)
    # min-max to [0, 1]; a constant map becomes all zeros
    return cv2.normalize(cv2.magnitude(gx, gy), None, 0.0, 1.0, cv2.NORM_MINMAX, dtype=cv2.CV_32F)


class EdgeSaliencyAnalyzer:
    """Pick the window with the most Sobel edge energy.

    Analysis runs on a grayscale copy downscaled to ``max_analysis_size`` on
    its long side. A map without any edges falls back to the centred window.
    """

    def __init__(self, max_analysis_size: int = DEFAULT_MAX_ANALYSIS_SIZE, logger: logging.Logger | None = None) -> None:
        if max_analysis_size <= 0:
            raise ValueError(f"max_analysis_size must be positive, got {max_analysis_size}")
        self.max_analysis_size = max_analysis_size
        self._logger = logger or logging.getLogger(__name__)

    def find_best_crop(self, image: Image.Image, width: int, height: int) -> CropRect:
        check_target_fits(image, width, height)
        image_w, image_h = image.size
        crop_w, crop_h = largest_window(image_w, image_h, width, height)

        gray = np.array(image.convert("L"))
        analysis, scale = _resize_for_analysis(gray, self.max_analysis_size)
        ah, aw = analysis.shape[:2]
        saliency = edge_saliency_map(analysis)

        win_w = max(1, min(aw, int(round(crop_w * scale))))
        win_h = max(1, min(ah, int(round(crop_h * scale))))

        integral = cv2.integral(saliency)
        sums = (
            integral[win_h:, win_w:]
            - integral[:-win_h, win_w:]
            - integral[win_h:, :-win_w]
            + integral[:-win_h, :-win_w]
        )
        if float(sums.max()) - float(sums.min()) <= 1e-6:
            self._logger.debug("edge saliency map is flat, using centred window")
            left = (image_w - crop_w) // 2
            top = (image_h - crop_h) // 2
            return CropRect(left, top, left + crop_w, top + crop_h)

        best_y, best_x = np.unravel_index(int(np.argmax(sums)), sums.shape)
        self._logger.debug("edge saliency best window at (%d, %d) in %dx%d analysis image", best_x, best_y, aw, ah)

        left = int(round(best_x / scale))
        top = int(round(best_y / scale))
        left = max(0, min(left, image_w - crop_w))
        top = max(0, min(top, image_h - crop_h))
        return CropRect(left, top, left + crop_w, top + crop_h)


class CenterCropAnalyzer:
    """Largest centred window of the requested aspect ratio."""

    def find_best_crop(self, image: Image.Image, width: int, height: int) -> CropRect:
        check_target_fits(image, width, height)
        crop_w, crop_h = largest_window(image.width, image.height, width, height)
        left = (image.width - crop_w) // 2
        top = (image.height - crop_h) // 2
        return CropRect(left, top, left + crop_w, top + crop_h)


ANALYZERS = ("smartcrop", "edge", "center")


def build_analyzer(
    name: str, logger: logging.Logger | None = None, max_analysis_size: int = DEFAULT_MAX_ANALYSIS_SIZE
) -> CropAnalyzer:
    key = str(name).strip().lower()
    if key == "smartcrop":
        return SmartCropAnalyzer(logger=logger)
    if key == "edge":
        return EdgeSaliencyAnalyzer(max_analysis_size=max_analysis_size, logger=logger)
    if key == "center":
        return CenterCropAnalyzer()
    raise ValueError(f"unknown analyzer {name!r}, expected one of: {', '.join(ANALYZERS)}")
