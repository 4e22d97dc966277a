"""Smart crop pipeline: analyze, crop, then resize when the crop is off-size."""

from __future__ import annotations

import logging
from typing import NamedTuple

from PIL import Image

from crop_analyzers import CropAnalyzer, CropRect, SmartCropAnalyzer
from crop_errors import CropAnalysisError
from fill_resize import Anchor, FillResizer
from scale_factors import derive_target_size


class CropResult(NamedTuple):
    image: Image.Image
    rect: CropRect
    resized: bool


def run_smart_crop(
    image: Image.Image,
    width: int,
    height: int,
    analyzer: CropAnalyzer | None = None,
    resizer: FillResizer | None = None,
    logger: logging.Logger | None = None,
) -> CropResult:
    """Crop ``image`` to exactly ``width x height`` around its most salient region.

    A zero dimension is derived from the source aspect ratio; both zero
    returns an unscaled copy without calling the analyzer. Analyzer failures
    are raised as :class:`CropAnalysisError`.
    """
    log = logger or logging.getLogger(__name__)
    if resizer is None:
        resizer = FillResizer(anchor=Anchor.CENTER, resampling="lanczos")

    full = CropRect(0, 0, image.width, image.height)
    if width == 0 and height == 0:
        log.debug("no target size given, keeping %dx%d", image.width, image.height)
        return CropResult(image.copy(), full, False)
    if width == 0 or height == 0:
        width, height = derive_target_size(width, height, image.width, image.height)
        log.debug("derived target size %dx%d", width, height)

    if analyzer is None:
        analyzer = SmartCropAnalyzer(logger=log)

    try:
        rect = CropRect(*analyzer.find_best_crop(image, width, height)).clamped(image.width, image.height)
    except Exception as err:
        raise CropAnalysisError(f"error finding best crop: {err}") from err
    log.info("best crop %s", rect.box)

    cropped = image.crop(rect.box)
    if cropped.size == (width, height):
        return CropResult(cropped, rect, False)

    log.debug("resizing %dx%d crop to %dx%d", cropped.width, cropped.height, width, height)
    return CropResult(resizer.resize(cropped, width, height), rect, True)


def smart_crop(
    image: Image.Image,
    width: int,
    height: int,
    analyzer: CropAnalyzer | None = None,
    resizer: FillResizer | None = None,
    logger: logging.Logger | None = None,
) -> Image.Image:
    return run_smart_crop(image, width, height, analyzer=analyzer, resizer=resizer, logger=logger).image
