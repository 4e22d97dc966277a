"""Scale factor arithmetic for aspect-preserving resizes.

A target dimension of ``0`` means "unspecified": it is derived from the
other dimension so that the source aspect ratio is kept.
"""

from __future__ import annotations

import math


def compute_scale_factors(
    target_width: int, target_height: int, source_width: float, source_height: float
) -> tuple[float, float]:
    if target_width == 0:
        if target_height == 0:
            return 1.0, 1.0
        scale_y = float(source_height) / float(target_height)
        return scale_y, scale_y

    scale_x = float(source_width) / float(target_width)
    if target_height == 0:
        return scale_x, scale_x
    return scale_x, float(source_height) / float(target_height)


def derive_target_size(
    target_width: int, target_height: int, source_width: int, source_height: int
) -> tuple[int, int]:
    """Fill in unspecified (zero) target dimensions from the source size."""
    scale_x, scale_y = compute_scale_factors(target_width, target_height, source_width, source_height)
    width = target_width or int(math.ceil(source_width / scale_x))
    height = target_height or int(math.ceil(source_height / scale_y))
    return width, height
