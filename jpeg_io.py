"""JPEG load/save helpers that never leave a partial output file behind."""

from __future__ import annotations

import os
import tempfile

from PIL import Image, UnidentifiedImageError

from crop_errors import InputError, OutputError

# Pillow reports JPEGs carrying an MPF block (camera previews) as MPO.
JPEG_FORMATS = ("JPEG", "MPO")


def load_jpeg(path: str) -> Image.Image:
    """Open and fully decode a JPEG (primary frame), normalized to RGB."""
    source = str(path).strip()
    if not source:
        raise InputError("input image path is required")
    if not os.path.isfile(source):
        raise InputError(f"error opening file {source}: no such file")

    try:
        with Image.open(source) as img:
            img_format = img.format
            if img_format not in JPEG_FORMATS:
                raise InputError(f"error decoding image - expected jpeg, got: {str(img_format).lower()}")
            img.load()
            return img.convert("RGB") if img.mode != "RGB" else img.copy()
    except InputError:
        raise
    except UnidentifiedImageError as err:
        raise InputError(f"error decoding image {source}: {err}") from err
    except Image.DecompressionBombError as err:
        raise InputError(f"image {source} is too large to decode: {err}") from err
    except OSError as err:
        raise InputError(f"error reading image {source}: {err}") from err


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def save_jpeg(image: Image.Image, path: str, quality: int) -> str:
    """Encode ``image`` to ``path`` atomically; returns the written path."""
    target = str(path).strip()
    if not target:
        raise OutputError("output image path is required")

    out_dir = os.path.dirname(os.path.abspath(target))
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=".smart-crop-", suffix=".jpg", dir=out_dir)
    except OSError as err:
        raise OutputError(f"error creating file {target}: {err}") from err

    done = False
    try:
        with os.fdopen(fd, "wb") as fh:
            image.convert("RGB").save(fh, format="JPEG", quality=quality)
        os.chmod(tmp_path, 0o666 & ~_current_umask())
        os.replace(tmp_path, target)
        done = True
    except (OSError, ValueError) as err:
        raise OutputError(f"error writing image to {target}: {err}") from err
    finally:
        if not done and os.path.exists(tmp_path):
            os.unlink(tmp_path)
    return target
