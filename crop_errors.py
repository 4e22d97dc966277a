"""Error types raised by the smart crop pipeline and its CLI."""

from __future__ import annotations


class SmartCropError(Exception):
    """Base class for every fatal smart crop failure."""

    exit_code = 1


class InputError(SmartCropError):
    """Input image is missing, unreadable, undecodable or not a JPEG."""

    exit_code = 2


class CropAnalysisError(SmartCropError):
    """The crop analyzer failed; the original exception is the ``__cause__``."""

    exit_code = 3


class OutputError(SmartCropError):
    """Output image could not be created or encoded."""

    exit_code = 4
