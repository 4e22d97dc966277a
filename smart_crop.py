#!/usr/bin/env python3
"""Smart crop a JPEG to the requested size.

Usage:
    smart-crop -i in.jpg -o out.jpg -w 300 -h 300

``-h`` is the target height; use ``--help`` for help. A zero (or missing)
width or height is derived from the source aspect ratio.

Exit codes: 0 ok, 2 input error, 3 crop analysis error, 4 output error.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from crop_analyzers import ANALYZERS, CropRect, build_analyzer
from crop_config import CropConfig
from crop_errors import SmartCropError
from crop_pipeline import CropResult, run_smart_crop
from fill_resize import Anchor, FillResizer, fill_crop
from jpeg_io import load_jpeg, save_jpeg

logger = logging.getLogger("smart_crop")


def non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Smart crop a JPEG image", add_help=False)
    parser.add_argument("--help", action="help", help="Show this help message and exit")
    parser.add_argument("-i", "--input-image", required=True, help="input image")
    parser.add_argument("-o", "--output-image", required=True, help="output image")
    parser.add_argument("-w", "--width", type=non_negative_int, default=0, help="image width (0 = derive)")
    parser.add_argument("-h", "--height", type=non_negative_int, default=0, help="image height (0 = derive)")
    parser.add_argument(
        "--mode",
        choices=["smart", "fill"],
        default="smart",
        help="smart: saliency crop; fill: plain centred fill-resize",
    )
    parser.add_argument("--analyzer", choices=list(ANALYZERS), default=None, help="crop analyzer")
    parser.add_argument("--quality", type=int, default=None, help="JPEG quality 0..100")
    parser.add_argument(
        "--legacy-auto-height",
        action="store_true",
        default=None,
        help="fallback resize fills to the target width only, with automatic height",
    )
    parser.add_argument("--json", action="store_true", help="print a JSON report to stdout")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="logging level",
    )
    return parser.parse_args(argv)


def run(args: argparse.Namespace, config: CropConfig) -> dict:
    image = load_jpeg(args.input_image)

    if args.mode == "fill":
        dst = fill_crop(image, args.width, args.height)
        result = CropResult(dst, CropRect(0, 0, image.width, image.height), dst.size != image.size)
    else:
        analyzer = build_analyzer(config.analyzer, logger=logger, max_analysis_size=config.max_analysis_size)
        resizer = FillResizer(
            anchor=Anchor(config.anchor),
            resampling=config.resampling,
            legacy_auto_height=config.legacy_auto_height,
        )
        result = run_smart_crop(image, args.width, args.height, analyzer=analyzer, resizer=resizer, logger=logger)

    out_path = save_jpeg(result.image, args.output_image, quality=config.quality)
    logger.info("wrote %dx%d image to %s", result.image.width, result.image.height, out_path)
    return {
        "out_path": out_path,
        "size": [int(result.image.width), int(result.image.height)],
        "crop": list(result.rect.box),
        "resized": bool(result.resized),
        "mode": args.mode,
        "analyzer": config.analyzer if args.mode == "smart" else None,
    }


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    config = CropConfig.from_env().with_overrides(
        analyzer=args.analyzer,
        quality=args.quality,
        legacy_auto_height=args.legacy_auto_height,
        log_level=args.log_level,
    )

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    try:
        info = run(args, config)
    except SmartCropError as err:
        cause = f" (cause: {err.__cause__})" if err.__cause__ is not None else ""
        logger.critical("Fatal: %s%s", err, cause)
        return err.exit_code
    except ValueError as err:
        logger.critical("Fatal: invalid configuration: %s", err)
        return 1

    if args.json:
        print(json.dumps(info, separators=(",", ":")))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
