# python/crossdenoise/cli.py
# Batch command-line denoiser: load color + optional guides, denoise, write by output extension.
# Each guide is loaded independently; a missing guide only disables its weight term.
# RELEVANT FILES: python/crossdenoise/image_io.py, python/crossdenoise/strategy.py, tests/test_cli.py

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from .image_io import load_image, output_format, save_image
from .params import BOUNDARY_POLICIES, DENOISE_METHODS, load_denoise_config
from .strategy import denoiser_from_settings
from .weights import GuideBuffers

logger = logging.getLogger("crossdenoise")


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="crossdenoise",
        description="Denoise a rendered image, optionally guided by albedo/normal/depth buffers.",
    )
    parser.add_argument("input", type=Path, help="Noisy color image")
    parser.add_argument("-o", "--output", type=Path, required=True,
                        help="Output image; extension selects encoding (png/jpg/ppm 8-bit, exr/pfm/hdr/npy float)")
    parser.add_argument("-a", "--albedo", type=Path, default=None, help="Albedo image")
    parser.add_argument("-n", "--normal", type=Path, default=None, help="Normal image")
    parser.add_argument("-d", "--depth", type=Path, default=None, help="Depth image")
    parser.add_argument("--config", type=Path, default=None, help="JSON denoise settings")
    parser.add_argument("--method", choices=DENOISE_METHODS, default=None,
                        help="Denoiser backend (default: auto)")
    parser.add_argument("-w", "--half-width", type=int, default=None,
                        help="Filter window half-width (window is 2w+1)")
    parser.add_argument("--inv-sigma-pixel", type=float, default=None)
    parser.add_argument("--inv-sigma-albedo", type=float, default=None)
    parser.add_argument("--inv-sigma-normal", type=float, default=None)
    parser.add_argument("--inv-sigma-depth", type=float, default=None)
    parser.add_argument("--boundary", choices=BOUNDARY_POLICIES, default=None,
                        help="Border handling for the bilateral filter (default: wrap)")
    parser.add_argument("--tile", type=int, default=None, help="Tile size for threaded filtering")
    parser.add_argument("--workers", type=int, default=None, help="Worker threads for tiled filtering")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def _load_guide(label: str, path: Optional[Path]):
    if path is None:
        return None
    img = load_image(path)
    logger.info("loaded %s guide from %s", label, path)
    return img


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    overrides = {
        "method": args.method,
        "half_width": args.half_width,
        "inv_sigma_pixel": args.inv_sigma_pixel,
        "inv_sigma_albedo": args.inv_sigma_albedo,
        "inv_sigma_normal": args.inv_sigma_normal,
        "inv_sigma_depth": args.inv_sigma_depth,
        "boundary": args.boundary,
        "tile": args.tile,
        "workers": args.workers,
    }

    try:
        settings = load_denoise_config(args.config, overrides)
        out_path, fmt = output_format(args.output)
        # HDR mode follows the output encoding
        settings.hdr = fmt.float32

        if not args.input.exists():
            logger.error("input image not found: %s", args.input)
            return 1
        color = load_image(args.input)
        guides = GuideBuffers(
            albedo=_load_guide("albedo", args.albedo),
            normal=_load_guide("normal", args.normal),
            depth=_load_guide("depth", args.depth),
        )

        denoiser = denoiser_from_settings(settings)
        logger.info("denoising %s (%dx%d) with %r", args.input, color.shape[1], color.shape[0], denoiser)
        t0 = time.perf_counter()
        result = denoiser.denoise(color, guides, settings.filter)
        logger.info("denoised in %.2fs", time.perf_counter() - t0)

        save_image(out_path, result)
    except (ValueError, RuntimeError, OSError, ImportError, TypeError) as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
