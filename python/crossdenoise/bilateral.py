# python/crossdenoise/bilateral.py
# Cross-bilateral denoiser guided by albedo/normal/depth; pure NumPy implementation.
# Reference/fallback denoiser used when no accelerated backend is configured.
# RELEVANT FILES: python/crossdenoise/weights.py, python/crossdenoise/strategy.py, tests/test_denoise.py

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple

import numpy as np

from .boundary import gather, resolve_index, resolve_indices
from .params import FilterParameters
from .weights import GuideBuffers, _pixel_weight, offset_weights

logger = logging.getLogger(__name__)


def as_color(color: np.ndarray) -> np.ndarray:
    """Validate a color buffer and return it as float32 (H, W, 3)."""
    if color is None:
        raise ValueError("color image is required")
    arr = np.asarray(color)
    if arr.ndim != 3 or arr.shape[2] != 3:
        raise ValueError(f"color must be (H, W, 3); got shape {arr.shape}")
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        raise ValueError("color must have non-zero width and height")
    if not np.issubdtype(arr.dtype, np.number):
        raise ValueError(f"color must be numeric; got dtype {arr.dtype}")
    arr = arr.astype(np.float32, copy=False)
    if not np.all(np.isfinite(arr)):
        raise ValueError("color contains non-finite values")
    return arr


def _tile_blocks(h: int, w: int, tile: int) -> List[Tuple[np.ndarray, np.ndarray]]:
    """Row/column index ranges of square tiles covering an (h, w) image; edge tiles are partial."""
    t = max(1, int(tile))
    return [
        (np.arange(y, min(y + t, h)), np.arange(x, min(x + t, w)))
        for y in range(0, h, t)
        for x in range(0, w, t)
    ]


def _filter_block(
    color: np.ndarray,
    features: dict,
    params: FilterParameters,
    rows: np.ndarray,
    cols: np.ndarray,
) -> np.ndarray:
    h, w, _ = color.shape
    r = params.half_width
    cum_value = np.zeros((len(rows), len(cols), 3), dtype=np.float64)
    cum_weight = np.zeros((len(rows), len(cols)), dtype=np.float64)

    for di in range(-r, r + 1):
        nrows = resolve_indices(rows + di, h, params.boundary)
        for dj in range(-r, r + 1):
            ncols = resolve_indices(cols + dj, w, params.boundary)
            wgt = offset_weights(features, (di, dj), params, rows, cols)
            cum_value += wgt[..., None] * gather(color, nrows, ncols)
            cum_weight += wgt

    bad = ~(np.isfinite(cum_weight) & (cum_weight > 0.0))
    if np.any(bad):
        raise ValueError(
            f"degenerate filter weights: normalization is zero or non-finite at "
            f"{int(np.count_nonzero(bad))} pixel(s); check inv_sigma values and half_width"
        )
    return cum_value / cum_weight[..., None]


def cross_bilateral_denoise(
    color: np.ndarray,
    *,
    albedo: Optional[np.ndarray] = None,
    normal: Optional[np.ndarray] = None,
    depth: Optional[np.ndarray] = None,
    params: Optional[FilterParameters] = None,
    out: Optional[np.ndarray] = None,
    tile: Optional[int] = None,
    workers: Optional[int] = None,
) -> np.ndarray:
    """Cross-bilateral edge-aware denoiser guided by auxiliary features.

    Args:
        color: float (H, W, 3) in linear space.
        albedo: optional (H, W, 3); disables the albedo term when None.
        normal: optional (H, W, 3); disables the normal term when None.
        depth: optional (H, W), (H, W, 1) or (H, W, 3); disables the depth term when None.
        params: window half-width, inverse sigmas and boundary policy.
        out: optional preallocated (H, W, 3) buffer; must not overlap the inputs.
        tile: if set, filter in square tiles of this size on a thread pool.
        workers: thread count for the tiled path (default: CPU count).

    Returns:
        Denoised color with the same height and width as ``color``
        (``out`` when given, otherwise a new float32 array).
    """
    params = params or FilterParameters()
    c = as_color(color)
    h, w, _ = c.shape
    guides = GuideBuffers(albedo=albedo, normal=normal, depth=depth)
    features = guides.features((h, w))

    if out is not None:
        if out.shape != c.shape:
            raise ValueError(f"out must have shape {c.shape}; got {out.shape}")
        for name, buf in (("color", color),) + tuple(guides.items()):
            if isinstance(buf, np.ndarray) and np.may_share_memory(out, buf):
                raise ValueError(f"out must not share memory with {name}")
        result = out
    else:
        result = np.empty_like(c)

    logger.debug(
        "cross-bilateral %dx%d w=%d boundary=%s guides=%s",
        w, h, params.half_width, params.boundary, list(features) or "none",
    )

    if tile is None:
        result[...] = _filter_block(c, features, params, np.arange(h), np.arange(w))
        return result

    tiles = _tile_blocks(h, w, tile)
    max_workers = workers or min(len(tiles), os.cpu_count() or 1)

    def _run(block: Tuple[np.ndarray, np.ndarray]) -> None:
        rows, cols = block
        # tiles are disjoint, so threads never write the same pixels
        result[rows[0] : rows[-1] + 1, cols[0] : cols[-1] + 1, :] = _filter_block(c, features, params, rows, cols)

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        # list() re-raises the first worker exception
        list(pool.map(_run, tiles))
    logger.debug("filtered %d tile(s) with %d worker(s)", len(tiles), max_workers)
    return result


def denoise_pixel(
    color: np.ndarray,
    row: int,
    col: int,
    *,
    albedo: Optional[np.ndarray] = None,
    normal: Optional[np.ndarray] = None,
    depth: Optional[np.ndarray] = None,
    params: Optional[FilterParameters] = None,
) -> np.ndarray:
    """Scalar reference for one output pixel; slow, intended for checks."""
    params = params or FilterParameters()
    c = as_color(color).astype(np.float64)
    h, w, _ = c.shape
    guides = GuideBuffers(albedo=albedo, normal=normal, depth=depth)
    guides.validate((h, w))
    if not (0 <= row < h and 0 <= col < w):
        raise ValueError(f"pixel ({row}, {col}) outside image {w}x{h}")

    cum_value = np.zeros(3, dtype=np.float64)
    cum_weight = 0.0
    r = params.half_width
    for di in range(-r, r + 1):
        for dj in range(-r, r + 1):
            u = resolve_index(row + di, h, params.boundary)
            v = resolve_index(col + dj, w, params.boundary)
            weight = _pixel_weight((row, col), (di, dj), guides, params)
            cum_value += weight * c[u, v]
            cum_weight += weight

    if not (np.isfinite(cum_weight) and cum_weight > 0.0):
        raise ValueError(f"degenerate filter weights at pixel ({row}, {col})")
    return cum_value / cum_weight


__all__ = ["as_color", "cross_bilateral_denoise", "denoise_pixel"]
