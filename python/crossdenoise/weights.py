# python/crossdenoise/weights.py
# Edge-aware weights from spatial distance and albedo/normal/depth guide differences.
# Absent guide buffers contribute a neutral factor of 1 instead of being treated as zeros.
# RELEVANT FILES: python/crossdenoise/bilateral.py, python/crossdenoise/boundary.py, tests/test_weights.py

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

import numpy as np

from .boundary import gather, resolve_index, resolve_indices
from .params import FilterParameters

GUIDE_NAMES = ("albedo", "normal", "depth")


def _check_guide(name: str, arr: np.ndarray, hw: Tuple[int, int]) -> np.ndarray:
    a = np.asarray(arr)
    h, w = hw
    if name == "depth" and a.ndim == 2:
        a = a[..., None]
    if a.ndim != 3 or a.shape[:2] != (h, w):
        raise ValueError(f"{name} must match color dimensions ({h}, {w}); got shape {np.shape(arr)}")
    if name == "depth":
        if a.shape[2] not in (1, 3):
            raise ValueError(f"depth must have 1 or 3 channels; got {a.shape[2]}")
    elif a.shape[2] != 3:
        raise ValueError(f"{name} must be (H, W, 3); got shape {a.shape}")
    if not np.issubdtype(a.dtype, np.number):
        raise ValueError(f"{name} must be numeric; got dtype {a.dtype}")
    if not np.all(np.isfinite(a)):
        raise ValueError(f"{name} contains non-finite values")
    return a


@dataclass(frozen=True)
class GuideBuffers:
    """Optional auxiliary buffers that modulate filter weights.

    Each buffer is independently optional. Albedo and normal are (H, W, 3);
    depth may be (H, W), (H, W, 1) or (H, W, 3).
    """

    albedo: Optional[np.ndarray] = None
    normal: Optional[np.ndarray] = None
    depth: Optional[np.ndarray] = None

    def items(self) -> Iterator[Tuple[str, np.ndarray]]:
        for name in GUIDE_NAMES:
            buf = getattr(self, name)
            if buf is not None:
                yield name, buf

    @property
    def present(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.items())

    def validate(self, hw: Tuple[int, int]) -> None:
        for name, buf in self.items():
            _check_guide(name, buf, hw)

    def features(self, hw: Tuple[int, int]) -> Dict[str, np.ndarray]:
        """Per-pixel channel means, float64 (H, W), keyed by guide name.

        ``mean(a - b)`` over channels equals ``mean(a) - mean(b)``, so the
        weight only ever needs each guide's channel mean.
        """
        out: Dict[str, np.ndarray] = {}
        for name, buf in self.items():
            a = _check_guide(name, buf, hw)
            out[name] = a.astype(np.float64, copy=False).mean(axis=-1)
        return out


def inv_sigma_for(name: str, params: FilterParameters) -> float:
    return float(getattr(params, f"inv_sigma_{name}"))


def spatial_weight(di: int, dj: int, inv_sigma_pixel: float) -> float:
    return math.exp(-float(inv_sigma_pixel) * float(di * di + dj * dj))


def _guide_shape(guides: GuideBuffers) -> Optional[Tuple[int, int]]:
    for _, buf in guides.items():
        shape = np.shape(buf)
        if len(shape) >= 2:
            return int(shape[0]), int(shape[1])
    return None


def pixel_weight(
    center: Tuple[int, int],
    offset: Tuple[int, int],
    guides: Optional[GuideBuffers] = None,
    params: Optional[FilterParameters] = None,
    *,
    shape: Optional[Tuple[int, int]] = None,
) -> float:
    """Weight between pixel ``center=(row, col)`` and its neighbor at ``offset``.

    Every guide must have the image size ``shape=(h, w)``; when ``shape`` is
    omitted it is taken from the first present guide. ``center`` must lie
    inside that image. The neighbor position is resolved with
    ``params.boundary``. Returns a finite value in ``(0, 1]`` for finite
    guides; exactly 1 at offset (0, 0).
    """
    params = params or FilterParameters()
    guides = guides or GuideBuffers()
    hw = tuple(int(n) for n in shape) if shape is not None else _guide_shape(guides)
    if hw is not None:
        guides.validate(hw)
        r, c = int(center[0]), int(center[1])
        if not (0 <= r < hw[0] and 0 <= c < hw[1]):
            raise ValueError(f"pixel ({r}, {c}) outside image {hw[1]}x{hw[0]}")
    return _pixel_weight(center, offset, guides, params)


def _pixel_weight(
    center: Tuple[int, int],
    offset: Tuple[int, int],
    guides: GuideBuffers,
    params: FilterParameters,
) -> float:
    # callers have validated guides against one (h, w) and the center against it
    r, c = int(center[0]), int(center[1])
    di, dj = int(offset[0]), int(offset[1])

    weight = spatial_weight(di, dj, params.inv_sigma_pixel)
    for name, buf in guides.items():
        inv_sigma = inv_sigma_for(name, params)
        if inv_sigma == 0.0:
            continue
        a = np.asarray(buf, dtype=np.float64)
        if a.ndim == 2:
            a = a[..., None]
        h, w = a.shape[:2]
        nr = resolve_index(r + di, h, params.boundary)
        nc = resolve_index(c + dj, w, params.boundary)
        diff = float(np.mean(a[r, c] - a[nr, nc]))
        weight *= math.exp(-inv_sigma * diff * diff)
    return weight


def offset_weights(
    features: Dict[str, np.ndarray],
    offset: Tuple[int, int],
    params: FilterParameters,
    rows: np.ndarray,
    cols: np.ndarray,
) -> np.ndarray:
    """Weights for one window offset over the block ``rows x cols``.

    ``features`` comes from :meth:`GuideBuffers.features`. Returns float64
    array of shape ``(len(rows), len(cols))``.
    """
    di, dj = int(offset[0]), int(offset[1])
    shape = (len(rows), len(cols))
    wgt = np.full(shape, spatial_weight(di, dj, params.inv_sigma_pixel), dtype=np.float64)

    active = [(n, f) for n, f in features.items() if inv_sigma_for(n, params) > 0.0]
    if not active:
        return wgt

    h, w = next(iter(features.values())).shape
    nrows = resolve_indices(rows + di, h, params.boundary)
    ncols = resolve_indices(cols + dj, w, params.boundary)
    for name, feat in active:
        diff = gather(feat, rows, cols) - gather(feat, nrows, ncols)
        wgt *= np.exp(-inv_sigma_for(name, params) * diff * diff)
    return wgt


__all__ = [
    "GUIDE_NAMES",
    "GuideBuffers",
    "spatial_weight",
    "pixel_weight",
    "offset_weights",
]
