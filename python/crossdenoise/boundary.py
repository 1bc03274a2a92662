# python/crossdenoise/boundary.py
# Neighbor index resolution for pixels that fall outside the image (wrap/clamp/mirror).
# Shared by the vectorized filter and the scalar per-pixel reference path.
# RELEVANT FILES: python/crossdenoise/bilateral.py, python/crossdenoise/weights.py, tests/test_boundary.py

from __future__ import annotations

import numpy as np

from .params import BOUNDARY_CLAMP, BOUNDARY_MIRROR, BOUNDARY_WRAP, normalize_boundary


def resolve_indices(coords: np.ndarray, n: int, policy: str = BOUNDARY_WRAP) -> np.ndarray:
    """Map arbitrary integer coordinates onto ``[0, n)`` under ``policy``.

    wrap:   ``-1 -> n-1`` (periodic image)
    clamp:  ``-1 -> 0``   (edge pixel repeated)
    mirror: ``-1 -> 1``   (reflected about the edge pixel, edge not repeated)
    """
    if n <= 0:
        raise ValueError("axis length must be > 0")
    c = np.asarray(coords, dtype=np.intp)
    policy = normalize_boundary(policy)
    if policy == BOUNDARY_WRAP:
        return np.mod(c, n)
    if policy == BOUNDARY_CLAMP:
        return np.clip(c, 0, n - 1)
    if policy == BOUNDARY_MIRROR:
        if n == 1:
            return np.zeros_like(c)
        period = 2 * (n - 1)
        m = np.mod(c, period)
        return np.where(m >= n, period - m, m)
    raise ValueError(f"Unsupported boundary policy: {policy}")


def resolve_index(coord: int, n: int, policy: str = BOUNDARY_WRAP) -> int:
    """Scalar form of :func:`resolve_indices`."""
    return int(resolve_indices(np.array([coord]), n, policy)[0])


def gather(x: np.ndarray, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
    """Fetch ``x[rows][:, cols]`` for 2D (H,W) or 3D (H,W,C) arrays."""
    if x.ndim not in (2, 3):
        raise ValueError("gather expects 2D or 3D array")
    return x[np.ix_(rows, cols)]


def shift(x: np.ndarray, oy: int, ox: int, policy: str = BOUNDARY_WRAP) -> np.ndarray:
    """Return ``y`` with ``y[r, c] = x[r + oy, c + ox]`` resolved by ``policy``.

    Works for 2D (H,W) or 3D (H,W,C) arrays. Under ``wrap`` this is a cyclic
    roll, so shifting by ``(oy, ox)`` and then ``(-oy, -ox)`` is the identity.
    """
    if x.ndim not in (2, 3):
        raise ValueError("shift expects 2D or 3D array")
    h, w = x.shape[:2]
    rows = resolve_indices(np.arange(h) + int(oy), h, policy)
    cols = resolve_indices(np.arange(w) + int(ox), w, policy)
    return gather(x, rows, cols)


__all__ = ["resolve_indices", "resolve_index", "gather", "shift"]
