# python/crossdenoise/strategy.py
# Interchangeable denoiser strategies behind one denoise(color, guides, params) contract.
# Backend choice happens once at configuration time; "auto" falls back to the bilateral filter.
# RELEVANT FILES: python/crossdenoise/bilateral.py, python/crossdenoise/_native.py, tests/test_strategy.py

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from . import _native
from ._native import AcceleratedRunner
from .bilateral import as_color, cross_bilateral_denoise
from .params import DenoiseSettings, FilterParameters, normalize_method
from .weights import GuideBuffers

logger = logging.getLogger(__name__)

class DenoiseStrategy(ABC):
    """Common contract: (H, W, 3) float color in, same-sized float32 color out.

    Guides are independently optional; a missing guide disables its term and
    is never substituted with zeros. All strategies validate the same way.
    """

    name = "base"

    def denoise(
        self,
        color: np.ndarray,
        guides: Optional[GuideBuffers] = None,
        params: Optional[FilterParameters] = None,
    ) -> np.ndarray:
        c = as_color(color)
        guides = guides or GuideBuffers()
        guides.validate(c.shape[:2])
        out = self._run(c, guides, params)
        if out.shape != c.shape:
            raise RuntimeError(f"{self.name} denoiser returned shape {out.shape}, expected {c.shape}")
        return out

    @abstractmethod
    def _run(
        self, color: np.ndarray, guides: GuideBuffers, params: Optional[FilterParameters]
    ) -> np.ndarray:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class CrossBilateralDenoiser(DenoiseStrategy):
    name = "bilateral"

    def __init__(
        self,
        params: Optional[FilterParameters] = None,
        *,
        tile: Optional[int] = None,
        workers: Optional[int] = None,
    ) -> None:
        self.params = params or FilterParameters()
        self.tile = tile
        self.workers = workers

    def _run(self, color, guides, params):
        return cross_bilateral_denoise(
            color,
            albedo=guides.albedo,
            normal=guides.normal,
            depth=guides.depth,
            params=params or self.params,
            tile=self.tile,
            workers=self.workers,
        )

    def __repr__(self) -> str:
        return f"CrossBilateralDenoiser(params={self.params!r}, tile={self.tile})"


class AcceleratedDenoiser(DenoiseStrategy):
    """Adapter over an external accelerated denoiser.

    ``runner(color, albedo=..., normal=..., hdr=...)`` must return an
    (H, W, 3) array. Only guides that are present are passed. Depth and the
    filter parameters are not used by this backend.
    """

    name = "accelerated"

    def __init__(self, runner: Optional[AcceleratedRunner] = None, *, hdr: bool = True) -> None:
        if runner is None:
            runner = _native.find_accelerated_runner()
            if runner is None:
                raise RuntimeError(
                    "accelerated denoiser is not available; install the compiled backend "
                    "or use method='bilateral'"
                )
        self.runner = runner
        self.hdr = bool(hdr)

    def _run(self, color, guides, params):
        kwargs = {"hdr": self.hdr}
        if guides.albedo is not None:
            kwargs["albedo"] = np.ascontiguousarray(guides.albedo, dtype=np.float32)
        if guides.normal is not None:
            kwargs["normal"] = np.ascontiguousarray(guides.normal, dtype=np.float32)
        if guides.depth is not None:
            logger.debug("accelerated denoiser ignores the depth guide")
        try:
            result = self.runner(np.ascontiguousarray(color), **kwargs)
        except Exception as exc:
            raise RuntimeError(f"accelerated denoiser failed: {exc}") from exc
        if result is None:
            raise RuntimeError("accelerated denoiser returned no image")
        return np.asarray(result, dtype=np.float32)

    def __repr__(self) -> str:
        return f"AcceleratedDenoiser(hdr={self.hdr})"


class PassthroughDenoiser(DenoiseStrategy):
    name = "none"

    def _run(self, color, guides, params):
        return color.copy()


def make_denoiser(
    method: str = "auto",
    *,
    params: Optional[FilterParameters] = None,
    runner: Optional[AcceleratedRunner] = None,
    hdr: bool = True,
    tile: Optional[int] = None,
    workers: Optional[int] = None,
) -> DenoiseStrategy:
    """Select a strategy: 'bilateral', 'accelerated', 'auto' or 'none'.

    'auto' uses the accelerated backend when a runner is given or the native
    binding is importable, otherwise the cross-bilateral filter.
    """
    method = normalize_method(method)
    if method == "auto":
        method = "accelerated" if (runner is not None or _native.accelerated_available()) else "bilateral"
        logger.info("denoiser 'auto' resolved to '%s'", method)
    if method == "accelerated":
        return AcceleratedDenoiser(runner, hdr=hdr)
    if method == "bilateral":
        return CrossBilateralDenoiser(params, tile=tile, workers=workers)
    return PassthroughDenoiser()


def denoiser_from_settings(
    settings: DenoiseSettings, runner: Optional[AcceleratedRunner] = None
) -> DenoiseStrategy:
    return make_denoiser(
        settings.method,
        params=settings.filter,
        runner=runner,
        hdr=settings.hdr,
        tile=settings.tile,
        workers=settings.workers,
    )


__all__ = [
    "DenoiseStrategy",
    "CrossBilateralDenoiser",
    "AcceleratedDenoiser",
    "PassthroughDenoiser",
    "make_denoiser",
    "denoiser_from_settings",
]
