# python/crossdenoise/__init__.py
# Public API for the guided render denoiser
# Exposes the cross-bilateral filter, strategy selection, settings and image I/O
# RELEVANT FILES: python/crossdenoise/bilateral.py, python/crossdenoise/strategy.py, python/crossdenoise/params.py
from __future__ import annotations

from typing import Optional

import numpy as np

from ._native import accelerated_available
from .boundary import resolve_index, resolve_indices, shift
from .bilateral import cross_bilateral_denoise, denoise_pixel
from .image_io import load_image, output_format, save_image
from .params import (
    BOUNDARY_POLICIES,
    DENOISE_METHODS,
    DenoiseSettings,
    FilterParameters,
    load_denoise_config,
)
from .strategy import (
    AcceleratedDenoiser,
    CrossBilateralDenoiser,
    DenoiseStrategy,
    PassthroughDenoiser,
    denoiser_from_settings,
    make_denoiser,
)
from .weights import GuideBuffers, offset_weights, pixel_weight

__version__ = "0.1.0"


def denoise(
    color: np.ndarray,
    albedo: Optional[np.ndarray] = None,
    normal: Optional[np.ndarray] = None,
    depth: Optional[np.ndarray] = None,
    params: Optional[FilterParameters] = None,
    method: str = "bilateral",
) -> np.ndarray:
    """Denoise ``color`` with the selected strategy (cross-bilateral by default)."""
    strategy = make_denoiser(method, params=params)
    return strategy.denoise(color, GuideBuffers(albedo=albedo, normal=normal, depth=depth), params)


__all__ = [
    "accelerated_available",
    "BOUNDARY_POLICIES",
    "DENOISE_METHODS",
    "AcceleratedDenoiser",
    "CrossBilateralDenoiser",
    "DenoiseSettings",
    "DenoiseStrategy",
    "FilterParameters",
    "GuideBuffers",
    "PassthroughDenoiser",
    "cross_bilateral_denoise",
    "denoise",
    "denoise_pixel",
    "denoiser_from_settings",
    "load_denoise_config",
    "load_image",
    "make_denoiser",
    "offset_weights",
    "output_format",
    "pixel_weight",
    "resolve_index",
    "resolve_indices",
    "save_image",
    "shift",
]
