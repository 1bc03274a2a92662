# python/crossdenoise/_native.py
# Discovery of an optional compiled accelerated denoiser exposing denoise(color, albedo=, normal=, hdr=).
# Looked up on first use and cached; CROSSDENOISE_ACCEL_MODULE names a different binding.
# RELEVANT FILES: python/crossdenoise/strategy.py, tests/test_strategy.py

from __future__ import annotations

import importlib
import logging
import os
from typing import Callable, Optional

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_ACCEL_MODULE = "crossdenoise._accel"
ACCEL_MODULE_ENV = "CROSSDENOISE_ACCEL_MODULE"

AcceleratedRunner = Callable[..., np.ndarray]

_UNRESOLVED = object()
_runner = _UNRESOLVED


def accel_module_name() -> str:
    return os.environ.get(ACCEL_MODULE_ENV, "").strip() or DEFAULT_ACCEL_MODULE


def _import_runner(name: str) -> Optional[AcceleratedRunner]:
    try:
        module = importlib.import_module(name)
    except ImportError as exc:
        logger.debug("accelerated denoiser %s unavailable: %s", name, exc)
        return None
    runner = getattr(module, "denoise", None)
    if not callable(runner):
        logger.warning("%s has no callable 'denoise'; ignoring it", name)
        return None
    logger.debug("accelerated denoiser loaded from %s", name)
    return runner


def find_accelerated_runner() -> Optional[AcceleratedRunner]:
    """Return the backend's ``denoise`` callable, or None when not installed."""
    global _runner
    if _runner is _UNRESOLVED:
        _runner = _import_runner(accel_module_name())
    return _runner


def accelerated_available() -> bool:
    return find_accelerated_runner() is not None


def forget_accelerated_runner() -> None:
    """Drop the cached lookup so the next call imports again."""
    global _runner
    _runner = _UNRESOLVED
