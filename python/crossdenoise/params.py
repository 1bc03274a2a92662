# python/crossdenoise/params.py
# Filter parameters and denoiser settings with validation and JSON/mapping loading.
# Keeps defaults aligned with the batch denoiser constants (w=3, pixel 0.1, guides 10.0).
# RELEVANT FILES: python/crossdenoise/bilateral.py, python/crossdenoise/strategy.py, tests/test_denoise_settings.py
from __future__ import annotations

import copy
import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

BOUNDARY_WRAP = "wrap"
BOUNDARY_CLAMP = "clamp"
BOUNDARY_MIRROR = "mirror"

BOUNDARY_POLICIES = (BOUNDARY_WRAP, BOUNDARY_CLAMP, BOUNDARY_MIRROR)

DENOISE_METHODS = ("bilateral", "accelerated", "auto", "none")

# Windows wider than this are almost certainly a units mistake (sigma passed as w).
MAX_HALF_WIDTH = 64

ConfigSource = Union["DenoiseSettings", Mapping[str, Any], str, Path, None]

_BOUNDARY_ALIASES: Dict[str, str] = {
    "wrap": BOUNDARY_WRAP,
    "toroidal": BOUNDARY_WRAP,
    "periodic": BOUNDARY_WRAP,
    "clamp": BOUNDARY_CLAMP,
    "edge": BOUNDARY_CLAMP,
    "replicate": BOUNDARY_CLAMP,
    "mirror": BOUNDARY_MIRROR,
    "reflect": BOUNDARY_MIRROR,
}

_METHOD_ALIASES: Dict[str, str] = {
    "bilateral": "bilateral",
    "cross-bilateral": "bilateral",
    "crossbilateral": "bilateral",
    "accelerated": "accelerated",
    "oidn": "accelerated",
    "auto": "auto",
    "none": "none",
    "off": "none",
}


def _normalize_key(value: Any) -> str:
    return str(value).strip().lower().replace("_", "-")


def _normalize_choice(value: Any, mapping: Mapping[str, str], label: str) -> str:
    key = _normalize_key(value)
    if key not in mapping:
        choices = ", ".join(sorted(set(mapping.values())))
        raise ValueError(f"{label} must be one of {{{choices}}}, got {value!r}")
    return mapping[key]


def normalize_boundary(value: Any) -> str:
    """Resolve a boundary policy name or alias ('toroidal', 'reflect', ...)."""
    return _normalize_choice(value, _BOUNDARY_ALIASES, "boundary")


def normalize_method(value: Any) -> str:
    return _normalize_choice(value, _METHOD_ALIASES, "method")


def _check_inv_sigma(name: str, value: float) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a number, got {type(value).__name__}") from exc
    if not math.isfinite(v):
        raise ValueError(f"{name} must be finite")
    if v < 0.0:
        raise ValueError(f"{name} must be >= 0")
    return v


@dataclass
class FilterParameters:
    """Cross-bilateral filter configuration.

    ``half_width`` is the window radius ``w``; the neighborhood is
    ``(2w+1) x (2w+1)`` pixels. The ``inv_sigma_*`` coefficients scale the
    squared distance in each domain before exponentiation, so larger values
    give narrower, more selective weights and 0 disables a term.

    ``boundary`` selects how neighbors past the image border are fetched.
    The default ``"wrap"`` treats the image as periodic (toroidal), which is
    what the batch renderer tool did; ``"clamp"`` and ``"mirror"`` avoid the
    seam artifacts wraparound causes on non-tiling images.
    """

    half_width: int = 3
    inv_sigma_pixel: float = 0.1
    inv_sigma_albedo: float = 10.0
    inv_sigma_normal: float = 10.0
    inv_sigma_depth: float = 10.0
    boundary: str = BOUNDARY_WRAP

    def __post_init__(self) -> None:
        if isinstance(self.half_width, bool) or int(self.half_width) != self.half_width:
            raise ValueError("half_width must be an integer")
        self.half_width = int(self.half_width)
        if self.half_width < 0:
            raise ValueError("half_width must be >= 0")
        if self.half_width > MAX_HALF_WIDTH:
            raise ValueError(f"half_width must be <= {MAX_HALF_WIDTH}")
        self.inv_sigma_pixel = _check_inv_sigma("inv_sigma_pixel", self.inv_sigma_pixel)
        self.inv_sigma_albedo = _check_inv_sigma("inv_sigma_albedo", self.inv_sigma_albedo)
        self.inv_sigma_normal = _check_inv_sigma("inv_sigma_normal", self.inv_sigma_normal)
        self.inv_sigma_depth = _check_inv_sigma("inv_sigma_depth", self.inv_sigma_depth)
        self.boundary = normalize_boundary(self.boundary)

    @property
    def window_size(self) -> int:
        return 2 * self.half_width + 1

    @property
    def uses_guidance(self) -> bool:
        """Returns True if any guide term can influence the weights."""
        return (
            self.inv_sigma_albedo > 0.0
            or self.inv_sigma_normal > 0.0
            or self.inv_sigma_depth > 0.0
        )

    def to_dict(self) -> dict:
        return {
            "half_width": self.half_width,
            "inv_sigma_pixel": self.inv_sigma_pixel,
            "inv_sigma_albedo": self.inv_sigma_albedo,
            "inv_sigma_normal": self.inv_sigma_normal,
            "inv_sigma_depth": self.inv_sigma_depth,
            "boundary": self.boundary,
        }

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, Any], default: Optional["FilterParameters"] = None
    ) -> "FilterParameters":
        base = copy.deepcopy(default) if default is not None else cls()
        values = base.to_dict()
        for key, value in data.items():
            name = _normalize_key(key).replace("-", "_")
            if name in {"w", "radius", "window"}:
                name = "half_width"
            if name not in values:
                raise ValueError(f"Unknown filter parameter: {key!r}")
            values[name] = value
        return cls(**values)


@dataclass
class DenoiseSettings:
    """Denoiser selection plus filter parameters.

    Methods:
    - 'bilateral': in-process cross-bilateral filter
    - 'accelerated': external accelerated backend (must be available)
    - 'auto': accelerated when available, otherwise bilateral
    - 'none': passthrough copy
    """

    method: str = "auto"
    hdr: bool = True  # forwarded to the accelerated backend
    tile: Optional[int] = None  # tile edge in pixels for the threaded path
    workers: Optional[int] = None
    filter: FilterParameters = field(default_factory=FilterParameters)

    def __post_init__(self) -> None:
        self.method = normalize_method(self.method)
        self.hdr = bool(self.hdr)
        if self.tile is not None:
            self.tile = int(self.tile)
            if self.tile < 1:
                raise ValueError("tile must be >= 1")
        if self.workers is not None:
            self.workers = int(self.workers)
            if self.workers < 1:
                raise ValueError("workers must be >= 1")
        if isinstance(self.filter, Mapping):
            self.filter = FilterParameters.from_mapping(self.filter)
        elif not isinstance(self.filter, FilterParameters):
            raise TypeError("filter must be FilterParameters or a mapping")

    def copy(self) -> "DenoiseSettings":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "hdr": self.hdr,
            "tile": self.tile,
            "workers": self.workers,
            "filter": self.filter.to_dict(),
        }

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, Any], default: Optional["DenoiseSettings"] = None
    ) -> "DenoiseSettings":
        base = default.copy() if default is not None else cls()
        if not isinstance(data, Mapping):
            raise TypeError("denoise settings must be a mapping")
        method = data.get("method", base.method)
        hdr = data.get("hdr", base.hdr)
        tile = data.get("tile", base.tile)
        workers = data.get("workers", base.workers)
        filt = base.filter
        if "filter" in data:
            if not isinstance(data["filter"], Mapping):
                raise TypeError("filter must be a mapping")
            filt = FilterParameters.from_mapping(data["filter"], filt)
        unknown = set(data) - {"method", "hdr", "tile", "workers", "filter"}
        if unknown:
            raise ValueError(f"Unknown denoise settings: {sorted(unknown)}")
        return cls(method=method, hdr=hdr, tile=tile, workers=workers, filter=filt)


def _load_from_path(path: Path) -> Mapping[str, Any]:
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix in {".json", ""}:
        return json.loads(text)
    raise ValueError(f"Unsupported denoise config file format: {path}")


def _build_override_mapping(overrides: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    filter_keys = set(FilterParameters().to_dict()) | {"w", "radius", "window"}
    for key, value in overrides.items():
        if value is None:
            continue
        name = _normalize_key(key).replace("-", "_")
        if name in filter_keys:
            out.setdefault("filter", {})[name] = value
        else:
            out[name] = value
    return out


def load_denoise_config(
    config: ConfigSource = None, overrides: Optional[Mapping[str, Any]] = None
) -> DenoiseSettings:
    """Build validated settings from an object, mapping, JSON file or defaults.

    ``overrides`` is a flat mapping; filter keys such as ``half_width`` or
    ``inv_sigma_depth`` are routed into the nested filter block. ``None``
    override values are ignored so argparse namespaces can be passed as-is.
    """
    if isinstance(config, DenoiseSettings):
        cfg = config.copy()
    elif isinstance(config, Mapping):
        cfg = DenoiseSettings.from_mapping(config)
    elif isinstance(config, (str, Path)):
        cfg = DenoiseSettings.from_mapping(_load_from_path(Path(config)))
    elif config is None:
        cfg = DenoiseSettings()
    else:
        raise TypeError("config must be DenoiseSettings, mapping, path, or None")

    if overrides:
        merged = _build_override_mapping(overrides)
        if merged:
            cfg = DenoiseSettings.from_mapping(merged, cfg)
    return cfg


__all__ = [
    "BOUNDARY_WRAP",
    "BOUNDARY_CLAMP",
    "BOUNDARY_MIRROR",
    "BOUNDARY_POLICIES",
    "DENOISE_METHODS",
    "FilterParameters",
    "DenoiseSettings",
    "load_denoise_config",
    "normalize_boundary",
    "normalize_method",
]
