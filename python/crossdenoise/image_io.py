# python/crossdenoise/image_io.py
# Load images as float32 RGB triples and save denoised output in the format picked by extension.
# 8-bit formats go through Pillow with sRGB transfer; EXR and Radiance HDR go through OpenCV.
# RELEVANT FILES: python/crossdenoise/cli.py, tests/test_image_io.py

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class OutputFormat:
    name: str
    suffix: str
    float32: bool  # False -> 8-bit per channel


_FORMATS: Dict[str, OutputFormat] = {
    ".png": OutputFormat("png", ".png", False),
    ".jpg": OutputFormat("jpeg", ".jpg", False),
    ".jpeg": OutputFormat("jpeg", ".jpeg", False),
    ".ppm": OutputFormat("ppm", ".ppm", False),
    ".pfm": OutputFormat("pfm", ".pfm", True),
    ".rgbe": OutputFormat("rgbe", ".rgbe", True),
    ".hdr": OutputFormat("rgbe", ".hdr", True),
    ".exr": OutputFormat("exr", ".exr", True),
    ".npy": OutputFormat("npy", ".npy", True),
}

DEFAULT_FORMAT = _FORMATS[".exr"]


def output_format(path: PathLike) -> Tuple[Path, OutputFormat]:
    """Pick the output encoding from the file extension.

    Unknown extensions are replaced with ``.exr`` (float32 output).
    """
    p = Path(path)
    fmt = _FORMATS.get(p.suffix.lower())
    if fmt is None:
        new = p.with_suffix(DEFAULT_FORMAT.suffix)
        logger.warning("unsupported output extension %r, writing %s", p.suffix, new)
        return new, DEFAULT_FORMAT
    return p, fmt


def srgb_to_linear(x: np.ndarray) -> np.ndarray:
    x = np.asarray(x, dtype=np.float32)
    return np.where(x <= 0.04045, x / 12.92, ((x + 0.055) / 1.055) ** 2.4).astype(np.float32)


def linear_to_srgb(x: np.ndarray) -> np.ndarray:
    x = np.clip(np.asarray(x, dtype=np.float32), 0.0, None)
    return np.where(x <= 0.0031308, x * 12.92, 1.055 * np.power(x, 1.0 / 2.4) - 0.055).astype(np.float32)


def _to_rgb(data: np.ndarray) -> np.ndarray:
    data = np.asarray(data)
    if data.ndim == 2:
        data = np.stack([data, data, data], axis=-1)
    elif data.ndim == 3 and data.shape[2] == 1:
        data = np.repeat(data, 3, axis=2)
    elif data.ndim == 3 and data.shape[2] >= 3:
        data = data[..., :3]
    else:
        raise ValueError(f"unsupported image shape {data.shape}")
    return np.ascontiguousarray(data, dtype=np.float32)


def read_pfm(path: PathLike) -> np.ndarray:
    """Read a Portable Float Map ('PF' color or 'Pf' grayscale) top-down."""
    with open(path, "rb") as f:
        kind = f.readline().strip()
        if kind not in (b"PF", b"Pf"):
            raise ValueError(f"not a PFM file: {path}")
        dims = f.readline().split()
        while not dims:
            dims = f.readline().split()
        w, h = int(dims[0]), int(dims[1])
        scale = float(f.readline().strip())
        channels = 3 if kind == b"PF" else 1
        dtype = "<f4" if scale < 0 else ">f4"
        data = np.frombuffer(f.read(), dtype=dtype)
    expected = w * h * channels
    if data.size != expected:
        raise ValueError(f"PFM payload size mismatch: have {data.size} floats, expected {expected}")
    img = data.reshape((h, w, channels))[::-1]
    return img.astype(np.float32)


def write_pfm(path: PathLike, image: np.ndarray) -> None:
    img = np.asarray(image, dtype="<f4")
    h, w = img.shape[:2]
    with open(path, "wb") as f:
        f.write(b"PF\n")
        f.write(f"{w} {h}\n".encode("ascii"))
        f.write(b"-1.0\n")
        f.write(np.ascontiguousarray(img[::-1]).tobytes())


def _opencv():
    """Import OpenCV with its OpenEXR codec switched on.

    Wheels from PyPI ship the EXR codec disabled unless this variable is set
    before the first ``import cv2``.
    """
    os.environ.setdefault("OPENCV_IO_ENABLE_OPENEXR", "1")
    try:
        import cv2
    except ImportError:
        raise ImportError(
            "opencv-python-headless is required for EXR/HDR images; "
            "install it with `pip install opencv-python-headless`"
        )
    return cv2


# OpenCV only recognizes .hdr/.pic for Radiance files, so .rgbe is coded as .hdr
_CODEC_EXT = {"exr": ".exr", "rgbe": ".hdr"}


def _read_float_image(path: Path) -> np.ndarray:
    cv2 = _opencv()
    buf = np.fromfile(str(path), dtype=np.uint8)
    try:
        data = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)
    except cv2.error as exc:
        raise OSError(f"OpenCV could not decode {path}: {exc}") from exc
    if data is None:
        raise OSError(f"OpenCV could not decode {path}")
    data = np.asarray(data, dtype=np.float32)
    if data.ndim == 3 and data.shape[2] >= 3:
        data = data[..., 2::-1]  # BGR(A) -> RGB
    return data


def _write_float_image(path: Path, img: np.ndarray, fmt: OutputFormat) -> None:
    cv2 = _opencv()
    bgr = np.ascontiguousarray(img[..., ::-1], dtype=np.float32)
    if fmt.name == "exr":
        params = [cv2.IMWRITE_EXR_TYPE, cv2.IMWRITE_EXR_TYPE_FLOAT]
    else:
        bgr = np.clip(bgr, 0.0, None)  # RGBE has no sign bit
        params = []
    try:
        ok, encoded = cv2.imencode(_CODEC_EXT[fmt.name], bgr, params)
    except cv2.error as exc:
        raise OSError(f"OpenCV could not encode {path} as {fmt.name}: {exc}") from exc
    if not ok:
        raise OSError(f"OpenCV could not encode {path} as {fmt.name}")
    encoded.tofile(str(path))


def load_image(path: PathLike) -> np.ndarray:
    """Load an image as float32 (H, W, 3) linear RGB.

    Float formats (.pfm, .npy, .exr, .hdr/.rgbe) are returned as stored.
    8-bit formats are scaled to [0, 1] and decoded from sRGB.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Image file not found: {p}")
    suffix = p.suffix.lower()

    if suffix == ".npy":
        data = np.load(p)
    elif suffix == ".pfm":
        data = read_pfm(p)
    elif suffix in {".exr", ".hdr", ".rgbe"}:
        data = _read_float_image(p)
    else:
        try:
            from PIL import Image
        except ImportError:
            raise ImportError("PIL (Pillow) is required for loading 8-bit images")
        with Image.open(p) as img:
            data = np.asarray(img.convert("RGB"), dtype=np.float32) / 255.0
        data = srgb_to_linear(data)

    rgb = _to_rgb(data)
    logger.debug("loaded %s: %dx%d", p, rgb.shape[1], rgb.shape[0])
    return rgb


def save_image(path: PathLike, image: np.ndarray) -> Path:
    """Write ``image`` using the encoding selected by :func:`output_format`.

    Returns the path actually written (the extension may have been replaced).
    """
    p, fmt = output_format(path)
    img = _to_rgb(image)

    if fmt.name == "npy":
        np.save(p, img)
    elif fmt.name == "pfm":
        write_pfm(p, img)
    elif fmt.float32:
        _write_float_image(p, img, fmt)
    else:
        try:
            from PIL import Image
        except ImportError:
            raise ImportError("PIL (Pillow) is required for writing 8-bit images")
        ldr = (np.clip(linear_to_srgb(img), 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)
        Image.fromarray(ldr, "RGB").save(p, fmt.name.upper())

    logger.info("wrote %s (%s, %s)", p, fmt.name, "float32" if fmt.float32 else "8-bit")
    return p


__all__ = [
    "OutputFormat",
    "output_format",
    "load_image",
    "save_image",
    "read_pfm",
    "write_pfm",
    "srgb_to_linear",
    "linear_to_srgb",
]
