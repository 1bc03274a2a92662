# tests/test_image_io.py
# Image loading/saving: extension-driven encodings, PFM/NPY float paths, 8-bit sRGB via Pillow.

from pathlib import Path

import numpy as np
import pytest

from crossdenoise.image_io import (
    linear_to_srgb,
    load_image,
    output_format,
    read_pfm,
    save_image,
    srgb_to_linear,
    write_pfm,
)


@pytest.mark.parametrize(
    "name,fmt,is_float",
    [
        ("out.png", "png", False),
        ("out.JPG", "jpeg", False),
        ("out.ppm", "ppm", False),
        ("out.pfm", "pfm", True),
        ("out.exr", "exr", True),
        ("out.rgbe", "rgbe", True),
        ("out.npy", "npy", True),
    ],
)
def test_output_format_by_extension(name, fmt, is_float):
    path, out = output_format(name)
    assert path == Path(name)
    assert out.name == fmt
    assert out.float32 is is_float


def test_unknown_extension_becomes_exr():
    path, fmt = output_format("render.tiff")
    assert path == Path("render.exr")
    assert fmt.name == "exr"
    assert output_format("render")[0] == Path("render.exr")


def test_pfm_roundtrip_is_exact(tmp_path, rng):
    img = (rng.random((5, 7, 3)) * 10.0).astype(np.float32)
    path = tmp_path / "img.pfm"
    write_pfm(path, img)
    assert np.array_equal(read_pfm(path), img)
    assert np.array_equal(load_image(path), img)


def test_pfm_grayscale_is_expanded(tmp_path):
    path = tmp_path / "depth.pfm"
    data = np.arange(6, dtype="<f4").reshape(2, 3)
    with open(path, "wb") as f:
        f.write(b"Pf\n3 2\n-1.0\n")
        f.write(data[::-1].tobytes())
    img = load_image(path)
    assert img.shape == (2, 3, 3)
    assert np.array_equal(img[..., 1], data)


def test_pfm_rejects_bad_header(tmp_path):
    path = tmp_path / "bad.pfm"
    path.write_bytes(b"P6\n1 1\n255\n\x00\x00\x00")
    with pytest.raises(ValueError, match="not a PFM file"):
        read_pfm(path)


def test_npy_save_and_load(tmp_path, rng):
    img = rng.random((4, 4, 3)).astype(np.float32)
    written = save_image(tmp_path / "out.npy", img)
    assert written.suffix == ".npy"
    assert np.array_equal(load_image(written), img)


def test_png_roundtrip_through_srgb(tmp_path, rng):
    img = rng.random((6, 5, 3)).astype(np.float32)
    written = save_image(tmp_path / "out.png", img)
    back = load_image(written)
    assert back.shape == img.shape
    assert back.dtype == np.float32
    # 8-bit quantization in sRGB space
    assert np.allclose(linear_to_srgb(back), linear_to_srgb(img), atol=1.0 / 255.0)


def test_grayscale_png_loads_as_rgb(tmp_path):
    from PIL import Image

    path = tmp_path / "gray.png"
    Image.fromarray(np.full((3, 4), 255, dtype=np.uint8), "L").save(path)
    img = load_image(path)
    assert img.shape == (3, 4, 3)
    assert np.allclose(img, 1.0)


def test_ldr_output_clips_hdr_values(tmp_path):
    img = np.full((2, 2, 3), 4.0, dtype=np.float32)
    back = load_image(save_image(tmp_path / "out.png", img))
    assert np.allclose(back, 1.0)


def test_srgb_transfer_inverse():
    x = np.linspace(0.0, 1.0, 33, dtype=np.float32)
    assert np.allclose(srgb_to_linear(linear_to_srgb(x)), x, atol=1e-5)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_image(tmp_path / "nope.png")


def test_exr_roundtrip_keeps_float_values(tmp_path, rng):
    img = (rng.random((5, 7, 3)) * 20.0 - 2.0).astype(np.float32)
    written = save_image(tmp_path / "out.exr", img)
    assert written == tmp_path / "out.exr"
    back = load_image(written)
    assert back.dtype == np.float32
    assert np.array_equal(back, img)


@pytest.mark.parametrize("name", ["out.hdr", "out.rgbe"])
def test_radiance_roundtrip_within_rgbe_precision(tmp_path, rng, name):
    img = (rng.random((6, 4, 3)) * 8.0 + 0.05).astype(np.float32)
    written = save_image(tmp_path / name, img)
    assert written.name == name
    back = load_image(written)
    assert back.shape == img.shape
    # shared 8-bit exponent leaves about 2 significant digits per channel
    assert np.allclose(back, img, rtol=2e-2, atol=1e-3)


def test_radiance_output_clips_negative_values(tmp_path):
    img = np.full((2, 2, 3), -1.0, dtype=np.float32)
    img[0, 0] = (0.5, 1.0, 2.0)
    back = load_image(save_image(tmp_path / "out.hdr", img))
    assert np.all(back >= 0.0)
    assert np.allclose(back[0, 0], (0.5, 1.0, 2.0), rtol=2e-2)


def test_exr_channel_order_is_rgb(tmp_path):
    img = np.zeros((2, 3, 3), dtype=np.float32)
    img[..., 0] = 1.5
    back = load_image(save_image(tmp_path / "red.exr", img))
    assert np.allclose(back[..., 0], 1.5)
    assert np.allclose(back[..., 1:], 0.0)


def test_unknown_extension_is_written_as_exr(tmp_path, rng):
    img = rng.random((3, 3, 3)).astype(np.float32)
    written = save_image(tmp_path / "render.tiff", img)
    assert written == tmp_path / "render.exr"
    assert written.exists()
    assert not (tmp_path / "render.tiff").exists()
    assert np.array_equal(load_image(written), img)


def test_corrupt_exr_raises_oserror(tmp_path):
    path = tmp_path / "broken.exr"
    path.write_bytes(b"not an exr file")
    with pytest.raises(OSError):
        load_image(path)
