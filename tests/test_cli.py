# tests/test_cli.py
"""CLI tests for the batch denoiser entry point."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest

from crossdenoise import FilterParameters, cross_bilateral_denoise
from crossdenoise.cli import _parse_args, main
from crossdenoise.image_io import load_image, save_image, write_pfm


def _write_inputs(tmp_path: Path, rng):
    color = rng.random((6, 8, 3)).astype(np.float32)
    normal = rng.random((6, 8, 3)).astype(np.float32)
    depth = rng.random((6, 8, 3)).astype(np.float32)
    paths = {}
    for name, arr in (("color", color), ("normal", normal), ("depth", depth)):
        paths[name] = tmp_path / f"{name}.pfm"
        write_pfm(paths[name], arr)
    return color, normal, depth, paths


def test_parse_args_flags():
    args = _parse_args(["-o", "out.exr", "-a", "alb.exr", "-n", "nrm.exr", "-d", "dep.exr", "in.exr"])
    assert args.output == Path("out.exr")
    assert args.albedo == Path("alb.exr")
    assert args.normal == Path("nrm.exr")
    assert args.depth == Path("dep.exr")
    assert args.input == Path("in.exr")
    assert args.method is None
    assert args.half_width is None


def test_output_is_required(capsys):
    with pytest.raises(SystemExit) as exc:
        _parse_args(["in.exr"])
    assert exc.value.code == 2
    assert "--output" in capsys.readouterr().err


def test_guides_are_independently_optional(tmp_path, rng):
    # normal and depth without albedo
    color, normal, depth, paths = _write_inputs(tmp_path, rng)
    out = tmp_path / "out.pfm"
    code = main([
        "--method", "bilateral",
        "-o", str(out),
        "-n", str(paths["normal"]),
        "-d", str(paths["depth"]),
        "-w", "1",
        str(paths["color"]),
    ])
    assert code == 0
    result = load_image(out)
    expected = cross_bilateral_denoise(color, normal=normal, depth=depth, params=FilterParameters(half_width=1))
    assert result.shape == color.shape
    assert np.allclose(result, expected, atol=1e-6)


def test_cli_options_reach_filter(tmp_path, rng):
    color, _, _, paths = _write_inputs(tmp_path, rng)
    out = tmp_path / "out.npy"
    code = main([
        "--method", "bilateral",
        "-o", str(out),
        "--half-width", "2",
        "--inv-sigma-pixel", "0.5",
        "--boundary", "mirror",
        "--tile", "4",
        str(paths["color"]),
    ])
    assert code == 0
    params = FilterParameters(half_width=2, inv_sigma_pixel=0.5, boundary="mirror")
    assert np.allclose(np.load(out), cross_bilateral_denoise(color, params=params), atol=1e-6)


def test_config_file_with_cli_override(tmp_path, rng):
    color, _, _, paths = _write_inputs(tmp_path, rng)
    config = tmp_path / "denoise.json"
    config.write_text(json.dumps({"method": "none", "filter": {"half_width": 5}}))
    out = tmp_path / "out.pfm"

    assert main(["--config", str(config), "-o", str(out), str(paths["color"])]) == 0
    assert np.array_equal(load_image(out), color)

    assert main(["--config", str(config), "--method", "bilateral", "-w", "0", "-o", str(out), str(paths["color"])]) == 0
    assert np.allclose(load_image(out), color)


def test_missing_input_fails(tmp_path):
    assert main(["-o", str(tmp_path / "out.pfm"), str(tmp_path / "missing.pfm")]) == 1
    assert not (tmp_path / "out.pfm").exists()


def test_guide_size_mismatch_fails(tmp_path, rng):
    _, _, _, paths = _write_inputs(tmp_path, rng)
    small = tmp_path / "albedo.pfm"
    write_pfm(small, np.zeros((3, 3, 3), dtype=np.float32))
    code = main(["--method", "bilateral", "-o", str(tmp_path / "out.pfm"), "-a", str(small), str(paths["color"])])
    assert code == 1


def test_invalid_parameter_fails(tmp_path, rng):
    _, _, _, paths = _write_inputs(tmp_path, rng)
    code = main(["--inv-sigma-depth", "-1", "-o", str(tmp_path / "out.pfm"), str(paths["color"])])
    assert code == 1


def test_exr_in_exr_out(tmp_path, rng):
    color = (rng.random((6, 8, 3)) * 4.0).astype(np.float32)
    albedo = rng.random((6, 8, 3)).astype(np.float32)
    color_path = save_image(tmp_path / "in.exr", color)
    albedo_path = save_image(tmp_path / "albedo.exr", albedo)
    out = tmp_path / "out.exr"

    code = main(["--method", "bilateral", "-o", str(out), "-a", str(albedo_path), str(color_path)])
    assert code == 0
    expected = cross_bilateral_denoise(color, albedo=albedo)
    assert np.allclose(load_image(out), expected, atol=1e-6)


def test_unknown_output_extension_writes_exr(tmp_path, rng):
    color, _, _, paths = _write_inputs(tmp_path, rng)
    code = main(["--method", "none", "-o", str(tmp_path / "out.tiff"), str(paths["color"])])
    assert code == 0
    assert not (tmp_path / "out.tiff").exists()
    assert np.array_equal(load_image(tmp_path / "out.exr"), color)
