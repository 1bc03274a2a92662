# Make `import crossdenoise` work from a fresh clone without installing:
# put repo/python on sys.path before collection.
import sys
from pathlib import Path

import numpy as np
import pytest


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _ensure_python_path():
    pkg_dir = _repo_root() / "python"
    if str(pkg_dir) not in sys.path:
        sys.path.insert(0, str(pkg_dir))


_ensure_python_path()


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: slow tests")


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def guided_scene():
    """Small synthetic render: two material regions split by a vertical edge."""
    h, w = 16, 20
    color = np.zeros((h, w, 3), dtype=np.float32)
    color[:, : w // 2] = (0.8, 0.2, 0.1)
    color[:, w // 2 :] = (0.1, 0.3, 0.9)
    albedo = color.copy()
    normal = np.zeros_like(color)
    normal[..., 2] = 1.0
    depth = np.tile(np.linspace(1.0, 2.0, w, dtype=np.float32)[None, :], (h, 1))
    return color, albedo, normal, depth
