"""Shared test configuration and fixtures for gaussian_scene tests."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path so all tests can do normal imports
src_path = str(Path(__file__).parent.parent / "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from gaussian_scene.scene.point_cloud import BasicPointCloud  # noqa: E402


def make_point_cloud(n=100, seed=42):
    """Create a random colored point cloud."""
    rng = np.random.default_rng(seed)
    points = rng.random((n, 3)).astype(np.float32)
    colors = rng.random((n, 3)).astype(np.float32)
    return BasicPointCloud(points=points, colors=colors, normals=np.zeros((n, 3)))


@pytest.fixture
def point_cloud():
    return make_point_cloud()
