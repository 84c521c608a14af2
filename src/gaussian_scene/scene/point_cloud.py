"""
Point cloud container and PLY I/O for Gaussian initialization.
"""

from __future__ import annotations

from pathlib import Path
from typing import NamedTuple, Optional, Union

import numpy as np
from plyfile import PlyData, PlyElement


class BasicPointCloud(NamedTuple):
    """
    Colored point cloud used to seed a GaussianModel.

    Attributes:
        points: Positions. Shape: (N, 3)
        colors: RGB colors. Shape: (N, 3), range [0, 1]
        normals: Normals. Shape: (N, 3), zeros when unknown.
    """

    points: np.ndarray
    colors: np.ndarray
    normals: np.ndarray


def fetch_ply(path: Union[str, Path]) -> BasicPointCloud:
    """
    Read a colored point cloud (x/y/z, red/green/blue, optional nx/ny/nz).

    Raises:
        FileNotFoundError: If file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"PLY file not found: {path}")

    vertices = PlyData.read(str(path))["vertex"]
    names = {p.name for p in vertices.properties}

    positions = np.vstack([vertices["x"], vertices["y"], vertices["z"]]).T
    colors = np.vstack([vertices["red"], vertices["green"], vertices["blue"]]).T / 255.0
    if {"nx", "ny", "nz"} <= names:
        normals = np.vstack([vertices["nx"], vertices["ny"], vertices["nz"]]).T
    else:
        normals = np.zeros_like(positions)
    return BasicPointCloud(points=positions, colors=colors, normals=normals)


def store_ply(
    path: Union[str, Path],
    xyz: np.ndarray,
    rgb: np.ndarray,
    normals: Optional[np.ndarray] = None,
) -> None:
    """
    Write a colored point cloud.

    Args:
        path: Output PLY path.
        xyz: Positions. Shape: (N, 3)
        rgb: Colors. Shape: (N, 3), uint8 range [0, 255]
        normals: Optional normals. Shape: (N, 3)
    """
    dtype = [
        ("x", "f4"), ("y", "f4"), ("z", "f4"),
        ("nx", "f4"), ("ny", "f4"), ("nz", "f4"),
        ("red", "u1"), ("green", "u1"), ("blue", "u1"),
    ]
    if normals is None:
        normals = np.zeros_like(xyz)

    elements = np.empty(xyz.shape[0], dtype=dtype)
    attributes = np.concatenate((xyz, normals, rgb), axis=1)
    elements[:] = list(map(tuple, attributes))

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    PlyData([PlyElement.describe(elements, "vertex")]).write(str(path))
