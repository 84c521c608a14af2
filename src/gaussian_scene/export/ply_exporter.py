"""
PLY I/O for Gaussian Scene Parameters

This module reads and writes the per-Gaussian parameters held by
GaussianModel in the PLY layout used by the reference 3D Gaussian Splatting
implementation and its viewers.

All values are stored pre-activation, exactly as optimized:
- Position (xyz)
- Spherical harmonic coefficients (DC + higher orders, channel-major)
- Opacity (logit)
- Scale (log-space, 3 axes)
- Rotation (raw quaternion, wxyz)

References:
    - Original 3DGS PLY format: https://github.com/graphdeco-inria/gaussian-splatting
    - PLY specification: http://paulbourke.net/dataformats/ply/
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Union

import numpy as np
from plyfile import PlyData, PlyElement


def construct_list_of_attributes(num_dc: int = 3, num_rest: int = 45) -> List[str]:
    """
    Property names of one Gaussian vertex, in file order.

    Args:
        num_dc: Number of flattened DC values (3 for RGB).
        num_rest: Number of flattened higher-order SH values.
            0 for degree 0, 45 for degree 3.

    Returns:
        List[str]: e.g. ["x", "y", "z", "nx", "ny", "nz", "f_dc_0", ...,
            "opacity", "scale_0", ..., "rot_3"]
    """
    names = ["x", "y", "z", "nx", "ny", "nz"]
    names.extend(f"f_dc_{i}" for i in range(num_dc))
    names.extend(f"f_rest_{i}" for i in range(num_rest))
    names.append("opacity")
    names.extend(f"scale_{i}" for i in range(3))
    names.extend(f"rot_{i}" for i in range(4))
    return names


def validate_gaussian_attributes(
    xyz: np.ndarray,
    features_dc: np.ndarray,
    features_rest: np.ndarray,
    opacity: np.ndarray,
    scaling: np.ndarray,
    rotation: np.ndarray,
) -> int:
    """
    Validate shapes of stored Gaussian parameters.

    Returns:
        int: Number of Gaussians (N) if valid.

    Raises:
        ValueError: If any array has an incorrect shape.
    """
    if xyz.ndim != 2 or xyz.shape[1] != 3:
        raise ValueError(f"xyz must have shape (N, 3), got {xyz.shape}")
    n_gaussians = xyz.shape[0]

    expected = {
        "features_dc": (features_dc, 3, (1, 3)),
        "features_rest": (features_rest, 3, (None, 3)),
        "opacity": (opacity, 2, (1,)),
        "scaling": (scaling, 2, (3,)),
        "rotation": (rotation, 2, (4,)),
    }
    for name, (arr, ndim, tail) in expected.items():
        if arr.ndim != ndim or arr.shape[0] != n_gaussians:
            raise ValueError(f"{name} must have {ndim} dims and {n_gaussians} rows, got {arr.shape}")
        for got, want in zip(arr.shape[1:], tail):
            if want is not None and got != want:
                raise ValueError(f"{name} has shape {arr.shape}, expected trailing dims {tail}")

    return n_gaussians


def save_gaussian_ply(
    filepath: Union[str, Path],
    xyz: np.ndarray,
    features_dc: np.ndarray,
    features_rest: np.ndarray,
    opacity: np.ndarray,
    scaling: np.ndarray,
    rotation: np.ndarray,
) -> None:
    """
    Save stored Gaussian parameters to a binary PLY file.

    Args:
        filepath: Output path. Parent directories are created if needed.
        xyz: Positions. Shape: (N, 3)
        features_dc: DC SH coefficients. Shape: (N, 1, 3)
        features_rest: Higher-order SH coefficients. Shape: (N, K-1, 3)
            Written channel-major (all R coefficients, then G, then B).
        opacity: Opacity logits. Shape: (N, 1)
        scaling: Log-scales. Shape: (N, 3)
        rotation: Raw quaternions (wxyz). Shape: (N, 4)

    Raises:
        ValueError: If input shapes are incompatible.
    """
    n_gaussians = validate_gaussian_attributes(
        xyz, features_dc, features_rest, opacity, scaling, rotation
    )

    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    normals = np.zeros_like(xyz)
    f_dc = np.transpose(features_dc, (0, 2, 1)).reshape(n_gaussians, 3)
    f_rest = np.transpose(features_rest, (0, 2, 1)).reshape(n_gaussians, 3 * features_rest.shape[1])

    names = construct_list_of_attributes(f_dc.shape[1], f_rest.shape[1])
    dtype_full = [(name, "f4") for name in names]

    attributes = np.concatenate(
        (xyz, normals, f_dc, f_rest, opacity, scaling, rotation), axis=1
    ).astype(np.float32)

    vertices = np.empty(n_gaussians, dtype=dtype_full)
    vertices[:] = list(map(tuple, attributes))

    el = PlyElement.describe(vertices, "vertex")
    PlyData([el], text=False).write(str(filepath))


def load_gaussian_ply(filepath: Union[str, Path]) -> Dict[str, np.ndarray]:
    """
    Load stored Gaussian parameters from a PLY file.

    Returns:
        dict: Arrays keyed like the GaussianModel fields:
            - 'xyz': (N, 3)
            - 'features_dc': (N, 1, 3)
            - 'features_rest': (N, K-1, 3)
            - 'opacity': (N, 1)
            - 'scaling': (N, 3)
            - 'rotation': (N, 4)

    Raises:
        FileNotFoundError: If file does not exist.
        ValueError: If the f_rest count is not a multiple of 3.
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"PLY file not found: {filepath}")

    vertex = PlyData.read(str(filepath))["vertex"]
    n_gaussians = len(vertex)
    property_names = [p.name for p in vertex.properties]

    def stack(names: List[str]) -> np.ndarray:
        if not names:
            return np.zeros((n_gaussians, 0), dtype=np.float32)
        return np.stack([np.asarray(vertex[n]) for n in names], axis=1).astype(np.float32)

    def sorted_prefixed(prefix: str) -> List[str]:
        found = [p for p in property_names if p.startswith(prefix)]
        return sorted(found, key=lambda x: int(x.split("_")[-1]))

    f_rest_names = sorted_prefixed("f_rest_")
    if len(f_rest_names) % 3 != 0:
        raise ValueError(f"Expected a multiple of 3 f_rest properties, got {len(f_rest_names)}")

    features_dc = stack(["f_dc_0", "f_dc_1", "f_dc_2"]).reshape(n_gaussians, 3, 1)
    features_rest = stack(f_rest_names).reshape(n_gaussians, 3, len(f_rest_names) // 3)

    return {
        "xyz": stack(["x", "y", "z"]),
        "features_dc": np.transpose(features_dc, (0, 2, 1)),
        "features_rest": np.transpose(features_rest, (0, 2, 1)),
        "opacity": stack(["opacity"]),
        "scaling": stack(sorted_prefixed("scale_")),
        "rotation": stack(sorted_prefixed("rot")),
    }
