"""
Camera Matrix Utilities

World-to-view and perspective projection matrices in the row-major layout
expected by the rasterizer (callers transpose the results before use),
plus field-of-view / focal-length conversions.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np
import torch
from torch import Tensor


def getWorld2View2(
    R: np.ndarray,
    t: np.ndarray,
    translate: Optional[np.ndarray] = None,
    scale: float = 1.0,
) -> np.ndarray:
    """
    Build the 4x4 world-to-camera transform.

    Args:
        R: Camera-to-world rotation (stored transposed, COLMAP convention).
            Shape: (3, 3)
        t: World-to-camera translation. Shape: (3,)
        translate: Offset added to the camera center before scaling.
            Default: zero vector.
        scale: Factor applied to the camera center.

    Returns:
        np.ndarray: Shape (4, 4), dtype float32.
    """
    if translate is None:
        translate = np.zeros(3)

    Rt = np.zeros((4, 4))
    Rt[:3, :3] = R.transpose()
    Rt[:3, 3] = t
    Rt[3, 3] = 1.0

    C2W = np.linalg.inv(Rt)
    cam_center = C2W[:3, 3]
    cam_center = (cam_center + translate) * scale
    C2W[:3, 3] = cam_center
    Rt = np.linalg.inv(C2W)
    return np.float32(Rt)


def getProjectionMatrix(znear: float, zfar: float, fovX: float, fovY: float) -> Tensor:
    """
    Build the 4x4 perspective projection matrix.

    Depth maps to [0, 1] between ``znear`` and ``zfar``.
    """
    tanHalfFovY = math.tan(fovY / 2)
    tanHalfFovX = math.tan(fovX / 2)

    top = tanHalfFovY * znear
    bottom = -top
    right = tanHalfFovX * znear
    left = -right

    P = torch.zeros(4, 4)

    z_sign = 1.0

    P[0, 0] = 2.0 * znear / (right - left)
    P[1, 1] = 2.0 * znear / (top - bottom)
    P[0, 2] = (right + left) / (right - left)
    P[1, 2] = (top + bottom) / (top - bottom)
    P[3, 2] = z_sign
    P[2, 2] = z_sign * zfar / (zfar - znear)
    P[2, 3] = -(zfar * znear) / (zfar - znear)
    return P


def fov2focal(fov: float, pixels: int) -> float:
    return pixels / (2 * math.tan(fov / 2))


def focal2fov(focal: float, pixels: int) -> float:
    return 2 * math.atan(pixels / (2 * focal))
