"""
General Gaussian Utility Functions

This module provides the math shared by the Gaussian scene container and
the camera loader: parameter activations, the position learning-rate
schedule, quaternion and covariance construction, nearest-neighbour scale
estimation and image conversion.

Tensors are PyTorch throughout; NumPy is only used at the boundaries
(point clouds and decoded images arrive as arrays).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import cv2
import numpy as np
import torch
import torch.nn.functional as F
from scipy.spatial import cKDTree
from torch import Tensor


def inverse_sigmoid(x: Tensor) -> Tensor:
    """Inverse sigmoid (logit): (0, 1) to logit-space."""
    return torch.log(x / (1 - x))


class Activation(Enum):
    """
    Fixed transforms mapping a stored (unconstrained) parameter to its
    rendered value.

    Members are callable and expose ``inverse`` for initialization:

        IDENTITY   x            inverse: x
        EXP        exp(x)       inverse: log(x)
        SIGMOID    sigmoid(x)   inverse: logit(x)
        NORMALIZE  x / ||x||    inverse: not defined

    Example:
        >>> Activation.EXP(torch.zeros(2))
        tensor([1., 1.])
    """

    IDENTITY = "identity"
    EXP = "exp"
    SIGMOID = "sigmoid"
    NORMALIZE = "normalize"

    def __call__(self, x: Tensor) -> Tensor:
        if self is Activation.EXP:
            return torch.exp(x)
        if self is Activation.SIGMOID:
            return torch.sigmoid(x)
        if self is Activation.NORMALIZE:
            return F.normalize(x, dim=-1)
        return x

    def inverse(self, x: Tensor) -> Tensor:
        if self is Activation.EXP:
            return torch.log(x)
        if self is Activation.SIGMOID:
            return inverse_sigmoid(x)
        if self is Activation.NORMALIZE:
            raise NotImplementedError("Normalization has no inverse")
        return x


@dataclass(frozen=True)
class ExponentialLR:
    """
    Log-linear learning-rate decay with an optional warm-up delay.

    Attributes:
        lr_init: Rate at step 0 (before the delay multiplier).
        lr_final: Rate reached at ``max_steps`` and held afterwards.
        lr_delay_steps: Length of the warm-up ramp. 0 disables it.
        lr_delay_mult: Fraction of the rate applied at step 0 of the ramp.
        max_steps: Decay horizon.
    """

    lr_init: float
    lr_final: float
    lr_delay_steps: int = 0
    lr_delay_mult: float = 1.0
    max_steps: int = 1000000

    def __post_init__(self) -> None:
        if self.lr_init < 0 or self.lr_final < 0:
            raise ValueError(
                f"Learning rates must be non-negative, got {self.lr_init} and {self.lr_final}"
            )
        # Log-space interpolation needs both endpoints positive (or both zero)
        if (self.lr_init == 0.0) != (self.lr_final == 0.0):
            raise ValueError(
                f"lr_init and lr_final must both be positive or both be zero, "
                f"got {self.lr_init} and {self.lr_final}"
            )
        if self.max_steps <= 0:
            raise ValueError(f"max_steps must be positive, got {self.max_steps}")

    def __call__(self, step: int) -> float:
        if step < 0 or (self.lr_init == 0.0 and self.lr_final == 0.0):
            return 0.0
        if self.lr_delay_steps > 0:
            # Smooth sine ramp from lr_delay_mult up to 1
            delay_rate = self.lr_delay_mult + (1 - self.lr_delay_mult) * np.sin(
                0.5 * np.pi * np.clip(step / self.lr_delay_steps, 0, 1)
            )
        else:
            delay_rate = 1.0
        t = np.clip(step / self.max_steps, 0, 1)
        log_lerp = np.exp(np.log(self.lr_init) * (1 - t) + np.log(self.lr_final) * t)
        return float(delay_rate * log_lerp)


def get_expon_lr_func(
    lr_init: float,
    lr_final: float,
    lr_delay_steps: int = 0,
    lr_delay_mult: float = 1.0,
    max_steps: int = 1000000,
) -> ExponentialLR:
    """
    Build the position learning-rate schedule.

    Returns:
        ExponentialLR: Callable mapping a step index to a learning rate.

    Raises:
        ValueError: If a rate is negative, exactly one rate is zero, or
            max_steps is not positive.

    Example:
        >>> sched = get_expon_lr_func(1e-2, 1e-4, max_steps=100)
        >>> sched(100) == sched(1000)
        True
    """
    return ExponentialLR(
        lr_init=lr_init,
        lr_final=lr_final,
        lr_delay_steps=lr_delay_steps,
        lr_delay_mult=lr_delay_mult,
        max_steps=max_steps,
    )


def build_rotation(r: Tensor) -> Tensor:
    """
    Convert quaternions (w, x, y, z) to 3x3 rotation matrices.

    Args:
        r: Shape: (N, 4). Normalized internally.

    Returns:
        Shape: (N, 3, 3)
    """
    q = F.normalize(r, dim=-1)
    w, x, y, z = q[:, 0], q[:, 1], q[:, 2], q[:, 3]

    R = torch.zeros((q.size(0), 3, 3), dtype=q.dtype, device=q.device)
    R[:, 0, 0] = 1 - 2 * (y * y + z * z)
    R[:, 0, 1] = 2 * (x * y - w * z)
    R[:, 0, 2] = 2 * (x * z + w * y)
    R[:, 1, 0] = 2 * (x * y + w * z)
    R[:, 1, 1] = 1 - 2 * (x * x + z * z)
    R[:, 1, 2] = 2 * (y * z - w * x)
    R[:, 2, 0] = 2 * (x * z - w * y)
    R[:, 2, 1] = 2 * (y * z + w * x)
    R[:, 2, 2] = 1 - 2 * (x * x + y * y)
    return R


def build_scaling_rotation(s: Tensor, r: Tensor) -> Tensor:
    """Return L = R(r) @ diag(s), so that the covariance is L @ L^T."""
    L = torch.zeros((s.shape[0], 3, 3), dtype=s.dtype, device=s.device)
    L[:, 0, 0] = s[:, 0]
    L[:, 1, 1] = s[:, 1]
    L[:, 2, 2] = s[:, 2]
    return build_rotation(r) @ L


def strip_lowerdiag(L: Tensor) -> Tensor:
    uncertainty = torch.zeros((L.shape[0], 6), dtype=L.dtype, device=L.device)
    uncertainty[:, 0] = L[:, 0, 0]
    uncertainty[:, 1] = L[:, 0, 1]
    uncertainty[:, 2] = L[:, 0, 2]
    uncertainty[:, 3] = L[:, 1, 1]
    uncertainty[:, 4] = L[:, 1, 2]
    uncertainty[:, 5] = L[:, 2, 2]
    return uncertainty


def strip_symmetric(sym: Tensor) -> Tensor:
    """Compress (N, 3, 3) symmetric matrices to their 6 upper-triangular entries."""
    return strip_lowerdiag(sym)


def mean_sq_nearest_neighbor_dist(
    points: np.ndarray,
    k_neighbors: int = 3,
) -> np.ndarray:
    """
    Mean squared distance from each point to its nearest neighbours.

    Args:
        points: Point positions. Shape: (N, 3)
        k_neighbors: Number of neighbours averaged (self excluded).

    Returns:
        dist2: Shape: (N,), dtype float32. Uses fewer neighbours when
            N <= k_neighbors and is 0 for a single point.
    """
    points = np.asarray(points, dtype=np.float64)
    n_points = points.shape[0]
    if n_points == 0:
        return np.zeros((0,), dtype=np.float32)

    tree = cKDTree(points)
    k_query = min(k_neighbors + 1, n_points)
    distances, _ = tree.query(points, k=k_query)
    distances = np.asarray(distances).reshape(n_points, -1)[:, 1:]  # exclude self

    if distances.shape[1] == 0:
        return np.zeros((n_points,), dtype=np.float32)
    return np.mean(distances**2, axis=1).astype(np.float32)


def image_to_torch(
    image: np.ndarray,
    resolution: Optional[Tuple[int, int]] = None,
) -> Tensor:
    """
    Convert a decoded 8-bit image to a normalized channel-first tensor.

    Args:
        image: Shape: (H, W, C) or (H, W), dtype uint8.
        resolution: Target (width, height). None keeps the input size.

    Returns:
        Tensor of shape (C, H, W), float32 in [0, 1].

    Raises:
        ValueError: If the image is not 2-D or 3-D, or has zero size.
    """
    if image.ndim not in (2, 3) or image.shape[0] == 0 or image.shape[1] == 0:
        raise ValueError(f"Image must have shape (H, W[, C]), got {image.shape}")

    h, w = image.shape[:2]
    if resolution is not None and tuple(resolution) != (w, h):
        image = cv2.resize(image, tuple(int(v) for v in resolution), interpolation=cv2.INTER_AREA)

    resized = torch.from_numpy(np.ascontiguousarray(image)).float() / 255.0
    if resized.ndim == 3:
        return resized.permute(2, 0, 1)
    return resized.unsqueeze(dim=0)
