"""
Gaussian Scene Model

This module provides the container for the learnable parameters of a 3D
Gaussian Splatting scene: positions, spherical harmonic colors, opacities,
anisotropic scales and rotations. It owns their activation transforms,
their initialization from a colored point cloud, and the training setup
(Adam optimizer, position learning-rate schedule, gradient accumulators).

Rasterization, loss computation and densification policy live outside this
module; the rasterizer reads the activated values exposed here.

Lifecycle:
    GaussianModel(sh_degree)            # empty, N = 0
      -> create_from_pcd(pcd, scale)    # populated, N fixed
      -> training_setup(opt_params)     # optimizer + schedule ready
      -> (external loop) update_learning_rate / step / oneupSHdegree

References:
    - 3D Gaussian Splatting: https://repo-sam.inria.fr/fungraph/3d-gaussian-splatting/
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import numpy as np
import torch
import torch.nn as nn
from torch import Tensor

from ..config import OptimizationParams
from ..export.ply_exporter import (
    construct_list_of_attributes,
    load_gaussian_ply,
    save_gaussian_ply,
)
from ..utils.device import pick_device
from ..utils.general_utils import (
    Activation,
    ExponentialLR,
    build_scaling_rotation,
    get_expon_lr_func,
    mean_sq_nearest_neighbor_dist,
    strip_symmetric,
)
from ..utils.sh_utils import RGB2SH, sh_coefficient_count
from .point_cloud import BasicPointCloud


class GaussianModel:
    """
    Learnable parameters of a Gaussian scene.

    Stored (optimized) tensors and their rendered values:
        - _xyz: (N, 3) positions, used as-is
        - _features_dc: (N, 1, 3) DC SH coefficients (base color)
        - _features_rest: (N, K-1, 3) higher-order SH, K = (max_sh_degree+1)^2
        - _scaling: (N, 3) log-scales; rendered scale = exp(_scaling)
        - _rotation: (N, 4) raw quaternions (wxyz); rendered = normalized
        - _opacity: (N, 1) logits; rendered opacity = sigmoid(_opacity)

    Bookkeeping for the (external) densification logic:
        - max_radii2D: (N,) largest screen-space radius seen per Gaussian
        - xyz_gradient_accum: (N, 1) accumulated view-space gradient norm
        - denom: (N, 1) number of accumulated updates

    Attributes:
        active_sh_degree: SH degree currently used for rendering.
        max_sh_degree: Highest SH degree the model stores.
        spatial_lr_scale: Scene extent multiplier for the position rate.
        percent_dense: Copied from OptimizationParams at training setup.
        optimizer: torch.optim.Adam, created by training_setup().
        xyz_scheduler_args: Position learning-rate schedule.
        device: torch device string holding all tensors.

    Example:
        >>> model = GaussianModel(sh_degree=3, device="cpu")
        >>> model.create_from_pcd(pcd, spatial_lr_scale=2.0)
        >>> model.training_setup(OptimizationParams())
        >>> model.update_learning_rate(iteration=1)
    """

    def setup_functions(self) -> None:
        """Bind the activation transforms for this instance."""

        def build_covariance_from_scaling_rotation(
            scaling: Tensor, scaling_modifier: float, rotation: Tensor
        ) -> Tensor:
            L = build_scaling_rotation(scaling_modifier * scaling, rotation)
            actual_covariance = L @ L.transpose(1, 2)
            return strip_symmetric(actual_covariance)

        self.scaling_activation = Activation.EXP
        self.opacity_activation = Activation.SIGMOID
        self.rotation_activation = Activation.NORMALIZE
        self.covariance_activation = build_covariance_from_scaling_rotation

    def __init__(self, sh_degree: int, device: str = "cuda") -> None:
        """
        Create an empty model.

        Args:
            sh_degree: Maximum spherical harmonics degree.
            device: Requested device. Falls back to CPU when CUDA is missing.

        Raises:
            ValueError: If sh_degree is negative.
        """
        if sh_degree < 0:
            raise ValueError(f"sh_degree must be >= 0, got {sh_degree}")

        self.device = pick_device(device)
        self.active_sh_degree = 0
        self.max_sh_degree = sh_degree
        self._xyz = torch.empty(0)
        self._features_dc = torch.empty(0)
        self._features_rest = torch.empty(0)
        self._scaling = torch.empty(0)
        self._rotation = torch.empty(0)
        self._opacity = torch.empty(0)
        self.max_radii2D = torch.empty(0)
        self.xyz_gradient_accum = torch.empty(0)
        self.denom = torch.empty(0)
        self.optimizer: Optional[torch.optim.Adam] = None
        self.xyz_scheduler_args: Optional[ExponentialLR] = None
        self.percent_dense = 0.0
        self.spatial_lr_scale = 0.0
        self.setup_functions()

    # ------------------------------------------------------------------
    # Activated views
    # ------------------------------------------------------------------

    @property
    def get_scaling(self) -> Tensor:
        return self.scaling_activation(self._scaling)

    @property
    def get_rotation(self) -> Tensor:
        return self.rotation_activation(self._rotation)

    @property
    def get_xyz(self) -> Tensor:
        return self._xyz

    @property
    def get_features(self) -> Tensor:
        """Full SH coefficients, shape (N, (max_sh_degree+1)^2, 3)."""
        return torch.cat((self._features_dc, self._features_rest), dim=1)

    @property
    def get_opacity(self) -> Tensor:
        return self.opacity_activation(self._opacity)

    def get_covariance(self, scaling_modifier: float = 1.0) -> Tensor:
        """Upper-triangular covariance entries, shape (N, 6)."""
        return self.covariance_activation(self.get_scaling, scaling_modifier, self._rotation)

    @property
    def num_gaussians(self) -> int:
        """Return current number of Gaussian primitives."""
        if self._xyz.ndim < 2:
            return 0
        return self._xyz.shape[0]

    def oneupSHdegree(self) -> None:
        """Unlock the next SH degree, saturating at max_sh_degree."""
        if self.active_sh_degree < self.max_sh_degree:
            self.active_sh_degree += 1

    def _require_empty(self, caller: str) -> None:
        # N is fixed once populated; the optimizer and accumulators hold it
        if self.num_gaussians > 0:
            raise RuntimeError(
                f"{caller}() called on a model that already holds "
                f"{self.num_gaussians} Gaussians. Create a new GaussianModel instead."
            )

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def create_from_pcd(self, pcd: BasicPointCloud, spatial_lr_scale: float) -> int:
        """
        Initialize one Gaussian per point of a colored point cloud.

        Args:
            pcd: Point cloud with points (N, 3) and colors (N, 3) in [0, 1].
            spatial_lr_scale: Scene extent, multiplies the position rate.

        Returns:
            int: Number of Gaussians initialized (N).

        Raises:
            RuntimeError: If the model is already populated.
            ValueError: If the cloud is empty, points and colors differ in
                length or width, or spatial_lr_scale is not positive.

        Initialization:
            color:    features_dc = RGB2SH(rgb), features_rest = 0
            scale:    log(sqrt(max(mean_sq_nn_dist, 1e-7))) on all 3 axes
            rotation: (1, 0, 0, 0)
            opacity:  logit(0.5)
        """
        self._require_empty("create_from_pcd")

        points =np.asarray(pcd.points, dtype=np.float32)
        colors = np.asarray(pcd.colors, dtype=np.float32)

        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError(f"Point positions must have shape (N, 3), got {points.shape}")
        if colors.ndim != 2 or colors.shape[1] != 3:
            raise ValueError(f"Point colors must have shape (N, 3), got {colors.shape}")
        if points.shape[0] == 0:
            raise ValueError("Point cloud is empty")
        if colors.shape[0] != points.shape[0]:
            raise ValueError(
                f"Point cloud has {points.shape[0]} positions but {colors.shape[0]} colors"
            )
        if spatial_lr_scale <= 0:
            raise ValueError(f"spatial_lr_scale must be positive, got {spatial_lr_scale}")

        self.spatial_lr_scale = spatial_lr_scale
        n_points = points.shape[0]

        fused_point_cloud = torch.tensor(points, dtype=torch.float32, device=self.device)
        fused_color = RGB2SH(torch.tensor(colors, dtype=torch.float32, device=self.device))

        num_coeffs = sh_coefficient_count(self.max_sh_degree)
        features = torch.zeros((n_points, 3, num_coeffs), dtype=torch.float32, device=self.device)
        features[:, :3, 0] = fused_color

        print(f"Number of points at initialisation : {n_points}")

        dist2 = torch.from_numpy(mean_sq_nearest_neighbor_dist(points)).to(self.device)
        dist2 = torch.clamp_min(dist2, 0.0000001)
        scales = self.scaling_activation.inverse(torch.sqrt(dist2))[..., None].repeat(1, 3)

        rots = torch.zeros((n_points, 4), dtype=torch.float32, device=self.device)
        rots[:, 0] = 1

        opacities = self.opacity_activation.inverse(
            0.5 * torch.ones((n_points, 1), dtype=torch.float32, device=self.device)
        )

        self._xyz = nn.Parameter(fused_point_cloud.requires_grad_(True))
        self._features_dc = nn.Parameter(
            features[:, :, 0:1].transpose(1, 2).contiguous().requires_grad_(True)
        )
        self._features_rest = nn.Parameter(
            features[:, :, 1:].transpose(1, 2).contiguous().requires_grad_(True)
        )
        self._scaling = nn.Parameter(scales.requires_grad_(True))
        self._rotation = nn.Parameter(rots.requires_grad_(True))
        self._opacity = nn.Parameter(opacities.requires_grad_(True))
        self.max_radii2D = torch.zeros((n_points,), device=self.device)

        return n_points

    # ------------------------------------------------------------------
    # Training setup
    # ------------------------------------------------------------------

    def training_setup(self, training_args: OptimizationParams) -> None:
        """
        Create the optimizer, the position schedule and the accumulators.

        Each stored tensor gets its own named Adam parameter group. The
        position group starts at position_lr_init * spatial_lr_scale and is
        driven by update_learning_rate() afterwards.

        Args:
            training_args: OptimizationParams (or any object with the same
                attributes).

        Raises:
            RuntimeError: If called before create_from_pcd().
        """
        if self.num_gaussians == 0:
            raise RuntimeError("Must call create_from_pcd() before training_setup()")

        self.percent_dense = training_args.percent_dense
        self.xyz_gradient_accum = torch.zeros((self.num_gaussians, 1), device=self.device)
        self.denom = torch.zeros((self.num_gaussians, 1), device=self.device)

        groups = [
            {
                "params": [self._xyz],
                "lr": training_args.position_lr_init * self.spatial_lr_scale,
                "name": "xyz",
            },
            {"params": [self._features_dc], "lr": training_args.feature_lr, "name": "f_dc"},
            {"params": [self._features_rest], "lr": training_args.feature_lr / 20.0, "name": "f_rest"},
            {"params": [self._opacity], "lr": training_args.opacity_lr, "name": "opacity"},
            {"params": [self._scaling], "lr": training_args.scaling_lr, "name": "scaling"},
            {"params": [self._rotation], "lr": training_args.rotation_lr, "name": "rotation"},
        ]

        self.optimizer = torch.optim.Adam(groups, lr=0.0, eps=1e-15)
        self.xyz_scheduler_args = get_expon_lr_func(
            lr_init=training_args.position_lr_init * self.spatial_lr_scale,
            lr_final=training_args.position_lr_final * self.spatial_lr_scale,
            lr_delay_steps=training_args.position_lr_delay_steps,
            lr_delay_mult=training_args.position_lr_delay_mult,
            max_steps=training_args.position_lr_max_steps,
        )

    def update_learning_rate(self, iteration: int) -> float:
        """
        Apply the position schedule for this iteration.

        Returns:
            float: The position learning rate now set on the optimizer.

        Raises:
            RuntimeError: If called before training_setup().
        """
        if self.optimizer is None or self.xyz_scheduler_args is None:
            raise RuntimeError("Must call training_setup() before update_learning_rate()")

        for param_group in self.optimizer.param_groups:
            if param_group["name"] == "xyz":
                lr = self.xyz_scheduler_args(iteration)
                param_group["lr"] = lr
                return lr
        raise RuntimeError("Optimizer has no 'xyz' parameter group")

    def add_densification_stats(self, viewspace_point_tensor: Tensor, update_filter: Tensor) -> None:
        """
        Accumulate view-space position gradients for visible Gaussians.

        Args:
            viewspace_point_tensor: Screen-space means whose .grad holds
                (N, 2+) gradients from the rasterizer.
            update_filter: Boolean mask (N,) of Gaussians seen this step.
        """
        grad = viewspace_point_tensor.grad
        if grad is None:
            return
        self.xyz_gradient_accum[update_filter] += torch.norm(
            grad[update_filter, :2], dim=-1, keepdim=True
        )
        self.denom[update_filter] += 1

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def construct_list_of_attributes(self) -> list:
        num_dc = self._features_dc.shape[1] * self._features_dc.shape[2]
        num_rest = self._features_rest.shape[1] * self._features_rest.shape[2]
        return construct_list_of_attributes(num_dc, num_rest)

    def save_ply(self, path: Union[str, Path]) -> None:
        """Write the stored parameters in the standard 3DGS PLY layout."""
        if self.num_gaussians == 0:
            raise RuntimeError("No Gaussians to export. Call create_from_pcd() first.")

        def to_np(t: Tensor) -> np.ndarray:
            return t.detach().cpu().numpy()

        save_gaussian_ply(
            path,
            xyz=to_np(self._xyz),
            features_dc=to_np(self._features_dc),
            features_rest=to_np(self._features_rest),
            opacity=to_np(self._opacity),
            scaling=to_np(self._scaling),
            rotation=to_np(self._rotation),
        )
        print(f"Saved {self.num_gaussians} Gaussians to {path}")

    def load_ply(self, path: Union[str, Path]) -> int:
        """
        Populate an empty model from a 3DGS PLY file.

        The active SH degree is set to max_sh_degree.

        Returns:
            int: Number of Gaussians loaded.

        Raises:
            RuntimeError: If the model is already populated.
            FileNotFoundError: If file does not exist.
            ValueError: If the file's SH coefficient count does not match
                max_sh_degree.
        """
        self._require_empty("load_ply")

        data = load_gaussian_ply(path)

        expected_rest = sh_coefficient_count(self.max_sh_degree) - 1
        if data["features_rest"].shape[1] != expected_rest:
            raise ValueError(
                f"PLY holds {data['features_rest'].shape[1]} higher-order SH coefficients, "
                f"expected {expected_rest} for degree {self.max_sh_degree}"
            )

        def to_param(arr: np.ndarray) -> nn.Parameter:
            t = torch.tensor(arr, dtype=torch.float32, device=self.device)
            return nn.Parameter(t.contiguous().requires_grad_(True))

        self._xyz = to_param(data["xyz"])
        self._features_dc = to_param(data["features_dc"])
        self._features_rest = to_param(data["features_rest"])
        self._opacity = to_param(data["opacity"])
        self._scaling = to_param(data["scaling"])
        self._rotation = to_param(data["rotation"])
        self.max_radii2D = torch.zeros((self.num_gaussians,), device=self.device)

        self.active_sh_degree = self.max_sh_degree
        return self.num_gaussians
