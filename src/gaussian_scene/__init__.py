"""
gaussian_scene - Scene parameters for 3D Gaussian Splatting

This package provides the data model and optimization lifecycle of a
Gaussian splatting scene: the learnable Gaussian parameters with their
activation transforms, initialization from a colored point cloud, the
training setup (Adam optimizer, position learning-rate schedule, gradient
accumulators), and the calibrated camera views handed to a rasterizer.

Main Components:
    GaussianModel: Learnable Gaussian parameters and training setup
    Camera: One calibrated view with its view/projection matrices
    loadCam: Build a Camera from a decoded calibration record

Subpackages:
    scene: Gaussian model, cameras, point clouds
    utils: Activations, schedules, SH and camera math, config, device
    export: PLY I/O for Gaussian parameters
    configs: Default configuration files

Example:
    >>> from gaussian_scene import GaussianModel, OptimizationParams
    >>> from gaussian_scene.scene import fetch_ply
    >>> model = GaussianModel(sh_degree=3)
    >>> model.create_from_pcd(fetch_ply("points3D.ply"), spatial_lr_scale=1.0)
    >>> model.training_setup(OptimizationParams())
    >>> for iteration in range(1, 30001):
    ...     model.update_learning_rate(iteration)
    ...     if iteration % 1000 == 0:
    ...         model.oneupSHdegree()
"""

__version__ = "0.1.0"

from .scene import (
    GaussianModel,
    Camera,
    CameraInfo,
    loadCam,
    BasicPointCloud,
)
from .config import ModelParams, OptimizationParams, load_params

# Convenience imports
from .utils import load_config, pick_device

__all__ = [
    "__version__",
    "GaussianModel",
    "Camera",
    "CameraInfo",
    "loadCam",
    "BasicPointCloud",
    "ModelParams",
    "OptimizationParams",
    "load_params",
    "load_config",
    "pick_device",
]
