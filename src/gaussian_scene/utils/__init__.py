"""
Utilities module for gaussian_scene.

Provides the math helpers, configuration loading and device selection
shared by the scene components.

Functions:
    load_config: Load YAML configuration file
    pick_device: Select CUDA or CPU device
    get_expon_lr_func: Build the position learning-rate schedule
    RGB2SH / SH2RGB: Degree-0 spherical harmonic conversions
    getWorld2View2 / getProjectionMatrix: Camera matrices
"""

from .config import load_config
from .device import pick_device
from .general_utils import (
    Activation,
    ExponentialLR,
    inverse_sigmoid,
    get_expon_lr_func,
    build_rotation,
    build_scaling_rotation,
    strip_symmetric,
    mean_sq_nearest_neighbor_dist,
    image_to_torch,
)
from .sh_utils import C0, RGB2SH, SH2RGB, sh_coefficient_count
from .graphics_utils import getWorld2View2, getProjectionMatrix, fov2focal, focal2fov

__all__ = [
    "load_config",
    "pick_device",
    "Activation",
    "ExponentialLR",
    "inverse_sigmoid",
    "get_expon_lr_func",
    "build_rotation",
    "build_scaling_rotation",
    "strip_symmetric",
    "mean_sq_nearest_neighbor_dist",
    "image_to_torch",
    "C0",
    "RGB2SH",
    "SH2RGB",
    "sh_coefficient_count",
    "getWorld2View2",
    "getProjectionMatrix",
    "fov2focal",
    "focal2fov",
]
