"""
Export module for gaussian_scene.

Provides PLY file I/O for the stored (pre-activation) Gaussian parameters.

Submodules:
    ply_exporter: PLY file I/O for Gaussian scene data
"""

from .ply_exporter import (
    save_gaussian_ply,
    load_gaussian_ply,
    construct_list_of_attributes,
    validate_gaussian_attributes,
)

__all__ = [
    "save_gaussian_ply",
    "load_gaussian_ply",
    "construct_list_of_attributes",
    "validate_gaussian_attributes",
]
