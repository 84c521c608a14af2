"""
Scene module for gaussian_scene.

Provides the learnable Gaussian scene container, camera views and the
point clouds used to seed them.
"""

from .gaussian_model import GaussianModel
from .cameras import (
    Camera,
    CameraInfo,
    loadCam,
    camera_list_from_cam_infos,
    camera_to_json,
)
from .point_cloud import BasicPointCloud, fetch_ply, store_ply

__all__ = [
    "GaussianModel",
    "Camera",
    "CameraInfo",
    "loadCam",
    "camera_list_from_cam_infos",
    "camera_to_json",
    "BasicPointCloud",
    "fetch_ply",
    "store_ply",
]
