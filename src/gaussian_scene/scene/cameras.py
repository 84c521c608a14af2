"""
Camera Views

A Camera holds one calibrated training view: its rotation, translation and
field of view, the normalized ground-truth image, and the view/projection
matrices the rasterizer consumes. All derived matrices are computed once in
the constructor.

loadCam turns a decoded calibration record (CameraInfo) into a Camera,
releasing the record's raw image buffer once it has been copied.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
import torch
from torch import Tensor

from ..utils.device import pick_device
from ..utils.general_utils import image_to_torch
from ..utils.graphics_utils import fov2focal, getProjectionMatrix, getWorld2View2

# Widest image loadCam keeps when resolution == -1
MAX_AUTO_WIDTH = 1600


@dataclass
class CameraInfo:
    """
    Decoded calibration record for one view.

    Attributes:
        uid: Calibration id (COLMAP image id).
        R: Camera-to-world rotation, stored transposed. Shape: (3, 3)
        T: World-to-camera translation. Shape: (3,)
        FovY: Vertical field of view (radians).
        FovX: Horizontal field of view (radians).
        image: Decoded 8-bit image. Shape: (H, W, C), C = 3 or 4 (RGBA).
            Set to None by loadCam once converted.
        image_path: Source path of the image.
        image_name: Image name without extension.
        width: Original image width in pixels.
        height: Original image height in pixels.
    """

    uid: int
    R: np.ndarray
    T: np.ndarray
    FovY: float
    FovX: float
    image: Optional[np.ndarray]
    image_path: str
    image_name: str
    width: int
    height: int


class Camera:
    """
    One calibrated training view.

    Attributes:
        colmap_id, uid: Integer identifiers.
        R, T, FoVx, FoVy: Calibration.
        original_image: Tensor (3, H, W) in [0, 1] on data_device.
        image_width, image_height: Taken from original_image.
        znear, zfar: Clip planes (0.01, 100.0).
        world_view_transform: (4, 4) world-to-camera, transposed layout.
        projection_matrix: (4, 4) perspective projection, transposed layout.
        full_proj_transform: (4, 4) world_view_transform @ projection_matrix.
        camera_center: (3,) camera position in world space.
    """

    def __init__(
        self,
        colmap_id: int,
        R: np.ndarray,
        T: np.ndarray,
        FoVx: float,
        FoVy: float,
        image: Tensor,
        gt_alpha_mask: Optional[Tensor],
        image_name: str,
        uid: int,
        trans: Optional[np.ndarray] = None,
        scale: float = 1.0,
        data_device: str = "cuda",
    ) -> None:
        """
        Args:
            image: Ground-truth image. Shape: (3, H, W), float.
            gt_alpha_mask: Optional mask multiplied into the image.
                Shape: (1, H, W) or (H, W).
            trans: Offset applied to the camera center. Default: zeros.
            scale: Scale applied to the camera center.
            data_device: Device for the image and matrices.

        Raises:
            ValueError: If the image is not shaped (3, H, W).
        """
        if image.ndim != 3 or image.shape[0] != 3 or image.shape[1] == 0 or image.shape[2] == 0:
            raise ValueError(f"Image must have shape (3, H, W), got {tuple(image.shape)}")

        self.uid = uid
        self.colmap_id = colmap_id
        self.R = R
        self.T = T
        self.FoVx = FoVx
        self.FoVy = FoVy
        self.image_name = image_name
        self.data_device = torch.device(pick_device(data_device))

        self.original_image = image.clamp(0.0, 1.0).to(self.data_device)
        self.image_width = self.original_image.shape[2]
        self.image_height = self.original_image.shape[1]

        if gt_alpha_mask is not None:
            self.original_image *= gt_alpha_mask.to(self.data_device)

        self.zfar = 100.0
        self.znear = 0.01

        self.trans = np.zeros(3) if trans is None else trans
        self.scale = scale

        self.world_view_transform = (
            torch.tensor(getWorld2View2(R, T, self.trans, scale)).transpose(0, 1).to(self.data_device)
        )
        self.projection_matrix = (
            getProjectionMatrix(znear=self.znear, zfar=self.zfar, fovX=self.FoVx, fovY=self.FoVy)
            .transpose(0, 1)
            .to(self.data_device)
        )
        self.full_proj_transform = (
            self.world_view_transform.unsqueeze(0).bmm(self.projection_matrix.unsqueeze(0))
        ).squeeze(0)
        self.camera_center = self.world_view_transform.inverse()[3, :3]


def _target_resolution(args, cam_info: CameraInfo, resolution_scale: float) -> Tuple[int, int]:
    width, height = _scaled_resolution(args, cam_info, resolution_scale)
    if width < 1 or height < 1:
        raise ValueError(
            f"Image {cam_info.image_name} of size {cam_info.image.shape[1]}x"
            f"{cam_info.image.shape[0]} scales to {width}x{height} "
            f"(resolution={args.resolution}, resolution_scale={resolution_scale})"
        )
    return width, height


def _scaled_resolution(args, cam_info: CameraInfo, resolution_scale: float) -> Tuple[int, int]:
    orig_w, orig_h = cam_info.image.shape[1], cam_info.image.shape[0]

    if args.resolution in [1, 2, 4, 8]:
        return (
            round(orig_w / (resolution_scale * args.resolution)),
            round(orig_h / (resolution_scale * args.resolution)),
        )

    if args.resolution == -1:
        if orig_w > MAX_AUTO_WIDTH:
            print(
                f"[WARN] Image {cam_info.image_name} is wider than {MAX_AUTO_WIDTH} px, "
                "rescaling. Set resolution to 1 to keep the original size."
            )
            global_down = orig_w / MAX_AUTO_WIDTH
        else:
            global_down = 1
    else:
        global_down = orig_w / args.resolution

    scale = float(global_down) * float(resolution_scale)
    return int(orig_w / scale), int(orig_h / scale)


def loadCam(args, id: int, cam_info: CameraInfo, resolution_scale: float = 1.0) -> Camera:
    """
    Build a Camera from a decoded calibration record.

    The record's raw image is converted to a (C, H, W) float tensor in
    [0, 1] and then released (cam_info.image is set to None). A fourth
    (alpha) channel becomes the camera's gt_alpha_mask.

    Args:
        args: ModelParams (uses .resolution and .data_device).
        id: View index assigned to Camera.uid.
        cam_info: Calibration record. Its image must not have been released.
        resolution_scale: Extra downscale factor on top of args.resolution.

    Returns:
        Camera

    Raises:
        ValueError: If the record's image is missing or malformed.
    """
    if cam_info.image is None:
        raise ValueError(f"Camera record {cam_info.image_name} has no image (already loaded?)")
    if cam_info.image.ndim != 3 or cam_info.image.shape[2] not in (3, 4):
        raise ValueError(
            f"Image must have shape (H, W, 3) or (H, W, 4), got {cam_info.image.shape}"
        )

    resolution = _target_resolution(args, cam_info, resolution_scale)
    resized_image_rgb = image_to_torch(cam_info.image, resolution)
    cam_info.image = None

    gt_image = resized_image_rgb[:3, ...]
    loaded_mask = None
    if resized_image_rgb.shape[0] == 4:
        loaded_mask = resized_image_rgb[3:4, ...]

    return Camera(
        colmap_id=cam_info.uid,
        R=cam_info.R,
        T=cam_info.T,
        FoVx=cam_info.FovX,
        FoVy=cam_info.FovY,
        image=gt_image,
        gt_alpha_mask=loaded_mask,
        image_name=cam_info.image_name,
        uid=id,
        data_device=args.data_device,
    )


def camera_list_from_cam_infos(
    cam_infos: List[CameraInfo], resolution_scale: float, args
) -> List[Camera]:
    """Load every record in order; Camera.uid is the list index."""
    return [loadCam(args, id, c, resolution_scale) for id, c in enumerate(cam_infos)]


def camera_to_json(id: int, camera: Camera) -> Dict:
    """
    Describe a camera for a cameras.json listing.

    Returns:
        dict: id, img_name, width, height, position (3,), rotation (3x3,
            camera-to-world), fx, fy.
    """
    Rt = np.zeros((4, 4))
    Rt[:3, :3] = camera.R.transpose()
    Rt[:3, 3] = camera.T
    Rt[3, 3] = 1.0

    W2C = np.linalg.inv(Rt)
    pos = W2C[:3, 3]
    rot = W2C[:3, :3]
    serializable_array_2d = [x.tolist() for x in rot]
    return {
        "id": id,
        "img_name": camera.image_name,
        "width": camera.image_width,
        "height": camera.image_height,
        "position": pos.tolist(),
        "rotation": serializable_array_2d,
        "fy": fov2focal(camera.FoVy, camera.image_height),
        "fx": fov2focal(camera.FoVx, camera.image_width),
    }
