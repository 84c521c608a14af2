"""
Hyperparameter containers for scene construction and training setup.

Both dataclasses can be built from plain dicts or from the ``model`` and
``optimization`` sections of a YAML file (see
``configs/gaussian_config.yaml`` for the packaged defaults).
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Tuple, Union

from .utils.config import load_config


def _from_dict(cls, values: Optional[dict]):
    values = dict(values or {})
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} keys: {unknown}")
    return cls(**values)


@dataclass
class ModelParams:
    """
    Scene and camera loading parameters.

    Attributes:
        sh_degree: Maximum spherical harmonics degree (0 = DC only, 3 = full).
        resolution: Image resolution policy for loadCam.
            1, 2, 4, 8: divide the original size by this factor.
            -1: keep the original size, capped at 1600 px wide.
            Other positive values: target width in pixels.
        data_device: Device holding the camera images ('cuda' or 'cpu').
        white_background: Whether the scene background is white.
    """

    sh_degree: int = 3
    resolution: int = -1
    data_device: str = "cuda"
    white_background: bool = False

    @classmethod
    def from_dict(cls, values: Optional[dict]) -> "ModelParams":
        return _from_dict(cls, values)


@dataclass
class OptimizationParams:
    """
    Training setup parameters.

    Attributes:
        iterations: Total number of optimization iterations.
        position_lr_init: Initial position learning rate (before spatial scaling).
        position_lr_final: Final position learning rate (before spatial scaling).
        position_lr_delay_steps: Warm-up length for the position rate. 0 disables it.
        position_lr_delay_mult: Fraction of the position rate applied at step 0
            of the warm-up.
        position_lr_max_steps: Steps over which the position rate decays.
        feature_lr: Learning rate for DC SH coefficients (rest uses 1/20 of it).
        opacity_lr: Learning rate for opacity (logit-space).
        scaling_lr: Learning rate for scales (log-space).
        rotation_lr: Learning rate for rotation quaternions.
        percent_dense: Scene-extent fraction used by densification.
    """

    iterations: int = 30000
    position_lr_init: float = 0.00016
    position_lr_final: float = 0.0000016
    position_lr_delay_steps: int = 0
    position_lr_delay_mult: float = 0.01
    position_lr_max_steps: int = 30000
    feature_lr: float = 0.0025
    opacity_lr: float = 0.025
    scaling_lr: float = 0.005
    rotation_lr: float = 0.001
    percent_dense: float = 0.01

    @classmethod
    def from_dict(cls, values: Optional[dict]) -> "OptimizationParams":
        return _from_dict(cls, values)


def load_params(
    path: Union[str, Path, None] = None,
) -> Tuple[ModelParams, OptimizationParams]:
    """
    Load model and optimization parameters from a YAML file.

    Args:
        path: YAML file with optional ``model`` and ``optimization`` sections.
            If None, uses the packaged gaussian_config.yaml.

    Returns:
        (ModelParams, OptimizationParams)

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If a section contains unknown keys.
    """
    if path is None:
        from .configs import get_default_gaussian_config_path

        path = get_default_gaussian_config_path()

    cfg = load_config(path) or {}
    return (
        ModelParams.from_dict(cfg.get("model")),
        OptimizationParams.from_dict(cfg.get("optimization")),
    )
