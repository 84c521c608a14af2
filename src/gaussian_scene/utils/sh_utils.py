"""
Spherical harmonic helpers for the degree-0 (base color) term.
"""

from __future__ import annotations

from typing import Union

import numpy as np
from torch import Tensor

# Spherical Harmonics DC constant: C0 = 0.5 / sqrt(pi)
C0 = 0.28209479177387814


def RGB2SH(rgb: Union[np.ndarray, Tensor]) -> Union[np.ndarray, Tensor]:
    """Map RGB in [0, 1] to the DC SH coefficient."""
    return (rgb - 0.5) / C0


def SH2RGB(sh: Union[np.ndarray, Tensor]) -> Union[np.ndarray, Tensor]:
    """Map the DC SH coefficient back to RGB (unclipped)."""
    return sh * C0 + 0.5


def sh_coefficient_count(degree: int) -> int:
    """
    Get the number of spherical harmonic coefficients for a given degree.

    Args:
        degree: SH degree (0-3).

    Returns:
        int: Number of coefficients = (degree + 1)²
            degree 0: 1
            degree 1: 4
            degree 2: 9
            degree 3: 16
    """
    return (degree + 1) ** 2
