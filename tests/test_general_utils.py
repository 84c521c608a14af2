"""
Unit tests for the Gaussian math helpers.

Covers activations, the position learning-rate schedule, quaternion and
covariance construction, nearest-neighbour distances and image conversion.
"""

import math

import numpy as np
import pytest
import torch

from gaussian_scene.utils import general_utils as gu
from gaussian_scene.utils.general_utils import Activation
from gaussian_scene.utils.sh_utils import C0, RGB2SH, SH2RGB, sh_coefficient_count


# =============================================================================
# Tests for activations
# =============================================================================


class TestActivations:
    """Tests for the activation strategies."""

    def test_exp_strictly_positive(self):
        x = torch.tensor([-50.0, -1.0, 0.0, 1.0, 20.0])
        assert (Activation.EXP(x) > 0).all()

    def test_sigmoid_in_open_interval(self):
        x = torch.linspace(-15.0, 15.0, 101)
        y = Activation.SIGMOID(x)
        assert (y > 0).all()
        assert (y < 1).all()

    def test_normalize_unit_norm(self):
        q = torch.randn(64, 4) * 100.0
        norms = Activation.NORMALIZE(q).norm(dim=-1)
        torch.testing.assert_close(norms, torch.ones(64))

    def test_identity(self):
        x = torch.randn(5, 3)
        assert torch.equal(Activation.IDENTITY(x), x)
        assert torch.equal(Activation.IDENTITY.inverse(x), x)

    def test_inverses(self):
        x = torch.tensor([0.1, 0.5, 0.9])
        torch.testing.assert_close(Activation.EXP(Activation.EXP.inverse(x)), x)
        torch.testing.assert_close(Activation.SIGMOID(Activation.SIGMOID.inverse(x)), x)

    def test_normalize_has_no_inverse(self):
        with pytest.raises(NotImplementedError):
            Activation.NORMALIZE.inverse(torch.ones(1, 4))

    def test_inverse_sigmoid_half_is_zero(self):
        assert gu.inverse_sigmoid(torch.tensor(0.5)).item() == 0.0


# =============================================================================
# Tests for the learning-rate schedule
# =============================================================================


class TestExponentialLR:
    """Tests for get_expon_lr_func."""

    def test_endpoints(self):
        sched = gu.get_expon_lr_func(1e-2, 1e-4, max_steps=100)
        assert sched(0) == pytest.approx(1e-2)
        assert sched(100) == pytest.approx(1e-4)

    def test_clamped_after_max_steps(self):
        sched = gu.get_expon_lr_func(1e-2, 1e-4, max_steps=100)
        assert sched(100) == sched(5000)

    def test_monotonic_decay(self):
        sched = gu.get_expon_lr_func(1.6e-4, 1.6e-6, max_steps=30000)
        rates = [sched(s) for s in range(0, 30001, 1000)]
        assert all(a > b for a, b in zip(rates, rates[1:]))

    def test_log_linear_midpoint(self):
        sched = gu.get_expon_lr_func(1e-2, 1e-4, max_steps=100)
        assert sched(50) == pytest.approx(1e-3)

    def test_delay_ramp(self):
        sched = gu.get_expon_lr_func(1.0, 1.0, lr_delay_steps=100, lr_delay_mult=0.01, max_steps=1000)
        assert sched(0) == pytest.approx(0.01)
        assert sched(50) == pytest.approx(0.01 + 0.99 * math.sin(0.25 * math.pi))
        assert sched(100) == pytest.approx(1.0)

    def test_negative_step_and_zero_rates(self):
        assert gu.get_expon_lr_func(1e-2, 1e-4)(-1) == 0.0
        assert gu.get_expon_lr_func(0.0, 0.0)(10) == 0.0

    @pytest.mark.parametrize("lr_init, lr_final", [(1e-3, 0.0), (0.0, 1e-3), (-1e-3, 1e-4)])
    def test_invalid_rates(self, lr_init, lr_final):
        with pytest.raises(ValueError):
            gu.get_expon_lr_func(lr_init, lr_final, max_steps=10)

    def test_invalid_max_steps(self):
        with pytest.raises(ValueError, match="max_steps"):
            gu.get_expon_lr_func(1e-2, 1e-4, max_steps=0)


# =============================================================================
# Tests for rotation and covariance helpers
# =============================================================================


class TestRotationCovariance:
    """Tests for build_rotation / build_scaling_rotation / strip_symmetric."""

    def test_identity_quaternion(self):
        q = torch.tensor([[1.0, 0.0, 0.0, 0.0]])
        torch.testing.assert_close(gu.build_rotation(q)[0], torch.eye(3))

    def test_rotation_is_orthonormal(self):
        R = gu.build_rotation(torch.randn(32, 4))
        eye = torch.eye(3).expand(32, 3, 3)
        torch.testing.assert_close(R @ R.transpose(1, 2), eye, atol=1e-5, rtol=1e-5)

    def test_rotation_about_z(self):
        half = math.pi / 4  # 90 degrees about z
        q = torch.tensor([[math.cos(half), 0.0, 0.0, math.sin(half)]])
        expected = torch.tensor([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
        torch.testing.assert_close(gu.build_rotation(q)[0], expected, atol=1e-6, rtol=1e-6)

    def test_scaling_rotation_identity(self):
        s = torch.tensor([[1.0, 2.0, 3.0]])
        q = torch.tensor([[1.0, 0.0, 0.0, 0.0]])
        torch.testing.assert_close(gu.build_scaling_rotation(s, q)[0], torch.diag(s[0]))

    def test_strip_symmetric_order(self):
        m = torch.tensor([[[1.0, 2.0, 3.0], [2.0, 4.0, 5.0], [3.0, 5.0, 6.0]]])
        torch.testing.assert_close(gu.strip_symmetric(m), torch.tensor([[1.0, 2.0, 3.0, 4.0, 5.0, 6.0]]))


# =============================================================================
# Tests for nearest-neighbour distances
# =============================================================================


class TestNearestNeighborDist:
    """Tests for mean_sq_nearest_neighbor_dist."""

    def test_grid_spacing(self):
        """Points on a unit-spaced line: interior neighbours at 1, 1, 2."""
        points = np.array([[float(i), 0.0, 0.0] for i in range(10)], dtype=np.float32)
        dist2 = gu.mean_sq_nearest_neighbor_dist(points)

        assert dist2.shape == (10,)
        assert dist2.dtype == np.float32
        assert dist2[5] == pytest.approx((1 + 1 + 4) / 3)
        assert dist2[0] == pytest.approx((1 + 4 + 9) / 3)

    def test_single_point(self):
        dist2 = gu.mean_sq_nearest_neighbor_dist(np.zeros((1, 3)))
        np.testing.assert_array_equal(dist2, [0.0])

    def test_two_points(self):
        points = np.array([[0.0, 0.0, 0.0], [0.0, 2.0, 0.0]])
        np.testing.assert_allclose(gu.mean_sq_nearest_neighbor_dist(points), [4.0, 4.0])

    def test_duplicate_points_zero(self):
        points = np.zeros((5, 3), dtype=np.float32)
        np.testing.assert_array_equal(gu.mean_sq_nearest_neighbor_dist(points), np.zeros(5))

    def test_empty(self):
        assert gu.mean_sq_nearest_neighbor_dist(np.zeros((0, 3))).shape == (0,)


# =============================================================================
# Tests for image conversion
# =============================================================================


class TestImageToTorch:
    """Tests for image_to_torch."""

    def test_channel_first_normalized(self):
        image = np.full((4, 6, 3), 255, dtype=np.uint8)
        t = gu.image_to_torch(image)

        assert t.shape == (3, 4, 6)
        assert t.dtype == torch.float32
        torch.testing.assert_close(t, torch.ones(3, 4, 6))

    def test_resize(self):
        image = np.random.randint(0, 256, (40, 80, 3), dtype=np.uint8)
        t = gu.image_to_torch(image, (20, 10))
        assert t.shape == (3, 10, 20)

    def test_grayscale(self):
        image = np.zeros((5, 7), dtype=np.uint8)
        assert gu.image_to_torch(image).shape == (1, 5, 7)

    def test_malformed(self):
        with pytest.raises(ValueError):
            gu.image_to_torch(np.zeros((0, 4, 3), dtype=np.uint8))


# =============================================================================
# Tests for SH helpers
# =============================================================================


class TestSH:
    def test_white_to_sh(self):
        assert RGB2SH(1.0) == pytest.approx(0.5 / C0)

    def test_roundtrip(self):
        rgb = np.random.rand(10, 3).astype(np.float32)
        np.testing.assert_allclose(SH2RGB(RGB2SH(rgb)), rgb, rtol=1e-5, atol=1e-6)

    @pytest.mark.parametrize("degree,count", [(0, 1), (1, 4), (2, 9), (3, 16)])
    def test_coefficient_count(self, degree, count):
        assert sh_coefficient_count(degree) == count
