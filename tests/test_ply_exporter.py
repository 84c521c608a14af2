"""
Tests for PLY I/O.

Tests that:
1. Stored Gaussian parameters survive a save/load round trip
2. The file uses the standard 3DGS property layout
3. Point clouds can be written and read back for initialization
"""

import numpy as np
import pytest
import torch
from plyfile import PlyData

from gaussian_scene.config import OptimizationParams
from gaussian_scene.export.ply_exporter import (
    construct_list_of_attributes,
    load_gaussian_ply,
    save_gaussian_ply,
    validate_gaussian_attributes,
)
from gaussian_scene.scene.gaussian_model import GaussianModel
from gaussian_scene.scene.point_cloud import fetch_ply, store_ply

from conftest import make_point_cloud


def create_test_gaussians(n=50, sh_degree=3):
    """Create random stored Gaussian parameters."""
    rng = np.random.default_rng(42)
    num_rest = (sh_degree + 1) ** 2 - 1
    return {
        "xyz": rng.standard_normal((n, 3)).astype(np.float32),
        "features_dc": rng.standard_normal((n, 1, 3)).astype(np.float32),
        "features_rest": rng.standard_normal((n, num_rest, 3)).astype(np.float32),
        "opacity": rng.standard_normal((n, 1)).astype(np.float32),
        "scaling": rng.standard_normal((n, 3)).astype(np.float32) - 3.0,
        "rotation": rng.standard_normal((n, 4)).astype(np.float32),
    }


class TestAttributeList:
    """Tests for construct_list_of_attributes."""

    def test_degree_3_layout(self):
        names = construct_list_of_attributes(3, 45)

        assert names[:9] == ["x", "y", "z", "nx", "ny", "nz", "f_dc_0", "f_dc_1", "f_dc_2"]
        assert names[9] == "f_rest_0"
        assert names[53] == "f_rest_44"
        assert names[54:] == ["opacity", "scale_0", "scale_1", "scale_2", "rot_0", "rot_1", "rot_2", "rot_3"]

    def test_degree_0_layout(self):
        names = construct_list_of_attributes(3, 0)
        assert len(names) == 17
        assert not any(n.startswith("f_rest_") for n in names)

    def test_model_attribute_list(self):
        model = GaussianModel(sh_degree=1, device="cpu")
        model.create_from_pcd(make_point_cloud(5), 1.0)
        assert model.construct_list_of_attributes() == construct_list_of_attributes(3, 9)


class TestSaveLoad:
    """Tests for save_gaussian_ply / load_gaussian_ply."""

    @pytest.mark.parametrize("sh_degree", [0, 3])
    def test_roundtrip(self, tmp_path, sh_degree):
        data = create_test_gaussians(sh_degree=sh_degree)
        path = tmp_path / "point_cloud.ply"

        save_gaussian_ply(path, **data)
        loaded = load_gaussian_ply(path)

        for key, value in data.items():
            assert loaded[key].shape == value.shape, key
            np.testing.assert_allclose(loaded[key], value, rtol=1e-6, err_msg=key)

    def test_rest_is_channel_major(self, tmp_path):
        data = create_test_gaussians(n=2, sh_degree=1)
        path = tmp_path / "point_cloud.ply"
        save_gaussian_ply(path, **data)

        vertex = PlyData.read(str(path))["vertex"]
        # f_rest_0..2 are the three red coefficients of the first Gaussian
        red = [vertex[f"f_rest_{i}"][0] for i in range(3)]
        np.testing.assert_allclose(red, data["features_rest"][0, :, 0], rtol=1e-6)

    def test_creates_parent_dirs(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "point_cloud.ply"
        save_gaussian_ply(path, **create_test_gaussians(n=3, sh_degree=0))
        assert path.exists()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_gaussian_ply(tmp_path / "missing.ply")

    def test_validation(self):
        data = create_test_gaussians(n=10)
        assert validate_gaussian_attributes(**data) == 10

        data["rotation"] = data["rotation"][:, :3]
        with pytest.raises(ValueError, match="rotation"):
            validate_gaussian_attributes(**data)

    def test_row_mismatch(self):
        data = create_test_gaussians(n=10)
        data["opacity"] = data["opacity"][:5]
        with pytest.raises(ValueError, match="opacity"):
            validate_gaussian_attributes(**data)


class TestModelPly:
    """Tests for GaussianModel.save_ply / load_ply."""

    def test_model_roundtrip(self, tmp_path):
        model = GaussianModel(sh_degree=3, device="cpu")
        model.create_from_pcd(make_point_cloud(40), spatial_lr_scale=1.0)
        with torch.no_grad():
            model._features_rest.normal_()
            model._rotation.normal_()
        path = tmp_path / "iteration_0" / "point_cloud.ply"

        model.save_ply(path)

        restored = GaussianModel(sh_degree=3, device="cpu")
        assert restored.load_ply(path) == 40

        assert restored.active_sh_degree == 3
        assert restored.max_radii2D.shape == (40,)
        for name in ("_xyz", "_features_dc", "_features_rest", "_opacity", "_scaling", "_rotation"):
            original = getattr(model, name).detach()
            loaded = getattr(restored, name)
            assert loaded.requires_grad, name
            torch.testing.assert_close(loaded.detach(), original, msg=name)

    def test_degree_mismatch(self, tmp_path):
        model = GaussianModel(sh_degree=3, device="cpu")
        model.create_from_pcd(make_point_cloud(5), 1.0)
        path = tmp_path / "point_cloud.ply"
        model.save_ply(path)

        with pytest.raises(ValueError, match="expected 3"):
            GaussianModel(sh_degree=1, device="cpu").load_ply(path)

    def test_load_into_trained_model_rejected(self, tmp_path):
        source = GaussianModel(sh_degree=0, device="cpu")
        source.create_from_pcd(make_point_cloud(7), 1.0)
        path = tmp_path / "point_cloud.ply"
        source.save_ply(path)

        model = GaussianModel(sh_degree=0, device="cpu")
        model.create_from_pcd(make_point_cloud(20), 1.0)
        model.training_setup(OptimizationParams())

        with pytest.raises(RuntimeError, match="load_ply"):
            model.load_ply(path)

        assert model.num_gaussians == 20
        groups = {g["name"]: g for g in model.optimizer.param_groups}
        assert groups["xyz"]["params"][0] is model._xyz

        screenspace = torch.zeros((20, 3), requires_grad=True)
        screenspace.grad = torch.ones((20, 3))
        model.add_densification_stats(screenspace, torch.ones(20, dtype=torch.bool))
        assert torch.all(model.denom == 1.0)

    def test_save_empty_model(self, tmp_path):
        with pytest.raises(RuntimeError):
            GaussianModel(sh_degree=0, device="cpu").save_ply(tmp_path / "empty.ply")


class TestPointCloudPly:
    """Tests for store_ply / fetch_ply."""

    def test_roundtrip(self, tmp_path):
        pcd = make_point_cloud(25)
        rgb = (pcd.colors * 255).astype(np.uint8)
        path = tmp_path / "points3D.ply"

        store_ply(path, pcd.points, rgb)
        loaded = fetch_ply(path)

        np.testing.assert_allclose(loaded.points, pcd.points, rtol=1e-6)
        np.testing.assert_allclose(loaded.colors, rgb / 255.0)
        np.testing.assert_array_equal(loaded.normals, np.zeros((25, 3)))

    def test_fetched_cloud_initializes_model(self, tmp_path):
        pcd = make_point_cloud(12)
        path = tmp_path / "points3D.ply"
        store_ply(path, pcd.points, (pcd.colors * 255).astype(np.uint8))

        model = GaussianModel(sh_degree=0, device="cpu")
        assert model.create_from_pcd(fetch_ply(path), spatial_lr_scale=1.0) == 12

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            fetch_ply(tmp_path / "missing.ply")
