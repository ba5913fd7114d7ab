"""Tests for terrain mesh construction."""

import numpy as np
import pytest

from terrain3d import RasterGrid, build_mesh
from terrain3d.mesh import HEIGHT_SCALE, TERRAIN_EXTENT, normalize_heights


class TestNormalizeHeights:
    """Tests for elevation normalization."""

    def test_boundaries(self):
        z = normalize_heights(np.array([10.0, 15.0, 20.0]), 10.0, 20.0)
        np.testing.assert_allclose(z, [0.0, HEIGHT_SCALE / 2, HEIGHT_SCALE])

    def test_flat_maps_to_zero(self):
        z = normalize_heights(np.full((3, 3), 42.0), 42.0, 42.0)
        assert np.all(z == 0)
        assert not np.isnan(z).any()

    def test_custom_scale(self):
        z = normalize_heights(np.array([0.0, 1.0]), 0.0, 1.0, height_scale=5.0)
        np.testing.assert_allclose(z, [0.0, 5.0])


class TestBuildMesh:
    """Tests for build_mesh."""

    def test_counts(self, dem_array):
        mesh = build_mesh(RasterGrid.from_array(dem_array))
        H, W = dem_array.shape
        assert mesh.vertex_count == W * H
        assert mesh.cell_count == (W - 1) * (H - 1)
        assert mesh.triangles.shape == ((W - 1) * (H - 1) * 2, 3)
        assert mesh.triangles.max() < mesh.vertex_count

    def test_heights_span_scale(self, dem_array):
        mesh = build_mesh(RasterGrid.from_array(dem_array))
        assert mesh.heights.min() == pytest.approx(0.0)
        assert mesh.heights.max() == pytest.approx(HEIGHT_SCALE)
        # Highest vertex sits where the DEM peaks
        assert np.unravel_index(mesh.heights.argmax(), mesh.heights.shape) == \
            np.unravel_index(dem_array.argmax(), dem_array.shape)

    def test_flat_four_by_four(self):
        mesh = build_mesh(RasterGrid.from_array(np.full((4, 4), 5.0)))
        assert mesh.vertex_count == 16
        assert mesh.cell_count == 9
        assert np.all(mesh.positions[:, 2] == 0)
        # Flat terrain has upward normals
        np.testing.assert_allclose(mesh.normals, np.tile([0, 0, 1], (16, 1)), atol=1e-6)

    def test_footprint_and_uvs(self):
        mesh = build_mesh(RasterGrid.from_array(np.zeros((3, 5))))
        half = TERRAIN_EXTENT / 2
        # North-west corner first
        np.testing.assert_allclose(mesh.positions[0, :2], [-half, half])
        np.testing.assert_allclose(mesh.positions[-1, :2], [half, -half])
        np.testing.assert_allclose(mesh.uvs[0], [0.0, 1.0])
        np.testing.assert_allclose(mesh.uvs[-1], [1.0, 0.0])

    def test_normals_unit_length(self, dem_array):
        mesh = build_mesh(RasterGrid.from_array(dem_array))
        np.testing.assert_allclose(np.linalg.norm(mesh.normals, axis=1), 1.0, atol=1e-5)

    def test_single_row(self):
        mesh = build_mesh(RasterGrid.from_array(np.array([[1.0, 2.0, 3.0]])))
        assert mesh.vertex_count == 3
        assert mesh.cell_count == 0
        assert mesh.triangles.shape == (0, 3)
        np.testing.assert_allclose(mesh.positions[:, 1], 0.0)

    def test_multiband_uses_first_band(self):
        data = np.stack([np.arange(4.0).reshape(2, 2), np.zeros((2, 2))], axis=-1)
        mesh = build_mesh(RasterGrid.from_array(data))
        assert mesh.heights.max() == pytest.approx(HEIGHT_SCALE)

    def test_dataarray_input(self, dem_array):
        xr = pytest.importorskip('xarray')
        da = xr.DataArray(dem_array, dims=['y', 'x'])
        mesh = build_mesh(da)
        assert mesh.vertex_count == dem_array.size

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            build_mesh(np.zeros((3, 3)))
