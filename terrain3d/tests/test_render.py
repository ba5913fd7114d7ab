"""Tests for the off-screen renderer."""

import numpy as np
import pytest

from terrain3d import CameraPose, RasterGrid, assemble_scene, build_mesh, build_texture, render
from terrain3d.render import shade_faces

AMBIENT = 0x40 / 255 * 0.5


def make_scene(dem, color=255):
    dem = np.asarray(dem, dtype=np.float64)
    H, W = dem.shape
    mesh = build_mesh(RasterGrid.from_array(dem))
    texture = build_texture(RasterGrid.from_array(np.full((H, W, 4), color, dtype=np.uint8)))
    return assemble_scene(mesh, texture)


@pytest.fixture
def flat_scene():
    return make_scene(np.zeros((5, 5)))


class TestShadeFaces:
    """Tests for visibility and shading of individual faces."""

    def test_lit_from_above(self, flat_scene):
        camera = CameraPose(position=(0.0, 60.0, 1.0))
        polygons, colors, depths = shade_faces(flat_scene, camera)
        assert len(polygons) == flat_scene.terrain.mesh.triangles.shape[0]
        # Up-facing normal against a sun at (1, 1, 1)
        np.testing.assert_allclose(colors, AMBIENT + 1 / np.sqrt(3), atol=1e-6)
        assert np.all(depths > 0)

    def test_double_sided_seen_from_below(self, flat_scene):
        camera = CameraPose(position=(0.0, -60.0, 1.0))
        polygons, colors, _ = shade_faces(flat_scene, camera)
        assert len(polygons) == flat_scene.terrain.mesh.triangles.shape[0]
        # The flipped normal faces away from the sun: ambient only
        np.testing.assert_allclose(colors, AMBIENT, atol=1e-6)

    def test_front_side_culled_from_below(self, flat_scene):
        flat_scene.terrain.material.side = 'front'
        camera = CameraPose(position=(0.0, -60.0, 1.0))
        polygons, _, _ = shade_faces(flat_scene, camera)
        assert len(polygons) == 0

    def test_faces_behind_camera_dropped(self, flat_scene):
        total = flat_scene.terrain.mesh.triangles.shape[0]
        camera = CameraPose(position=(0.0, 5.0, 30.0))
        polygons, _, _ = shade_faces(flat_scene, camera)
        assert 0 < len(polygons) < total

    def test_texture_tints_faces(self):
        scene = make_scene(np.zeros((3, 3)), color=0)
        camera = CameraPose(position=(0.0, 60.0, 1.0))
        _, colors, _ = shade_faces(scene, camera)
        np.testing.assert_allclose(colors, 0.0)

    def test_single_row_has_no_faces(self):
        scene = make_scene(np.zeros((1, 4)))
        polygons, colors, depths = shade_faces(scene, CameraPose())
        assert polygons.shape == (0, 3, 2)


class TestRender:
    """Tests for whole-frame rendering."""

    def test_no_scene_is_black(self):
        img = render(None, CameraPose(), width=40, height=30)
        assert img.shape == (30, 40, 3)
        assert np.all(img == 0)

    def test_terrain_visible_at_center(self):
        hill = np.fromfunction(lambda y, x: np.exp(-((x - 5) ** 2 + (y - 5) ** 2) / 10), (11, 11))
        img = render(make_scene(hill), CameraPose(aspect=80 / 60), width=80, height=60)
        assert img.shape == (60, 80, 3)
        assert img.min() >= 0.0
        assert img.max() <= 1.0
        assert img[30, 40].sum() > 0

    def test_background_color(self, flat_scene):
        flat_scene.background = 0xFF0000
        img = render(flat_scene, CameraPose(aspect=80 / 60), width=80, height=60)
        # The top rows look past the far edge of the terrain
        np.testing.assert_allclose(img[0, 0], [1.0, 0.0, 0.0])

    def test_writes_png(self, flat_scene, tmp_path):
        from PIL import Image

        path = tmp_path / 'frame.png'
        render(flat_scene, CameraPose(), width=64, height=48, output_path=str(path))
        with Image.open(path) as img:
            assert img.size == (64, 48)
            assert img.mode == 'RGB'
