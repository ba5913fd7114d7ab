"""Tests for scene assembly."""

import numpy as np
import pytest

from terrain3d import (
    AmbientLight,
    DirectionalLight,
    RasterGrid,
    assemble_scene,
    build_mesh,
    build_texture,
)
from terrain3d.scene import hex_to_rgb


@pytest.fixture
def scene():
    mesh = build_mesh(RasterGrid.from_array(np.array([[0.0, 1.0], [2.0, 3.0]])))
    texture = build_texture(RasterGrid.from_array(np.full((2, 2, 4), 200, dtype=np.uint8)))
    return assemble_scene(mesh, texture)


class TestAssembleScene:
    """Tests for assemble_scene."""

    def test_material_is_double_sided(self, scene):
        assert scene.terrain.material.double_sided
        assert scene.terrain.material.map.width == 2

    def test_default_lights(self, scene):
        sun, = scene.directional_lights
        ambient, = scene.ambient_lights
        assert sun.color == 0xFFFFFF
        assert sun.intensity == 1.0
        assert sun.position == (1.0, 1.0, 1.0)
        assert ambient.color == 0x404040
        assert ambient.intensity == 0.5

    def test_elevation_becomes_world_up(self, scene):
        world = scene.terrain.world_positions()
        mesh = scene.terrain.mesh
        np.testing.assert_allclose(world[:, 1], mesh.positions[:, 2], atol=1e-6)
        # The northern edge (mesh +Y) is pushed away from a camera at +Z
        np.testing.assert_allclose(world[:, 2], -mesh.positions[:, 1], atol=1e-6)

    def test_normals_point_up_for_flat_terrain(self):
        mesh = build_mesh(RasterGrid.from_array(np.zeros((3, 3))))
        texture = build_texture(RasterGrid.from_array(np.zeros((3, 3, 4), dtype=np.uint8)))
        normals = assemble_scene(mesh, texture).terrain.world_normals()
        np.testing.assert_allclose(normals, np.tile([0, 1, 0], (9, 1)), atol=1e-6)

    def test_custom_lights(self, scene):
        mesh, texture = scene.terrain.mesh, scene.terrain.material.map
        custom = assemble_scene(mesh, texture,
                                sun=DirectionalLight(intensity=0.5),
                                ambient=AmbientLight(color=0xFFFFFF))
        assert custom.directional_lights[0].intensity == 0.5
        assert custom.ambient_lights[0].color == 0xFFFFFF


class TestLights:
    """Tests for light helpers."""

    def test_hex_to_rgb(self):
        assert hex_to_rgb(0xFF8000) == (1.0, pytest.approx(128 / 255), 0.0)

    def test_radiance(self):
        np.testing.assert_allclose(AmbientLight().radiance(), [0x40 / 255 * 0.5] * 3)

    def test_direction_is_unit(self):
        np.testing.assert_allclose(np.linalg.norm(DirectionalLight().direction()), 1.0)
