"""Tests for the orbit camera."""

import numpy as np
import pytest

from terrain3d import CameraPose


class TestCameraPose:
    """Tests for CameraPose navigation."""

    def test_default_pose(self):
        camera = CameraPose()
        np.testing.assert_allclose(camera.position, [0, 50, 50])
        np.testing.assert_allclose(camera.direction(), [0, -1, -1] / np.sqrt(2))

    def test_zero_rotation_is_identity(self):
        camera = CameraPose(position=(3.0, 40.0, 20.0))
        before = camera.position.copy()
        camera.rotate(0, 0)
        np.testing.assert_allclose(camera.position, before)

    def test_rotation_keeps_distance(self):
        camera = CameraPose()
        d = camera.distance()
        camera.rotate(37, -12)
        assert camera.distance() == pytest.approx(d)

    def test_yaw_around_up_axis(self):
        camera = CameraPose(position=(0.0, 0.0, 10.0))
        # -dx * speed = -pi/2 about +Y takes +Z to -X
        camera.rotate(np.pi / 2, 0, speed=1.0)
        np.testing.assert_allclose(camera.position, [-10.0, 0.0, 0.0], atol=1e-9)

    def test_pitch_skipped_when_looking_straight_down(self):
        camera = CameraPose(position=(0.0, 10.0, 0.0))
        camera.rotate(0, 50)
        np.testing.assert_allclose(camera.position, [0.0, 10.0, 0.0])

    def test_move_forward_and_back(self):
        camera = CameraPose()
        start = camera.position.copy()
        camera.move('forward', speed=2.0)
        assert camera.distance() == pytest.approx(np.linalg.norm(start) - 2.0)
        camera.move('backward', speed=2.0)
        np.testing.assert_allclose(camera.position, start)

    def test_move_sideways_is_horizontal(self):
        camera = CameraPose()
        camera.move('left', speed=2.0)
        # Looking toward -Z, left is -X
        np.testing.assert_allclose(camera.position, [-2.0, 50.0, 50.0], atol=1e-9)
        camera = CameraPose()
        camera.move('right', speed=4.0)
        np.testing.assert_allclose(camera.position, [4.0, 50.0, 50.0], atol=1e-9)

    def test_unknown_direction(self):
        with pytest.raises(ValueError):
            CameraPose().move('up')

    def test_wheel_zoom_factor(self):
        camera = CameraPose()
        d = camera.distance()
        camera.zoom(100)
        assert camera.distance() == pytest.approx(d * 1.01)
        camera.zoom(-100)
        assert camera.distance() == pytest.approx(d * 1.01 * 0.99)

    def test_zoom_never_passes_target(self):
        camera = CameraPose()
        camera.zoom(-1e6)
        np.testing.assert_allclose(camera.position, [0, 50, 50])

    def test_reset(self):
        camera = CameraPose()
        camera.rotate(10, 10)
        camera.move('left')
        camera.zoom(300)
        camera.reset()
        np.testing.assert_allclose(camera.position, [0, 50, 50])
        np.testing.assert_allclose(camera.target, [0, 0, 0])

    def test_view_matrix_maps_target_ahead(self):
        camera = CameraPose()
        target = camera.view_matrix() @ np.array([0.0, 0.0, 0.0, 1.0])
        np.testing.assert_allclose(target[:2], [0.0, 0.0], atol=1e-9)
        assert target[2] == pytest.approx(-camera.distance())

    def test_projection_depth_range(self):
        camera = CameraPose(near=0.1, far=1000.0)
        proj = camera.projection_matrix()
        near = proj @ np.array([0.0, 0.0, -0.1, 1.0])
        far = proj @ np.array([0.0, 0.0, -1000.0, 1.0])
        assert near[2] / near[3] == pytest.approx(-1.0)
        assert far[2] / far[3] == pytest.approx(1.0)
