"""Orbit camera pose with closed-form navigation.

The camera orbits a fixed look-at target (the origin by default). Its
orientation is never stored: it is recomputed from the position and the
target whenever the camera is used, so every operation here only moves the
position.
"""

import numpy as np
from scipy.spatial.transform import Rotation as R

DEFAULT_POSITION = (0.0, 50.0, 50.0)
DEFAULT_TARGET = (0.0, 0.0, 0.0)
WORLD_UP = (0.0, 1.0, 0.0)

MOVE_SPEED = 2.0
ZOOM_SPEED = 0.1
ROTATION_SPEED = 0.01
# Wheel deltas are in pixels; one notch is typically 100.
WHEEL_SCALE = 0.001

MOVE_DIRECTIONS = ('forward', 'backward', 'left', 'right')


def _compute_camera_basis(camera_position, look_at, up):
    """Compute camera basis vectors (forward, right, up) from position and target.

    Parameters
    ----------
    camera_position : array-like
        Camera position (x, y, z).
    look_at : array-like
        Target point to look at (x, y, z).
    up : array-like
        World up vector.

    Returns
    -------
    tuple of np.ndarray
        (forward, right, up) unit vectors.
    """
    camera_pos = np.asarray(camera_position, dtype=np.float64)
    target = np.asarray(look_at, dtype=np.float64)
    world_up = np.asarray(up, dtype=np.float64)

    forward = target - camera_pos
    forward = forward / np.linalg.norm(forward)

    right = np.cross(forward, world_up)
    right_norm = np.linalg.norm(right)

    # Handle case where forward is parallel to up vector
    if right_norm < 1e-9:
        alt_up = np.array([0.0, 0.0, -1.0])
        right = np.cross(forward, alt_up)
        right_norm = np.linalg.norm(right)
        if right_norm < 1e-9:
            alt_up = np.array([1.0, 0.0, 0.0])
            right = np.cross(forward, alt_up)
            right_norm = np.linalg.norm(right)

    right = right / right_norm

    cam_up = np.cross(right, forward)
    cam_up = cam_up / np.linalg.norm(cam_up)

    return forward, right, cam_up


class CameraPose:
    """Perspective camera looking at a fixed target.

    Parameters
    ----------
    position : tuple of float
        Initial and default position.
    target : tuple of float
        Look-at target. Default is the origin.
    fov : float
        Vertical field of view in degrees.
    aspect : float
        Viewport width / height.
    near, far : float
        Clipping plane distances.
    """

    def __init__(self, position=DEFAULT_POSITION, target=DEFAULT_TARGET,
                 fov=75.0, aspect=4.0 / 3.0, near=0.1, far=1000.0):
        self.default_position = np.array(position, dtype=np.float64)
        self.default_target = np.array(target, dtype=np.float64)
        self.position = self.default_position.copy()
        self.target = self.default_target.copy()
        self.up = np.array(WORLD_UP, dtype=np.float64)
        self.fov = float(fov)
        self.aspect = float(aspect)
        self.near = float(near)
        self.far = float(far)

    def __repr__(self):
        x, y, z = self.position
        return f"CameraPose(position=({x:.3f}, {y:.3f}, {z:.3f}))"

    def direction(self):
        """Unit vector from the camera toward its target."""
        d = self.target - self.position
        norm = np.linalg.norm(d)
        if norm < 1e-12:
            return np.array([0.0, 0.0, -1.0])
        return d / norm

    def distance(self):
        """Distance from the camera to its target."""
        return float(np.linalg.norm(self.position - self.target))

    def rotate(self, dx, dy, speed=ROTATION_SPEED):
        """Orbit the camera by a pointer delta.

        Yaw ``-dx * speed`` about the world up axis, then pitch
        ``-dy * speed`` about the camera's right vector (``up x direction``,
        taken before the yaw). Looking straight along the up axis leaves
        the right vector undefined and the pitch is skipped.
        """
        direction = self.direction()
        offset = self.position - self.target

        yaw = R.from_rotvec(self.up * (-dx * speed))
        offset = yaw.apply(offset)

        right = np.cross(self.up, direction)
        right_norm = np.linalg.norm(right)
        if right_norm > 1e-9:
            pitch = R.from_rotvec(right / right_norm * (-dy * speed))
            offset = pitch.apply(offset)

        self.position = self.target + offset

    def move(self, direction, speed=MOVE_SPEED):
        """Move one step relative to the current view.

        ``forward``/``backward`` follow the view direction; ``left``/``right``
        follow the horizontal vector perpendicular to it.
        """
        d = self.direction()
        if direction == 'forward':
            delta = d * speed
        elif direction == 'backward':
            delta = -d * speed
        elif direction in ('left', 'right'):
            side = np.cross(self.up, d) if direction == 'left' else np.cross(d, self.up)
            norm = np.linalg.norm(side)
            delta = side / norm * speed if norm > 1e-9 else np.zeros(3)
        else:
            raise ValueError(
                f"Unknown direction {direction!r}; use one of {MOVE_DIRECTIONS}"
            )
        self.position = self.position + delta

    def zoom(self, delta_y, zoom_speed=ZOOM_SPEED):
        """Scale the distance to the target by ``1 + delta_y * zoom_speed * 0.001``."""
        factor = 1.0 + delta_y * zoom_speed * WHEEL_SCALE
        # A non-positive factor would pass through the target.
        if factor <= 0:
            return
        self.position = self.target + (self.position - self.target) * factor

    def reset(self):
        """Return to the default position and target."""
        self.position = self.default_position.copy()
        self.target = self.default_target.copy()

    def basis(self):
        """Return the (forward, right, up) camera basis."""
        return _compute_camera_basis(self.position, self.target, self.up)

    def view_matrix(self):
        """4x4 world-to-camera matrix (camera looks down -Z)."""
        forward, right, cam_up = self.basis()
        view = np.eye(4)
        view[0, :3] = right
        view[1, :3] = cam_up
        view[2, :3] = -forward
        view[:3, 3] = -view[:3, :3] @ self.position
        return view

    def projection_matrix(self):
        """4x4 OpenGL-style perspective projection matrix."""
        f = 1.0 / np.tan(np.radians(self.fov) / 2.0)
        near, far = self.near, self.far
        proj = np.zeros((4, 4))
        proj[0, 0] = f / self.aspect
        proj[1, 1] = f
        proj[2, 2] = (far + near) / (near - far)
        proj[2, 3] = 2.0 * far * near / (near - far)
        proj[3, 2] = -1.0
        return proj
