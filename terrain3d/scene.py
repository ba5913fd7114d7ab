"""Scene composition: textured terrain, material and lights."""

import math
from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np
from scipy.spatial.transform import Rotation as R

from .mesh import TerrainMesh
from .texture import SurfaceTexture


def hex_to_rgb(color):
    """Convert a ``0xRRGGBB`` integer to an (r, g, b) tuple in [0, 1]."""
    return (
        ((color >> 16) & 0xFF) / 255.0,
        ((color >> 8) & 0xFF) / 255.0,
        (color & 0xFF) / 255.0,
    )


@dataclass
class Material:
    """Phong-style surface material with a diffuse texture map.

    ``side`` is ``'front'``, ``'back'`` or ``'double'``.
    """
    map: SurfaceTexture
    side: str = 'double'
    shininess: float = 30.0

    @property
    def double_sided(self):
        return self.side == 'double'


@dataclass
class DirectionalLight:
    """Light shining from ``position`` toward the origin, like a distant sun."""
    color: int = 0xFFFFFF
    intensity: float = 1.0
    position: Tuple[float, float, float] = (1.0, 1.0, 1.0)

    def direction(self):
        """Unit vector from the scene toward the light."""
        pos = np.asarray(self.position, dtype=np.float64)
        return pos / np.linalg.norm(pos)

    def radiance(self):
        return np.asarray(hex_to_rgb(self.color)) * self.intensity


@dataclass
class AmbientLight:
    """Uniform light that keeps unlit faces from rendering pure black."""
    color: int = 0x404040
    intensity: float = 0.5

    def radiance(self):
        return np.asarray(hex_to_rgb(self.color)) * self.intensity


@dataclass
class TerrainObject:
    """A terrain mesh placed in the world with a material.

    ``rotation`` holds XYZ Euler angles in radians.
    """
    mesh: TerrainMesh
    material: Material
    rotation: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    def rotation_matrix(self):
        return R.from_euler('XYZ', self.rotation).as_matrix()

    def world_positions(self):
        """Vertex positions in world space, ``(N, 3)`` float64."""
        return self.mesh.positions.astype(np.float64) @ self.rotation_matrix().T

    def world_normals(self):
        """Vertex normals in world space, ``(N, 3)`` float64."""
        return self.mesh.normals.astype(np.float64) @ self.rotation_matrix().T


@dataclass
class Scene:
    """Renderable scene: objects, lights and a background color."""
    objects: List[TerrainObject] = field(default_factory=list)
    lights: list = field(default_factory=list)
    background: int = 0x000000

    @property
    def terrain(self):
        return self.objects[0] if self.objects else None

    @property
    def directional_lights(self):
        return [light for light in self.lights if isinstance(light, DirectionalLight)]

    @property
    def ambient_lights(self):
        return [light for light in self.lights if isinstance(light, AmbientLight)]


def assemble_scene(mesh, texture, sun=None, ambient=None, background=0x000000):
    """Combine a terrain mesh and its texture into a lit scene.

    The texture becomes the diffuse map of a double-sided material, so the
    terrain stays visible from below. The mesh is authored in the XY plane,
    so it is rotated -90 degrees about X to make elevation the world up (Y)
    axis.

    Parameters
    ----------
    mesh : TerrainMesh
        Terrain geometry.
    texture : SurfaceTexture
        Orthophoto texture.
    sun : DirectionalLight, optional
        Defaults to a white light at (1, 1, 1) with intensity 1.
    ambient : AmbientLight, optional
        Defaults to 0x404040 at intensity 0.5.
    background : int
        Background color as 0xRRGGBB.

    Returns
    -------
    Scene
    """
    material = Material(map=texture, side='double')
    terrain = TerrainObject(mesh=mesh, material=material,
                            rotation=(-math.pi / 2, 0.0, 0.0))
    lights = [
        sun if sun is not None else DirectionalLight(),
        ambient if ambient is not None else AmbientLight(),
    ]
    return Scene(objects=[terrain], lights=lights, background=background)
