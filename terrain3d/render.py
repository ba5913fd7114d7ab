"""Off-screen rendering of a terrain scene.

Triangles are projected through the camera, shaded with Lambert diffuse
lighting plus ambient, and painted far-to-near as filled polygons on a
matplotlib Agg canvas. This is a painter's-algorithm rasterizer, not a
z-buffer: it is meant for previews and the interactive viewer at modest
mesh resolutions (see ``RasterGrid.subsample``).
"""

from typing import Optional

import numpy as np
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.collections import PolyCollection
from matplotlib.figure import Figure

from .scene import hex_to_rgb
from .texture import _lazy_import_pil


def _project(points, camera, width, height):
    """Project world points to pixel coordinates.

    Returns
    -------
    tuple of np.ndarray
        ``(xy, depth)``: ``(N, 2)`` pixel coordinates (row 0 at the top)
        and ``(N,)`` distance along the view axis.
    """
    homo = np.hstack([points, np.ones((points.shape[0], 1))])
    view = homo @ camera.view_matrix().T
    clip = view @ camera.projection_matrix().T

    depth = -view[:, 2]
    w = clip[:, 3]
    safe_w = np.where(np.abs(w) < 1e-12, 1e-12, w)
    ndc_x = clip[:, 0] / safe_w
    ndc_y = clip[:, 1] / safe_w

    xy = np.empty((points.shape[0], 2))
    xy[:, 0] = (ndc_x + 1.0) * 0.5 * width
    xy[:, 1] = (1.0 - ndc_y) * 0.5 * height
    return xy, depth


def _face_normals(tri_pos):
    """Unit face normals for ``(M, 3, 3)`` triangle vertex positions."""
    n = np.cross(tri_pos[:, 1] - tri_pos[:, 0], tri_pos[:, 2] - tri_pos[:, 0])
    lengths = np.linalg.norm(n, axis=1, keepdims=True)
    return n / np.where(lengths < 1e-12, 1.0, lengths)


def shade_faces(scene, camera):
    """Compute visible faces, their screen polygons, colors and depths.

    Parameters
    ----------
    scene : Scene
    camera : CameraPose

    Returns
    -------
    tuple
        ``(polygons, colors, depths)``: ``(K, 3, 2)`` screen polygons in
        unit coordinates (``[0, 1]`` across the viewport, y down), ``(K, 3)``
        RGB colors and ``(K,)`` mean view depths.
    """
    terrain = scene.terrain
    mesh = terrain.mesh
    if mesh.triangles.shape[0] == 0:
        return np.empty((0, 3, 2)), np.empty((0, 3)), np.empty(0)

    world = terrain.world_positions()
    tris = mesh.triangles
    tri_pos = world[tris]
    centroids = tri_pos.mean(axis=1)

    normals = _face_normals(tri_pos)
    to_camera = camera.position[None, :] - centroids
    facing = np.einsum('ij,ij->i', normals, to_camera) >= 0

    material = terrain.material
    if material.double_sided:
        normals = np.where(facing[:, None], normals, -normals)
        keep = np.ones(len(tris), dtype=bool)
    elif material.side == 'back':
        normals = -normals
        keep = ~facing
    else:
        keep = facing

    # Lighting
    light = np.zeros((len(tris), 3))
    for ambient in scene.ambient_lights:
        light += ambient.radiance()[None, :]
    for sun in scene.directional_lights:
        lambert = np.clip(normals @ sun.direction(), 0.0, None)
        light += lambert[:, None] * sun.radiance()[None, :]

    uv = mesh.uvs[tris].astype(np.float64).mean(axis=1)
    albedo = material.map.sample(uv[:, 0], uv[:, 1])[:, :3] / 255.0
    colors = np.clip(albedo * light, 0.0, 1.0)

    xy, depth = _project(world, camera, 1.0, 1.0)
    tri_depth = depth[tris]
    # Faces touching the near plane would project through infinity
    keep &= np.all(tri_depth > camera.near, axis=1)
    keep &= np.all(tri_depth < camera.far, axis=1)

    polygons = xy[tris][keep]
    return polygons, colors[keep], tri_depth[keep].mean(axis=1)


def render(scene, camera, width: int = 800, height: int = 600,
           output_path: Optional[str] = None):
    """Render a scene from a camera pose into an RGB image.

    Parameters
    ----------
    scene : Scene or None
        Scene to draw. ``None`` (terrain not loaded yet) gives a black frame.
    camera : CameraPose
        Viewpoint. Its aspect ratio is used as-is for the projection.
    width, height : int
        Output size in pixels.
    output_path : str, optional
        If given, the frame is also saved as an image file via Pillow.

    Returns
    -------
    numpy.ndarray
        ``(height, width, 3)`` float array in ``[0, 1]``.
    """
    if scene is None:
        img = np.zeros((height, width, 3))
    else:
        background = hex_to_rgb(scene.background)

        fig = Figure(figsize=(width / 100, height / 100), dpi=100)
        canvas = FigureCanvasAgg(fig)
        fig.patch.set_facecolor(background)
        ax = fig.add_axes([0, 0, 1, 1])
        ax.set_facecolor(background)
        ax.set_xlim(0, width)
        ax.set_ylim(height, 0)
        ax.axis('off')

        polygons, colors, depths = shade_faces(scene, camera)
        if len(polygons):
            order = np.argsort(-depths, kind='stable')
            polygons = polygons[order] * np.array([width, height])
            collection = PolyCollection(
                polygons, facecolors=colors[order], edgecolors=colors[order],
                linewidths=0.3, antialiased=False,
            )
            ax.add_collection(collection)

        canvas.draw()
        buf = np.asarray(canvas.buffer_rgba())
        img = buf[:height, :width, :3].astype(np.float64) / 255.0

    if output_path is not None:
        Image = _lazy_import_pil()
        Image.fromarray(np.round(img * 255).astype(np.uint8)).save(output_path)
        print(f"Saved render to {output_path}")

    return img
