"""Terrain mesh construction from an elevation raster.

The mesh is a regular grid authored in the XY plane with elevation on Z.
It always spans a fixed ``extent x extent`` footprint centred on the origin,
whatever the DEM resolution, and heights are normalized into
``[0, height_scale]``.
"""

from dataclasses import dataclass

import numba as nb
import numpy as np

from .errors import InvalidGridError
from .raster import RasterGrid

TERRAIN_EXTENT = 100.0
HEIGHT_SCALE = 20.0


@dataclass
class TerrainMesh:
    """Grid mesh with per-vertex positions, normals and texture coordinates.

    Attributes
    ----------
    width, height : int
        Vertex grid dimensions (equal to the DEM dimensions).
    positions : numpy.ndarray
        ``(width * height, 3)`` float32 vertex positions, row-major from the
        north-west corner.
    normals : numpy.ndarray
        ``(width * height, 3)`` float32 unit vertex normals.
    uvs : numpy.ndarray
        ``(width * height, 2)`` float32 texture coordinates; ``v = 1`` on
        the northern edge.
    triangles : numpy.ndarray
        ``((width - 1) * (height - 1) * 2, 3)`` int32 vertex indices.
    extent : float
        Side length of the square footprint in world units.
    height_scale : float
        Height of the highest vertex in world units.
    """
    width: int
    height: int
    positions: np.ndarray
    normals: np.ndarray
    uvs: np.ndarray
    triangles: np.ndarray
    extent: float = TERRAIN_EXTENT
    height_scale: float = HEIGHT_SCALE

    @property
    def vertex_count(self):
        return self.positions.shape[0]

    @property
    def cell_count(self):
        return (self.width - 1) * (self.height - 1)

    @property
    def heights(self):
        """Vertex heights as a ``(height, width)`` array."""
        return self.positions[:, 2].reshape(self.height, self.width)


@nb.njit(parallel=True)
def _fill_grid_mesh(positions, uvs, triangles, heights, xs, ys, us, vs, H, W):
    """Fill vertex and triangle buffers for a regular grid using numba."""
    for h in nb.prange(H):
        for w in range(W):
            meshMapIndex = h * W + w

            positions[meshMapIndex, 0] = xs[w]
            positions[meshMapIndex, 1] = ys[h]
            positions[meshMapIndex, 2] = heights[h, w]
            uvs[meshMapIndex, 0] = us[w]
            uvs[meshMapIndex, 1] = vs[h]

            if w != W - 1 and h != H - 1:
                offset = 2 * (h * (W - 1) + w)
                triangles[offset, 0] = np.int32(meshMapIndex + W)
                triangles[offset, 1] = np.int32(meshMapIndex + W + 1)
                triangles[offset, 2] = np.int32(meshMapIndex)
                triangles[offset + 1, 0] = np.int32(meshMapIndex + W + 1)
                triangles[offset + 1, 1] = np.int32(meshMapIndex + 1)
                triangles[offset + 1, 2] = np.int32(meshMapIndex)


def _axis_coords(n, start, stop):
    """Evenly spaced coordinates; a single sample sits on the midpoint."""
    if n == 1:
        return np.array([(start + stop) / 2.0], dtype=np.float32)
    return np.linspace(start, stop, n, dtype=np.float32)


def normalize_heights(elevation, vmin, vmax, height_scale=HEIGHT_SCALE):
    """Map elevations linearly from ``[vmin, vmax]`` onto ``[0, height_scale]``.

    A flat raster (``vmax == vmin``) maps to zero everywhere.
    """
    elevation = np.asarray(elevation)
    span = float(vmax) - float(vmin)
    if span == 0:
        return np.zeros(elevation.shape, dtype=np.float32)
    scaled = (elevation.astype(np.float64) - float(vmin)) / span * height_scale
    return scaled.astype(np.float32)


def compute_vertex_normals(positions, triangles):
    """Compute unit vertex normals as area-weighted sums of face normals.

    Vertices that belong to no triangle get the +Z normal.
    """
    normals = np.zeros(positions.shape, dtype=np.float64)
    if len(triangles):
        a = positions[triangles[:, 0]].astype(np.float64)
        b = positions[triangles[:, 1]].astype(np.float64)
        c = positions[triangles[:, 2]].astype(np.float64)
        face_normals = np.cross(b - a, c - a)
        for k in range(3):
            np.add.at(normals, triangles[:, k], face_normals)

    lengths = np.linalg.norm(normals, axis=1)
    degenerate = lengths < 1e-12
    normals[degenerate] = (0.0, 0.0, 1.0)
    lengths[degenerate] = 1.0
    return (normals / lengths[:, None]).astype(np.float32)


def build_mesh(dem, extent=TERRAIN_EXTENT, height_scale=HEIGHT_SCALE):
    """Build a terrain mesh from a DEM.

    Every DEM sample becomes one vertex (identity mapping, no resampling);
    heights are normalized into ``[0, height_scale]`` and vertex normals
    are computed once all heights are set.

    Parameters
    ----------
    dem : RasterGrid or xarray.DataArray
        Elevation grid. Multi-band grids use band 0.
    extent : float, optional
        Side length of the square footprint in world units. Default 100.
    height_scale : float, optional
        World height of the highest sample. Default 20.

    Returns
    -------
    TerrainMesh

    Raises
    ------
    InvalidGridError
        If the grid is empty.

    Examples
    --------
    >>> dem = RasterGrid.from_array(np.full((4, 4), 5.0))
    >>> mesh = build_mesh(dem)
    >>> mesh.vertex_count, float(mesh.heights.max())
    (16, 0.0)
    """
    # Handle xarray DataArray by converting to a grid
    if hasattr(dem, 'dims') and hasattr(dem, 'coords'):
        dem = RasterGrid.from_dataarray(dem)
    if not isinstance(dem, RasterGrid):
        raise TypeError(
            f"Unsupported DEM type: {type(dem)}. "
            "Expected RasterGrid or xarray.DataArray."
        )
    if dem.band_count != 1:
        dem = dem.band(0)

    H, W = dem.height, dem.width
    if H * W == 0:
        raise InvalidGridError("Cannot build a mesh from an empty grid")

    heights = normalize_heights(dem.as_2d(), dem.min, dem.max, height_scale)

    half = extent / 2.0
    xs = _axis_coords(W, -half, half)
    ys = _axis_coords(H, half, -half)
    us = _axis_coords(W, 0.0, 1.0)
    vs = _axis_coords(H, 1.0, 0.0)

    positions = np.zeros((H * W, 3), dtype=np.float32)
    uvs = np.zeros((H * W, 2), dtype=np.float32)
    triangles = np.zeros(((H - 1) * (W - 1) * 2, 3), dtype=np.int32)
    _fill_grid_mesh(positions, uvs, triangles, heights, xs, ys, us, vs, H, W)

    normals = compute_vertex_normals(positions, triangles)

    return TerrainMesh(
        width=W,
        height=H,
        positions=positions,
        normals=normals,
        uvs=uvs,
        triangles=triangles,
        extent=float(extent),
        height_scale=float(height_scale),
    )
