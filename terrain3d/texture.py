"""Orthophoto to RGBA surface texture."""

from dataclasses import dataclass

import numpy as np

from .errors import InvalidGridError
from .raster import RasterGrid


@dataclass
class SurfaceTexture:
    """RGBA byte image used as the terrain diffuse map.

    ``data`` has shape ``(height, width, 4)``; row 0 is the northern edge
    of the image.
    """
    width: int
    height: int
    data: np.ndarray

    def __post_init__(self):
        expected = (self.height, self.width, 4)
        if self.data.shape != expected or self.data.dtype != np.uint8:
            raise InvalidGridError(
                f"Texture data must be uint8 with shape {expected}, "
                f"got {self.data.dtype} {self.data.shape}"
            )

    @property
    def pixels(self):
        """Flat RGBA buffer of length ``width * height * 4``."""
        return self.data.reshape(-1)

    def sample(self, u, v):
        """Nearest-neighbour lookup of RGBA bytes at texture coordinates.

        Parameters
        ----------
        u, v : float or array-like
            Coordinates in ``[0, 1]``; ``v = 1`` is the top image row.

        Returns
        -------
        numpy.ndarray
            uint8 array of shape ``(..., 4)``.
        """
        u = np.clip(np.asarray(u, dtype=np.float64), 0.0, 1.0)
        v = np.clip(np.asarray(v, dtype=np.float64), 0.0, 1.0)
        cols = np.rint(u * (self.width - 1)).astype(np.intp)
        rows = np.rint((1.0 - v) * (self.height - 1)).astype(np.intp)
        return self.data[rows, cols]

    def to_image(self):
        """Return the texture as a PIL RGBA image."""
        Image = _lazy_import_pil()
        return Image.fromarray(self.data)

    def save(self, path):
        """Save the texture to an image file (PNG, TIFF, ...)."""
        self.to_image().save(path)


def _lazy_import_pil():
    """Lazily import PIL with helpful error message."""
    try:
        from PIL import Image
        return Image
    except ImportError:
        raise ImportError(
            "Pillow is required for texture images. "
            "Install it with: pip install Pillow"
        )


def build_texture(ortho):
    """Reinterpret an orthophoto's samples as RGBA bytes.

    No scaling or gamma correction is applied; the samples must already be
    byte-valued and pixel-interleaved RGBA.

    Parameters
    ----------
    ortho : RasterGrid
        Orthophoto grid with ``width * height * 4`` samples.

    Returns
    -------
    SurfaceTexture

    Raises
    ------
    InvalidGridError
        If the sample count is not ``width * height * 4``, a sample lies
        outside ``[0, 255]`` or a floating-point sample has a fractional
        part.
    """
    expected = ortho.width * ortho.height * 4
    if ortho.samples.size != expected:
        raise InvalidGridError(
            f"Orthophoto has {ortho.samples.size} samples, expected {expected} "
            f"for {ortho.width}x{ortho.height} RGBA; "
            "use expand_to_rgba() for grey or RGB imagery"
        )
    if ortho.min < 0 or ortho.max > 255:
        raise InvalidGridError(
            f"Orthophoto samples span [{ortho.min:g}, {ortho.max:g}], "
            "outside the byte range [0, 255]"
        )
    if (np.issubdtype(ortho.samples.dtype, np.floating)
            and not np.array_equal(ortho.samples, np.round(ortho.samples))):
        raise InvalidGridError(
            "Orthophoto samples must be whole byte values; "
            "fractional samples are not rounded"
        )

    data = ortho.samples.astype(np.uint8).reshape(ortho.height, ortho.width, 4)
    return SurfaceTexture(width=ortho.width, height=ortho.height, data=data)


def expand_to_rgba(grid, alpha=255):
    """Convert a 1-band (grey) or 3-band (RGB) grid to 4-band RGBA.

    4-band grids are returned unchanged.
    """
    if grid.band_count == 4:
        return grid
    pixels = grid.as_3d()
    if grid.band_count == 1:
        pixels = np.repeat(pixels, 3, axis=2)
    elif grid.band_count != 3:
        raise InvalidGridError(
            f"Cannot expand {grid.band_count}-band imagery to RGBA"
        )
    alpha_band = np.full(pixels.shape[:2] + (1,), alpha, dtype=pixels.dtype)
    return RasterGrid.from_array(np.concatenate([pixels, alpha_band], axis=2))
