"""Raster loading: fetch the bytes of an asset and decode them into a grid.

An asset is addressed by an identifier that is either a local path or an
``http(s)://`` URL. Relative identifiers can be resolved against a base URL,
which is how the viewer loads ``dem.tiff`` from the asset server.

Decoding is delegated to rasterio. The whole payload is materialized in
memory; assets are loaded once at startup so there is no caching and no
streaming decode.
"""

import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union
from urllib.parse import urljoin

import numpy as np
import requests
from rasterio.errors import RasterioError
from rasterio.io import MemoryFile

from .errors import DecodeError, FetchError, InvalidGridError


@dataclass(frozen=True)
class RasterGrid:
    """Decoded raster samples with their dimensions and value range.

    Attributes
    ----------
    width, height : int
        Grid dimensions in pixels.
    samples : numpy.ndarray
        Flat, read-only sample sequence in row-major order. Multi-band grids
        are pixel-interleaved (``r, g, b, a, r, g, b, a, ...``).
    min, max : float
        Smallest and largest sample.
    band_count : int
        Number of interleaved bands.
    """
    width: int
    height: int
    samples: np.ndarray
    min: float
    max: float
    band_count: int = 1

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise InvalidGridError(
                f"Grid must have positive dimensions, got {self.width}x{self.height}"
            )
        if self.band_count <= 0:
            raise InvalidGridError(f"Invalid band count: {self.band_count}")

        samples = np.array(self.samples).reshape(-1)
        expected = self.width * self.height * self.band_count
        if samples.size != expected:
            raise InvalidGridError(
                f"Expected {expected} samples for a {self.width}x{self.height} "
                f"grid with {self.band_count} band(s), got {samples.size}"
            )
        if not ((samples >= self.min).all() and (samples <= self.max).all()):
            raise InvalidGridError(
                f"Samples fall outside the declared range [{self.min}, {self.max}]; "
                "use RasterGrid.from_samples to compute it"
            )
        samples.setflags(write=False)
        object.__setattr__(self, 'samples', samples)

    @property
    def pixel_count(self):
        return self.width * self.height

    @classmethod
    def from_samples(cls, width, height, samples, band_count=1):
        """Build a grid, computing min/max with a full linear scan.

        Non-finite samples (NaN nodata in float DEMs) are replaced with the
        finite minimum so every sample lies within ``[min, max]``.
        """
        values = np.asarray(samples).reshape(-1)
        if values.size == 0:
            raise InvalidGridError("Raster contains no samples")

        if np.issubdtype(values.dtype, np.floating):
            finite = np.isfinite(values)
            if not finite.all():
                if not finite.any():
                    raise InvalidGridError("Raster contains no finite samples")
                fill = values[finite].min()
                warnings.warn(
                    f"Replacing {int((~finite).sum())} non-finite sample(s) "
                    f"with the minimum value {fill}"
                )
                values = np.where(finite, values, fill)

        return cls(
            width=int(width),
            height=int(height),
            samples=values,
            min=float(values.min()),
            max=float(values.max()),
            band_count=int(band_count),
        )

    @classmethod
    def from_array(cls, array):
        """Build a grid from a ``(H, W)`` or ``(H, W, B)`` array."""
        array = np.asarray(array)
        if array.ndim == 2:
            H, W = array.shape
            return cls.from_samples(W, H, array, band_count=1)
        if array.ndim == 3:
            H, W, B = array.shape
            return cls.from_samples(W, H, array, band_count=B)
        raise InvalidGridError(
            f"Expected a 2D or 3D array, got shape {array.shape}"
        )

    @classmethod
    def from_dataarray(cls, da):
        """Build a grid from an xarray DataArray.

        2D arrays are ``(y, x)``; 3D arrays are ``(band, y, x)`` as
        produced by rioxarray.
        """
        data = da.data
        if hasattr(data, 'get'):
            data = data.get()
        data = np.asarray(data)
        if data.ndim == 3:
            data = np.moveaxis(data, 0, -1)
        return cls.from_array(data)

    def to_dataarray(self, name=None):
        """Return the grid as an xarray DataArray (``(y, x)`` or ``(band, y, x)``)."""
        xr = _lazy_import_xarray()
        if self.band_count == 1:
            return xr.DataArray(self.as_2d(), dims=['y', 'x'], name=name)
        data = np.moveaxis(self.as_3d(), -1, 0)
        return xr.DataArray(
            data,
            dims=['band', 'y', 'x'],
            coords={'band': np.arange(1, self.band_count + 1)},
            name=name,
        )

    def as_2d(self):
        """Return a ``(H, W)`` view of a single-band grid."""
        if self.band_count != 1:
            raise InvalidGridError(
                f"Grid has {self.band_count} bands; select one with band()"
            )
        return self.samples.reshape(self.height, self.width)

    def as_3d(self):
        """Return a ``(H, W, B)`` view of the grid."""
        return self.samples.reshape(self.height, self.width, self.band_count)

    def band(self, index):
        """Return band *index* as a new single-band grid."""
        if not 0 <= index < self.band_count:
            raise IndexError(
                f"Band {index} out of range for {self.band_count} band(s)"
            )
        return RasterGrid.from_array(self.as_3d()[:, :, index])

    def subsample(self, factor):
        """Return a grid keeping every *factor*-th row and column."""
        factor = int(factor)
        if factor < 1:
            raise ValueError(f"Subsample factor must be >= 1, got {factor}")
        if factor == 1:
            return self
        data = self.as_3d()[::factor, ::factor, :]
        if self.band_count == 1:
            data = data[:, :, 0]
        return RasterGrid.from_array(data)


def _lazy_import_xarray():
    """Lazily import xarray with helpful error message."""
    try:
        import xarray as xr
        return xr
    except ImportError:
        raise ImportError(
            "xarray is required for DataArray conversion. "
            "Install it with: pip install xarray"
        )


def _is_url(location):
    return location.startswith(('http://', 'https://'))


def resolve_location(identifier, base_url=None):
    """Return the URL or path an identifier refers to."""
    location = str(identifier)
    if base_url and not _is_url(location):
        return urljoin(base_url, location)
    return location


def fetch_bytes(identifier, base_url=None, timeout=30.0):
    """Fetch the raw bytes of an asset.

    Parameters
    ----------
    identifier : str or Path
        Local path or ``http(s)://`` URL.
    base_url : str, optional
        Base URL that relative identifiers are resolved against.
    timeout : float
        Request timeout in seconds for remote assets.

    Returns
    -------
    bytes

    Raises
    ------
    FetchError
        If the asset cannot be retrieved.
    """
    location = resolve_location(identifier, base_url)

    if _is_url(location):
        try:
            resp = requests.get(location, timeout=timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"Failed to fetch {location}: {e}") from e
        return resp.content

    try:
        return Path(location).read_bytes()
    except OSError as e:
        raise FetchError(f"Failed to read {location}: {e}") from e


def decode_raster(data, all_bands=False):
    """Decode raster bytes (GeoTIFF or any GDAL format) into a RasterGrid.

    Parameters
    ----------
    data : bytes
        Complete raster payload.
    all_bands : bool
        If False (default), band 0 is the authoritative sample sequence.
        If True, all bands are kept and interleaved per pixel.

    Raises
    ------
    DecodeError
        If the payload is not a valid raster.
    """
    if not data:
        raise DecodeError("Empty raster payload")

    try:
        with MemoryFile(data) as memfile:
            with memfile.open() as src:
                if all_bands:
                    bands = src.read()
                else:
                    bands = src.read(1)[np.newaxis]
    except (RasterioError, ValueError) as e:
        raise DecodeError(f"Could not decode raster: {e}") from e

    if bands.shape[0] == 1:
        return RasterGrid.from_array(bands[0])
    return RasterGrid.from_array(np.moveaxis(bands, 0, -1))


def load_raster(identifier, all_bands=False, base_url=None, timeout=30.0):
    """Fetch and decode a raster asset.

    Parameters
    ----------
    identifier : str or Path
        Local path or URL of the raster.
    all_bands : bool
        Keep every band (orthophotos) instead of band 0 only (DEMs).
    base_url : str, optional
        Base URL that relative identifiers are resolved against.
    timeout : float
        Request timeout in seconds.

    Returns
    -------
    RasterGrid

    Examples
    --------
    >>> dem = load_raster('dem.tiff')
    >>> ortho = load_raster('orthophoto.tiff', all_bands=True)
    """
    location = resolve_location(identifier, base_url)
    print(f"Loading raster from: {location}")
    data = fetch_bytes(location, timeout=timeout)
    grid = decode_raster(data, all_bands=all_bands)
    print(f"  {grid.width}x{grid.height}, {grid.band_count} band(s), "
          f"range [{grid.min:g}, {grid.max:g}]")
    return grid


def load_rasters(identifiers: Sequence[Union[str, Path]],
                 all_bands: Union[bool, Sequence[bool]] = False,
                 base_url: Optional[str] = None,
                 timeout: float = 30.0,
                 parallel: bool = False):
    """Load several rasters, in order.

    Loads are sequential by default. With ``parallel=True`` they are issued
    concurrently and joined before returning; the first failure (in
    identifier order) is raised.
    """
    identifiers = list(identifiers)
    if isinstance(all_bands, bool):
        all_bands = [all_bands] * len(identifiers)
    else:
        all_bands = list(all_bands)
        if len(all_bands) != len(identifiers):
            raise ValueError("all_bands must match the number of identifiers")

    if not parallel or len(identifiers) < 2:
        return [
            load_raster(i, all_bands=b, base_url=base_url, timeout=timeout)
            for i, b in zip(identifiers, all_bands)
        ]

    with ThreadPoolExecutor(max_workers=len(identifiers)) as executor:
        futures = [
            executor.submit(load_raster, i, b, base_url, timeout)
            for i, b in zip(identifiers, all_bands)
        ]
        return [f.result() for f in futures]
