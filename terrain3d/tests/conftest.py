import matplotlib

matplotlib.use('Agg')

import numpy as np
import pytest
from rasterio.io import MemoryFile


def geotiff_bytes(array):
    """Encode a ``(H, W)`` or ``(B, H, W)`` array as an in-memory GeoTIFF."""
    array = np.asarray(array)
    if array.ndim == 2:
        array = array[np.newaxis]
    count, height, width = array.shape
    with MemoryFile() as memfile:
        with memfile.open(driver='GTiff', width=width, height=height,
                          count=count, dtype=array.dtype) as dst:
            dst.write(array)
        return memfile.read()


@pytest.fixture
def dem_array():
    """A small gaussian hill."""
    H, W = 8, 10
    yy, xx = np.meshgrid(np.arange(H), np.arange(W), indexing='ij')
    return (100 + 50 * np.exp(-((xx - 5) ** 2 + (yy - 4) ** 2) / 8)).astype(np.float32)


@pytest.fixture
def ortho_array():
    """A 4-band RGBA orthophoto, ``(B, H, W)``, matching ``dem_array``."""
    rng = np.random.default_rng(0)
    rgba = rng.integers(0, 256, size=(4, 8, 10), dtype=np.uint8)
    rgba[3] = 255
    return rgba


@pytest.fixture
def terrain_files(tmp_path, dem_array, ortho_array):
    """DEM and orthophoto GeoTIFFs written to a temporary directory."""
    dem_path = tmp_path / 'dem.tiff'
    ortho_path = tmp_path / 'orthophoto.tiff'
    dem_path.write_bytes(geotiff_bytes(dem_array))
    ortho_path.write_bytes(geotiff_bytes(ortho_array))
    return dem_path, ortho_path


@pytest.fixture
def make_geotiff():
    return geotiff_bytes
