"""Download IGN orthophoto tiles for a Lambert-93 bounding box.

Tiles come from the Géoplateforme WMTS service (layer
``HR.ORTHOIMAGERY.ORTHOPHOTOS``, tile matrix set ``PM_6_19``) at zoom 19,
where a 256-pixel tile covers 51.2 m at 0.2 m per pixel. Tile indices are
derived from a known reference tile rather than from the tile matrix
definition, so they are only accurate near the reference point.

The downloaded JPEG tiles are stitched into ``mosaic.vrt``, a GDAL virtual
raster that rasterio (or any GDAL tool) can open as a single image.
"""

import io
import math
import shutil
import xml.etree.ElementTree as ET
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path

import requests

from .errors import FetchError
from .texture import _lazy_import_pil

ZOOM_LEVEL = 19
PIXEL_SIZE = 0.2
TILE_SIZE = 256
TILE_SIZE_METERS = TILE_SIZE * PIXEL_SIZE

# Tile (195404, 275651) has its top-left corner near this Lambert-93 point
REFERENCE_ROW = 195404
REFERENCE_COL = 275651
REFERENCE_X = 1223232.7321
REFERENCE_Y = 6075925.1150

WMTS_URL = (
    "https://data.geopf.fr/wmts?SERVICE=WMTS&REQUEST=GetTile&VERSION=1.0.0"
    "&LAYER=HR.ORTHOIMAGERY.ORTHOPHOTOS&STYLE=normal&FORMAT=image%2Fjpeg"
    "&TILEMATRIXSET=PM_6_19&TILEMATRIX={zoom}&TILEROW={row}&TILECOL={col}"
)
SRS = "EPSG:2154"
BAND_NAMES = ("Red", "Green", "Blue")
USER_AGENT = "terrain3d/0.1"


@dataclass(frozen=True)
class TileCoords:
    """A WMTS tile and the Lambert-93 position of its top-left corner."""
    row: int
    col: int
    x: float
    y: float

    @property
    def filename(self):
        return f"tile_{self.row}_{self.col}.jpeg"


def parse_bbox(text):
    """Parse ``"minx,miny,maxx,maxy"`` into four floats.

    Raises
    ------
    ValueError
        If there are not exactly four numeric values.
    """
    parts = [p.strip() for p in str(text).split(',')]
    if len(parts) != 4:
        raise ValueError(
            f"bbox must have exactly 4 coordinates (minX,minY,maxX,maxY), got {text!r}"
        )
    try:
        return tuple(float(p) for p in parts)
    except ValueError:
        raise ValueError(f"bbox coordinates must be numbers, got {text!r}") from None


def _round_half_away(value):
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def meters_to_tile(x, y):
    """Tile containing a Lambert-93 point.

    Returns
    -------
    tuple
        ``(row, col, tile_x, tile_y)`` where ``tile_x, tile_y`` is the
        top-left corner of the tile. Rows grow southward.

    Examples
    --------
    >>> meters_to_tile(1223232.7321, 6075925.1150)[:2]
    (195404, 275651)
    """
    col_offset = _round_half_away((x - REFERENCE_X) / TILE_SIZE_METERS)
    row_offset = _round_half_away(-(y - REFERENCE_Y) / TILE_SIZE_METERS)
    tile_x = REFERENCE_X + col_offset * TILE_SIZE_METERS
    tile_y = REFERENCE_Y - row_offset * TILE_SIZE_METERS
    return REFERENCE_ROW + row_offset, REFERENCE_COL + col_offset, tile_x, tile_y


def tile_origin(row, col):
    """Top-left Lambert-93 corner of a tile."""
    return (REFERENCE_X + (col - REFERENCE_COL) * TILE_SIZE_METERS,
            REFERENCE_Y - (row - REFERENCE_ROW) * TILE_SIZE_METERS)


def get_tile_coords(bbox):
    """All tiles covering a bounding box, row-major from the north-west.

    Parameters
    ----------
    bbox : tuple of float
        ``(minx, miny, maxx, maxy)`` in Lambert-93 meters.

    Returns
    -------
    list of TileCoords
    """
    minx, miny, maxx, maxy = bbox
    row1, col1, _, _ = meters_to_tile(minx, miny)
    row2, col2, _, _ = meters_to_tile(maxx, maxy)
    min_row, max_row = min(row1, row2), max(row1, row2)
    min_col, max_col = min(col1, col2), max(col1, col2)
    print(f"Tile ranges: Row {min_row} to {max_row}, Col {min_col} to {max_col}")

    tiles = []
    for row in range(min_row, max_row + 1):
        for col in range(min_col, max_col + 1):
            x, y = tile_origin(row, col)
            tiles.append(TileCoords(row=row, col=col, x=x, y=y))
    return tiles


def tile_url(coords):
    return WMTS_URL.format(zoom=ZOOM_LEVEL, row=coords.row, col=coords.col)


def _verify_image(content, coords):
    Image = _lazy_import_pil()
    try:
        with Image.open(io.BytesIO(content)) as img:
            img.verify()
    except (OSError, SyntaxError) as e:
        raise FetchError(
            f"Tile {coords.row},{coords.col} is not a valid image: {e}"
        ) from e


def download_tile(session, coords, output_dir, timeout=10.0):
    """Download one tile into ``output_dir/tiles``.

    Returns
    -------
    Path
        Path of the written tile.

    Raises
    ------
    FetchError
        On a transport error, a non-2xx status or an undecodable payload.
    """
    url = tile_url(coords)
    try:
        response = session.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise FetchError(f"Failed to download tile {coords.row},{coords.col}: {e}") from e
    if not 200 <= response.status_code < 300:
        raise FetchError(
            f"Failed to download tile {coords.row},{coords.col}: {response.status_code}"
        )

    content = response.content
    _verify_image(content, coords)

    path = Path(output_dir) / "tiles" / coords.filename
    path.write_bytes(content)
    return path


def write_vrt(tiles, output_dir):
    """Write ``mosaic.vrt`` referencing the downloaded tiles.

    Destination offsets are relative to the north-west tile of the mosaic,
    which also anchors the geotransform.

    Raises
    ------
    FetchError
        If *tiles* is empty.
    """
    tiles = list(tiles)
    if not tiles:
        raise FetchError("No tiles were successfully downloaded")

    min_row = min(t.row for t in tiles)
    max_row = max(t.row for t in tiles)
    min_col = min(t.col for t in tiles)
    max_col = max(t.col for t in tiles)
    origin_x, origin_y = tile_origin(min_row, min_col)

    root = ET.Element('VRTDataset', {
        'rasterXSize': str((max_col - min_col + 1) * TILE_SIZE),
        'rasterYSize': str((max_row - min_row + 1) * TILE_SIZE),
    })
    ET.SubElement(root, 'SRS').text = SRS
    ET.SubElement(root, 'GeoTransform').text = (
        f"{origin_x!r}, {PIXEL_SIZE!r}, 0.0, {origin_y!r}, 0.0, {-PIXEL_SIZE!r}"
    )

    for band, name in enumerate(BAND_NAMES, start=1):
        band_el = ET.SubElement(root, 'VRTRasterBand',
                                {'dataType': 'Byte', 'band': str(band)})
        ET.SubElement(band_el, 'ColorInterp').text = name
        for tile in tiles:
            source = ET.SubElement(band_el, 'SimpleSource')
            ET.SubElement(source, 'SourceFilename',
                          {'relativeToVRT': '1'}).text = f"tiles/{tile.filename}"
            ET.SubElement(source, 'SourceBand').text = str(band)
            ET.SubElement(source, 'SrcRect', {
                'xOff': '0', 'yOff': '0',
                'xSize': str(TILE_SIZE), 'ySize': str(TILE_SIZE),
            })
            ET.SubElement(source, 'DstRect', {
                'xOff': str((tile.col - min_col) * TILE_SIZE),
                'yOff': str((tile.row - min_row) * TILE_SIZE),
                'xSize': str(TILE_SIZE), 'ySize': str(TILE_SIZE),
            })

    ET.indent(root)
    path = Path(output_dir) / "mosaic.vrt"
    ET.ElementTree(root).write(path, encoding='utf-8')
    return path


def download_tiles(bbox, output="tiles", concurrent=32, timeout=10.0, session=None):
    """Download every tile covering *bbox* and write the VRT mosaic.

    Parameters
    ----------
    bbox : tuple of float
        ``(minx, miny, maxx, maxy)`` in Lambert-93 meters.
    output : str or Path
        Output directory. Its ``tiles`` subdirectory is recreated.
    concurrent : int
        Maximum concurrent downloads.
    timeout : float
        Per-request timeout in seconds.
    session : requests.Session, optional
        Session to download with. A new one is created (and closed) if
        omitted.

    Returns
    -------
    list of TileCoords
        The tiles that downloaded successfully.

    Raises
    ------
    FetchError
        If no tile could be downloaded.
    """
    if concurrent < 1:
        raise ValueError(f"concurrent must be >= 1, got {concurrent}")

    output = Path(output)
    tiles_dir = output / "tiles"
    shutil.rmtree(tiles_dir, ignore_errors=True)
    tiles_dir.mkdir(parents=True, exist_ok=True)

    tiles = get_tile_coords(bbox)
    total = len(tiles)
    if total == 0:
        print("No tiles found in the specified bounding box!")
        return []
    print(f"Preparing to download {total} tiles...")

    owns_session = session is None
    if owns_session:
        session = requests.Session()
        session.headers['User-Agent'] = USER_AGENT

    downloaded = []
    failures = []
    report_every = max(1, total // 10)
    try:
        with ThreadPoolExecutor(max_workers=concurrent) as executor:
            futures = {
                executor.submit(download_tile, session, t, output, timeout): t
                for t in tiles
            }
            for done, future in enumerate(as_completed(futures), start=1):
                tile = futures[future]
                try:
                    future.result()
                    downloaded.append(tile)
                except FetchError as e:
                    failures.append((tile, e))
                if done % report_every == 0 or done == total:
                    print(f"  {done}/{total} tiles ({done * 100 // total}%)")
    finally:
        if owns_session:
            session.close()

    print("\nDownload complete!")
    print(f"Successfully downloaded: {len(downloaded)} tiles")
    if failures:
        print(f"Failed downloads: {len(failures)} tiles")
        for tile, error in failures:
            print(f"  {tile.row},{tile.col}: {error}")

    downloaded.sort(key=lambda t: (t.row, t.col))
    path = write_vrt(downloaded, output)
    print(f"Wrote {path}")
    return downloaded
