"""Synthetic island terrain.

Writes a procedural DEM and a matching RGBA orthophoto as GeoTIFFs, then
either opens the interactive viewer or renders a still image.

    python examples/synthetic_island.py            # interactive viewer
    python examples/synthetic_island.py --render island.png
    python examples/synthetic_island.py --serve    # write assets, serve on :3000

Requirements:
    pip install terrain3d
"""

from pathlib import Path

import numpy as np
import rasterio

import terrain3d
from terrain3d.server import serve

SIZE = 128
PUBLIC = Path(__file__).parent / "public"


def make_island(size=SIZE, seed=7):
    """Return a gaussian island with some ridged noise, in meters."""
    rng = np.random.default_rng(seed)
    y, x = np.mgrid[-1:1:size * 1j, -1:1:size * 1j]
    island = 900 * np.exp(-(x ** 2 + y ** 2) / 0.25)
    noise = sum(
        rng.normal(0, 60 / k, (size // k + 1, size // k + 1)).repeat(k, 0).repeat(k, 1)[:size, :size]
        for k in (4, 8, 16)
    )
    return np.clip(island + noise - 80, 0, None).astype(np.float32)


def colorize(dem):
    """Water, beach, forest and rock colors by elevation, as (4, H, W) bytes."""
    rgb = np.empty(dem.shape + (3,), dtype=np.uint8)
    rgb[:] = (28, 84, 140)
    rgb[dem > 0] = (214, 200, 150)
    rgb[dem > 40] = (60, 120, 50)
    rgb[dem > 500] = (130, 120, 110)
    rgb[dem > 750] = (240, 240, 240)
    alpha = np.full(dem.shape + (1,), 255, dtype=np.uint8)
    return np.moveaxis(np.concatenate([rgb, alpha], axis=2), -1, 0)


def write_tiff(path, array):
    if array.ndim == 2:
        array = array[np.newaxis]
    count, height, width = array.shape
    with rasterio.open(path, 'w', driver='GTiff', width=width, height=height,
                       count=count, dtype=array.dtype) as dst:
        dst.write(array)


def write_assets(out_dir=PUBLIC):
    out_dir.mkdir(parents=True, exist_ok=True)
    dem = make_island()
    write_tiff(out_dir / "dem.tiff", dem)
    write_tiff(out_dir / "orthophoto.tiff", colorize(dem))
    print(f"Wrote {out_dir / 'dem.tiff'} and {out_dir / 'orthophoto.tiff'}")
    return out_dir / "dem.tiff", out_dir / "orthophoto.tiff"


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="terrain3d synthetic island")
    parser.add_argument("--render", metavar="PNG",
                        help="Render a still image instead of opening the viewer")
    parser.add_argument("--serve", action="store_true",
                        help="Serve the generated assets on port 3000")
    args = parser.parse_args()

    dem_path, ortho_path = write_assets()

    if args.serve:
        serve(root=PUBLIC)
    elif args.render:
        state = terrain3d.ViewerState()
        terrain3d.load_terrain(state, dem_path, ortho_path)
        terrain3d.render(state.scene, state.camera, output_path=args.render)
    else:
        terrain3d.explore(dem_path, ortho_path)
