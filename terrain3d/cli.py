"""Command line interface.

Examples
--------
Serve the viewer assets, then open the viewer against the server::

    terrain3d serve --root public
    terrain3d view dem.tiff orthophoto.tiff --base-url http://localhost:3000/

Render a still image and download orthophoto tiles::

    terrain3d render dem.tiff orthophoto.tiff -o terrain.png
    terrain3d tiles get --bbox 1223000,6075700,1223400,6076000 -o tiles
"""

import argparse
import sys

from .config import load_config
from .errors import TerrainError


def _cmd_serve(args, config):
    from .server import serve

    server = config.server
    serve(root=args.root or server.root,
          host=args.host or server.host,
          port=args.port if args.port is not None else server.port)
    return 0


def _viewer_config(args, config):
    viewer = config.viewer
    if getattr(args, 'subsample', None) is not None:
        viewer.subsample = args.subsample
    if getattr(args, 'width', None) is not None:
        viewer.width = args.width
    if getattr(args, 'height', None) is not None:
        viewer.height = args.height
    return viewer


def _assets(args, config):
    dem = args.dem or config.dem_path
    ortho = args.ortho or config.ortho_path
    if not dem or not ortho:
        raise SystemExit("A DEM and an orthophoto are required "
                         "(as arguments or dem_path/ortho_path in the config)")
    return dem, ortho


def _cmd_view(args, config):
    from .viewer import explore

    dem, ortho = _assets(args, config)
    explore(dem, ortho, config=_viewer_config(args, config),
            base_url=args.base_url or config.base_url, parallel=args.parallel)
    return 0


def _cmd_render(args, config):
    from .render import render
    from .state import ViewerState
    from .viewer import load_terrain

    dem, ortho = _assets(args, config)
    state = ViewerState(config=_viewer_config(args, config))
    load_terrain(state, dem, ortho, base_url=args.base_url or config.base_url,
                 parallel=args.parallel)
    if state.scene is None:
        print(state.status, file=sys.stderr)
        return 1
    render(state.scene, state.camera, width=state.config.width,
           height=state.config.height, output_path=args.output)
    return 0


def _cmd_tiles_get(args, config):
    from .wmts import download_tiles, parse_bbox

    tiles = config.tiles
    try:
        bbox = parse_bbox(args.bbox)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    download_tiles(
        bbox,
        output=args.output or tiles.output,
        concurrent=args.concurrent if args.concurrent is not None else tiles.concurrent,
        timeout=args.timeout if args.timeout is not None else tiles.timeout,
    )
    return 0


def build_parser():
    parser = argparse.ArgumentParser(
        prog='terrain3d',
        description="3D terrain viewer, asset server and orthophoto tile downloader",
    )
    parser.add_argument('--config', help="YAML or JSON configuration file")
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('serve', help="Serve the viewer assets over HTTP")
    p.add_argument('--root', help="Directory to serve (default: .)")
    p.add_argument('--host', help="Bind address (default: 0.0.0.0)")
    p.add_argument('--port', type=int, help="Port (default: 3000)")
    p.set_defaults(func=_cmd_serve)

    for name, func, help_text in (
        ('view', _cmd_view, "Open the interactive viewer"),
        ('render', _cmd_render, "Render a still image of the terrain"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument('dem', nargs='?', help="Elevation raster (path or URL)")
        p.add_argument('ortho', nargs='?', help="Orthophoto raster (path or URL)")
        p.add_argument('--base-url', help="Base URL for relative asset names")
        p.add_argument('--parallel', action='store_true',
                       help="Fetch both rasters concurrently")
        p.add_argument('--subsample', type=int,
                       help="Keep every n-th DEM row/column")
        p.add_argument('--width', type=int, help="Image width in pixels")
        p.add_argument('--height', type=int, help="Image height in pixels")
        if name == 'render':
            p.add_argument('-o', '--output', required=True, help="Output image path")
        p.set_defaults(func=func)

    tiles = sub.add_parser('tiles', help="IGN WMTS orthophoto tiles")
    tiles_sub = tiles.add_subparsers(dest='tiles_command', required=True)
    p = tiles_sub.add_parser('get', help="Download tiles for a Lambert-93 bbox")
    p.add_argument('-b', '--bbox', required=True,
                   help="Bounding box in Lambert 93: minX,minY,maxX,maxY")
    p.add_argument('-o', '--output', help="Output directory (default: tiles)")
    p.add_argument('-c', '--concurrent', type=int,
                   help="Maximum concurrent downloads (default: 32)")
    p.add_argument('-t', '--timeout', type=float,
                   help="Request timeout in seconds (default: 10)")
    p.set_defaults(func=_cmd_tiles_get)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    try:
        return args.func(args, config)
    except TerrainError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
