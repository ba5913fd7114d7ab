"""Static asset server for the viewer page and its raster assets.

Any file under the root directory is served by path; ``/`` maps to
``index.html``. Missing files, unreadable files and paths escaping the root
all answer 404 with the body ``File not found``.
"""

import mimetypes
from dataclasses import dataclass, field
from functools import partial
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Dict
from urllib.parse import unquote, urlparse

NOT_FOUND_BODY = b"File not found"
INDEX_FILE = "index.html"

# Content types that mimetypes does not reliably know
CONTENT_TYPE_OVERRIDES = {
    '.tif': 'image/tiff',
    '.tiff': 'image/tiff',
}


@dataclass
class AssetResponse:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""


def not_found():
    return AssetResponse(
        status=HTTPStatus.NOT_FOUND,
        headers={'Content-Type': 'text/plain; charset=utf-8'},
        body=NOT_FOUND_BODY,
    )


def content_type_for(path):
    """Content type for a file, by extension."""
    suffix = Path(path).suffix.lower()
    if suffix in CONTENT_TYPE_OVERRIDES:
        return CONTENT_TYPE_OVERRIDES[suffix]
    mime_type, _ = mimetypes.guess_type(str(path))
    return mime_type or 'application/octet-stream'


def resolve_asset(root, request_path):
    """Map a request path to a response.

    Parameters
    ----------
    root : str or Path
        Directory served as the site root.
    request_path : str
        Raw request target, e.g. ``/dem.tiff?v=2``. The query string is
        ignored.

    Returns
    -------
    AssetResponse
    """
    path = unquote(urlparse(request_path).path)
    if path in ('', '/'):
        path = '/' + INDEX_FILE

    root = Path(root).resolve()
    target = (root / path.lstrip('/')).resolve()
    try:
        target.relative_to(root)
    except ValueError:
        return not_found()

    if not target.is_file():
        return not_found()
    try:
        body = target.read_bytes()
    except OSError:
        return not_found()

    return AssetResponse(
        status=HTTPStatus.OK,
        headers={
            'Content-Type': content_type_for(target),
            'Content-Length': str(len(body)),
        },
        body=body,
    )


class AssetRequestHandler(BaseHTTPRequestHandler):
    """Serves files from ``root`` through ``resolve_asset``."""

    def __init__(self, *args, root=".", **kwargs):
        self.root = root
        super().__init__(*args, **kwargs)

    def log_message(self, fmt, *args):
        print(f"[terrain3d-server] {self.address_string()} {fmt % args}")

    def _respond(self, include_body=True):
        try:
            response = resolve_asset(self.root, self.path)
        except (OSError, ValueError):
            response = not_found()

        try:
            self.send_response(response.status)
            for name, value in response.headers.items():
                self.send_header(name, value)
            if 'Content-Length' not in response.headers:
                self.send_header('Content-Length', str(len(response.body)))
            self.end_headers()
            if include_body:
                self.wfile.write(response.body)
        except (BrokenPipeError, ConnectionResetError, ConnectionAbortedError):
            self.close_connection = True

    def do_GET(self):
        self._respond()

    def do_HEAD(self):
        self._respond(include_body=False)


def make_server(root=".", host="0.0.0.0", port=3000):
    """Create (but do not start) a threading server for *root*.

    Pass ``port=0`` to bind an ephemeral port; read it back from
    ``server.server_address``.
    """
    handler = partial(AssetRequestHandler, root=str(root))
    server = ThreadingHTTPServer((host, port), handler)
    server.daemon_threads = True
    return server


def serve(root=".", host="0.0.0.0", port=3000):
    """Serve *root* until interrupted."""
    server = make_server(root, host, port)
    bound_host, bound_port = server.server_address[:2]
    print(f"[terrain3d-server] Serving {Path(root).resolve()}")
    print(f"[terrain3d-server] URL: http://{bound_host}:{bound_port}/")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
