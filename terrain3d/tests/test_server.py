"""Tests for the static asset server."""

import threading

import pytest
import requests

from terrain3d.server import make_server, resolve_asset


@pytest.fixture
def site(tmp_path):
    root = tmp_path / 'public'
    root.mkdir()
    (root / 'index.html').write_text('<html>terrain</html>')
    (root / 'main.js').write_text('console.log(1);')
    (root / 'dem.tiff').write_bytes(b'II*\x00fake')
    (root / 'orthophoto.tif').write_bytes(b'II*\x00fake')
    (root / 'assets').mkdir()
    (tmp_path / 'secret.txt').write_text('private')
    return root


class TestResolveAsset:
    """Tests for request path resolution."""

    def test_root_is_index(self, site):
        root = resolve_asset(site, '/')
        index = resolve_asset(site, '/index.html')
        assert root.status == 200
        assert root.body == index.body
        assert root.headers['Content-Type'].startswith('text/html')

    def test_missing_file(self, site):
        response = resolve_asset(site, '/missing.tiff')
        assert response.status == 404
        assert response.body == b'File not found'

    @pytest.mark.parametrize('path', ['/dem.tiff', '/orthophoto.tif'])
    def test_tiff_content_type(self, site, path):
        response = resolve_asset(site, path)
        assert response.status == 200
        assert response.headers['Content-Type'] == 'image/tiff'
        assert response.headers['Content-Length'] == str(len(response.body))

    def test_guessed_content_type(self, site):
        assert 'javascript' in resolve_asset(site, '/main.js').headers['Content-Type']

    def test_query_string_ignored(self, site):
        assert resolve_asset(site, '/dem.tiff?v=2').status == 200

    @pytest.mark.parametrize('path', ['/../secret.txt', '/%2e%2e/secret.txt', '/assets/../../secret.txt'])
    def test_traversal_outside_root(self, site, path):
        assert resolve_asset(site, path).status == 404

    def test_directory_is_not_found(self, site):
        assert resolve_asset(site, '/assets').status == 404


class TestLiveServer:
    """Tests against a running ThreadingHTTPServer."""

    @pytest.fixture
    def base_url(self, site):
        server = make_server(site, host='127.0.0.1', port=0)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        host, port = server.server_address[:2]
        yield f'http://{host}:{port}'
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)

    def test_get_tiff(self, base_url):
        resp = requests.get(f'{base_url}/dem.tiff', timeout=5)
        assert resp.status_code == 200
        assert resp.headers['Content-Type'] == 'image/tiff'
        assert resp.content == b'II*\x00fake'

    def test_get_index(self, base_url):
        resp = requests.get(f'{base_url}/', timeout=5)
        assert resp.status_code == 200
        assert 'terrain' in resp.text

    def test_not_found_keeps_serving(self, base_url):
        resp = requests.get(f'{base_url}/missing.tiff', timeout=5)
        assert resp.status_code == 404
        assert resp.text == 'File not found'
        assert requests.get(f'{base_url}/main.js', timeout=5).status_code == 200

    def test_head(self, base_url):
        resp = requests.head(f'{base_url}/dem.tiff', timeout=5)
        assert resp.status_code == 200
        assert resp.headers['Content-Length'] == '8'
