#!/usr/bin/env python3
"""
End-to-end tests: HTTP responses, redirect listener and shutdown
"""
import asyncio
import os
import signal
import sys

import aiohttp
import pytest
from aiohttp.test_utils import TestClient, TestServer

from devserver.core.config import ServerConfig
from devserver.core.errors import ConfigError, DocumentRootError
from devserver.handlers.asset_handler import relative_request_path
from devserver.networking.redirect import RedirectListener, https_location
from devserver.server import DevServer, create_app
from main import run


def make_site(root, with_index=True):
    if with_index:
        (root / "index.html").write_text("<h1>home</h1>")
    (root / "style.css").write_text("body { color: red; }")
    (root / "big").mkdir()
    (root / "big" / "blob.bin").write_bytes(os.urandom(300 * 1024))
    return root


def site_config(root, **overrides) -> ServerConfig:
    settings = dict(source_root=str(root), tls=False, port=0, host="127.0.0.1")
    settings.update(overrides)
    return ServerConfig(**settings)


async def fetch(config: ServerConfig, *paths, method="GET"):
    app = await create_app(config)
    async with TestClient(TestServer(app)) as client:
        results = []
        for path in paths:
            resp = await client.request(method, path)
            results.append((resp.status, resp.headers.copy(), await resp.read()))
        return results


def test_cached_stylesheet(tmp_path):
    site = make_site(tmp_path)
    [(status, headers, body)] = asyncio.run(fetch(site_config(site), "/style.css"))

    assert status == 200
    assert headers["Content-Type"] == "text/css"
    assert int(headers["Content-Length"]) == os.path.getsize(site / "style.css")
    assert headers["Cache-Control"] == "no-cache, no-store, must-revalidate"
    assert headers["Last-Modified"].endswith("GMT")
    assert body == (site / "style.css").read_bytes()


def test_streamed_file_from_ignored_directory(tmp_path):
    site = make_site(tmp_path)
    config = site_config(site, ignore=["big"])
    [(status, headers, body)] = asyncio.run(fetch(config, "/big/blob.bin"))

    assert status == 200
    assert headers["Content-Type"] == "application/octet-stream"
    assert int(headers["Content-Length"]) == len(body)
    assert body == (site / "big" / "blob.bin").read_bytes()


def test_streaming_without_precache(tmp_path):
    site = make_site(tmp_path)
    config = site_config(site, precache=False)
    [(status, headers, body)] = asyncio.run(fetch(config, "/style.css"))

    assert status == 200
    assert headers["Content-Type"] == "text/css"
    assert body == (site / "style.css").read_bytes()


def test_root_falls_back_to_index(tmp_path):
    site = make_site(tmp_path)
    [(status, headers, body)] = asyncio.run(fetch(site_config(site), "/"))

    assert status == 200
    assert headers["Content-Type"] == "text/html"
    assert body == b"<h1>home</h1>"


def test_unknown_path_falls_back_to_index(tmp_path):
    site = make_site(tmp_path)
    [(status, _, body)] = asyncio.run(fetch(site_config(site), "/app/settings?tab=2"))

    assert status == 200
    assert body == b"<h1>home</h1>"


def test_missing_without_index_is_404(tmp_path):
    site = make_site(tmp_path, with_index=False)
    [(status, _, body)] = asyncio.run(fetch(site_config(site), "/missing.html"))

    assert status == 404
    assert body == b"404 Not Found"


def test_query_string_is_not_part_of_the_path(tmp_path):
    site = make_site(tmp_path)
    [(status, headers, _)] = asyncio.run(fetch(site_config(site), "/style.css?v=3"))

    assert status == 200
    assert headers["Content-Type"] == "text/css"


def test_head_request_sends_headers_only(tmp_path):
    site = make_site(tmp_path)
    config = site_config(site, ignore=["big"])
    results = asyncio.run(fetch(config, "/style.css", "/big/blob.bin", method="HEAD"))

    for status, headers, body in results:
        assert status == 200
        assert body == b""
    assert int(results[1][1]["Content-Length"]) == 300 * 1024


def test_concurrent_requests_get_independent_bodies(tmp_path):
    site = make_site(tmp_path)
    (site / "data.json").write_text('{"a": 1}' * 1000)

    async def scenario():
        app = await create_app(site_config(site))
        async with TestClient(TestServer(app)) as client:
            async def get():
                resp = await client.get("/data.json")
                return await resp.read()
            return await asyncio.gather(*(get() for _ in range(5)))

    bodies = asyncio.run(scenario())
    expected = (site / "data.json").read_bytes()
    assert all(body == expected for body in bodies)


def test_relative_request_path():
    assert relative_request_path("/") == ""
    assert relative_request_path("/style.css") == "style.css"
    assert relative_request_path("/js/app.js") == "js/app.js"
    assert relative_request_path("/../etc/passwd") is None
    assert relative_request_path("/a/../../b") is None
    assert relative_request_path("//etc/passwd") is None
    assert relative_request_path("/..\\secret") is None
    assert relative_request_path("/..hidden/file") == "..hidden/file"


def test_traversal_does_not_leave_the_root(tmp_path):
    site = tmp_path / "site"
    site.mkdir()
    make_site(site)
    (tmp_path / "outside.txt").write_text("secret")

    async def scenario():
        app = await create_app(site_config(site))
        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/%2E%2E/outside.txt")
            return await resp.read()

    assert asyncio.run(scenario()) != b"secret"


def test_https_location():
    assert https_location("localhost:8080", "/a?b=1", 443) == "https://localhost/a?b=1"
    assert https_location("example.test", "/", 8443) == "https://example.test:8443/"
    assert https_location("[::1]:80", "/x", 443) == "https://[::1]/x"
    assert https_location(None, "/", 443) == "https://localhost/"


def test_redirect_listener_answers_302():
    async def scenario():
        listener = RedirectListener("127.0.0.1", 0, 8443)
        await listener.start()
        try:
            url = f"http://127.0.0.1:{listener.bound_port}/docs/page.html?x=1"
            async with aiohttp.ClientSession() as session:
                async with session.get(url, allow_redirects=False) as resp:
                    return resp.status, resp.headers.get("Location")
        finally:
            await listener.stop()

    status, location = asyncio.run(scenario())
    assert status == 302
    assert location == "https://127.0.0.1:8443/docs/page.html?x=1"


def test_redirect_listener_answers_every_method():
    async def scenario():
        listener = RedirectListener("127.0.0.1", 0, 443)
        await listener.start()
        results = {}
        try:
            url = f"http://127.0.0.1:{listener.bound_port}/form"
            async with aiohttp.ClientSession() as session:
                for method in ("GET", "HEAD", "POST", "PUT", "DELETE"):
                    async with session.request(method, url, data=b"payload" if method in ("POST", "PUT") else None,
                                               allow_redirects=False) as resp:
                        results[method] = (resp.status, resp.headers.get("Location"))
        finally:
            await listener.stop()
        return results

    results = asyncio.run(scenario())
    for method, (status, location) in results.items():
        assert status == 302, method
        assert location == "https://127.0.0.1/form", method


def test_server_start_and_shutdown(tmp_path):
    site = make_site(tmp_path)

    async def scenario():
        server = DevServer(site_config(site))
        await server.start()
        port = server.runner.addresses[0][1]
        async with aiohttp.ClientSession() as session:
            async with session.get(f"http://127.0.0.1:{port}/style.css") as resp:
                status = resp.status
        await asyncio.wait_for(server.shutdown(1.0), timeout=5)
        # A second call is a no-op
        await server.shutdown(1.0)
        await asyncio.wait_for(server.wait_closed(), timeout=1)
        return status, server.runner

    status, runner = asyncio.run(scenario())
    assert status == 200
    assert runner is None


def test_server_refuses_missing_root(tmp_path):
    server = DevServer(site_config(tmp_path / "missing"))
    with pytest.raises(DocumentRootError):
        asyncio.run(server.start())


def test_server_needs_certificates_for_tls(tmp_path):
    site = make_site(tmp_path)
    config = site_config(site, tls=True, certfile=str(tmp_path / "no.crt"),
                         keyfile=str(tmp_path / "no.key"))
    with pytest.raises(ConfigError):
        asyncio.run(DevServer(config).start())


class SlowStop:
    """Listener stand-in whose shutdown never finishes on its own"""

    async def cleanup(self):
        await asyncio.sleep(60)

    async def stop(self):
        await asyncio.sleep(60)


def test_shutdown_deadline_covers_all_listeners(tmp_path):
    async def scenario():
        server = DevServer(site_config(tmp_path))
        server.runner = SlowStop()
        server.redirect = SlowStop()
        loop = asyncio.get_running_loop()
        started = loop.time()
        await server.shutdown(0.3)
        return loop.time() - started, server

    elapsed, server = asyncio.run(scenario())
    assert elapsed < 0.55
    assert server.runner is None
    assert server.redirect is None


@pytest.mark.skipif(sys.platform == "win32", reason="needs loop signal handlers")
def test_run_stops_on_sigterm(tmp_path):
    site = make_site(tmp_path)
    config = site_config(site, redirect_from=None, shutdown_timeout=1.0)

    async def scenario():
        task = asyncio.create_task(run(config))
        # run() installs its signal handlers before its first await
        await asyncio.sleep(0.3)
        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.wait_for(task, timeout=5)

    asyncio.run(scenario())
