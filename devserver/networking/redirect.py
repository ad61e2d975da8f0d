import logging
from typing import Optional

from aiohttp import web

logger = logging.getLogger(__name__)


def https_location(host_header: Optional[str], path: str, https_port: int) -> str:
    """Same host and path on the HTTPS listener; the port is omitted when it is 443"""
    host = host_header or "localhost"
    if host.startswith("["):
        # IPv6 literal, e.g. [::1]:8080
        hostname = host[:host.find("]") + 1] if "]" in host else host
    else:
        hostname = host.split(":")[0]
    port = f":{https_port}" if https_port != 443 else ""
    return f"https://{hostname}{port}{path}"


class RedirectListener:
    """Plain HTTP listener that sends every request, whatever its method, to the HTTPS server"""

    def __init__(self, host: str, port: int, https_port: int, shutdown_timeout: float = 5.0):
        self.host = host
        self.port = port
        self.https_port = https_port
        self.shutdown_timeout = shutdown_timeout
        self._runner: Optional[web.AppRunner] = None

    @property
    def bound_port(self) -> Optional[int]:
        if self._runner is None or not self._runner.addresses:
            return None
        return self._runner.addresses[0][1]

    async def handle(self, request: web.Request) -> web.Response:
        location = https_location(request.headers.get("Host"), request.raw_path, self.https_port)
        logger.debug(f"[REDIRECT] {request.method} {request.raw_path} -> {location}")
        return web.Response(status=302, headers={"Location": location})

    async def start(self):
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self.handle)
        self._runner = web.AppRunner(app, shutdown_timeout=self.shutdown_timeout)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()

    async def stop(self):
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
