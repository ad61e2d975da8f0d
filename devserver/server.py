import asyncio
import logging
from types import MappingProxyType
from typing import Optional

from aiohttp import web

from devserver.core.cache import build_cache
from devserver.core.config import ServerConfig
from devserver.core.resolver import AssetResolver
from devserver.handlers.asset_handler import AssetHandler
from devserver.networking.redirect import RedirectListener
from devserver.networking.tls import load_tls_context

logger = logging.getLogger(__name__)


async def create_app(config: ServerConfig) -> web.Application:
    """Build the cache and wire the asset handler into an aiohttp application"""
    if config.precache:
        cache = await build_cache(config.source_root, config.ignore)
    else:
        cache = MappingProxyType({})

    resolver = AssetResolver(config.base_paths, cache,
                             default_document=config.default_document,
                             idle_timeout=config.idle_timeout)
    handler = AssetHandler(resolver)

    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", handler.handle)
    return app


class DevServer:
    def __init__(self, config: ServerConfig):
        self.config = config
        self.runner: Optional[web.AppRunner] = None
        self.redirect: Optional[RedirectListener] = None
        self._closing = False
        self._stopped = asyncio.Event()

    async def start(self):
        """Build the cache and open the listeners"""
        config = self.config
        ssl_context = load_tls_context(config.certfile, config.keyfile) if config.tls else None

        app = await create_app(config)
        self.runner = web.AppRunner(app, shutdown_timeout=config.shutdown_timeout)
        await self.runner.setup()
        site = web.TCPSite(self.runner, config.host, config.port, ssl_context=ssl_context)
        await site.start()
        print(f"[SERVER] Open server at {config.scheme}://localhost:{config.port}")

        if config.tls and config.redirect_from is not None:
            self.redirect = RedirectListener(config.host, config.redirect_from, config.port,
                                             shutdown_timeout=config.shutdown_timeout)
            await self.redirect.start()
            print(f"[SERVER] Open redirect at http://localhost:{config.redirect_from}")

    async def shutdown(self, deadline: Optional[float] = None):
        """Stop accepting connections and let in-flight responses finish.

        All listeners share one budget of `deadline` seconds, after which
        shutdown carries on regardless.
        """
        if self._closing or self._stopped.is_set():
            return
        self._closing = True
        if deadline is None:
            deadline = self.config.shutdown_timeout

        print("[SERVER] Closing servers...")
        loop = asyncio.get_running_loop()
        ends_at = loop.time() + deadline
        if self.runner is not None:
            await self._bounded("HTTP server", self.runner.cleanup(), ends_at)
            self.runner = None
        if self.redirect is not None:
            await self._bounded("redirect server", self.redirect.stop(), ends_at)
            self.redirect = None
        print("[SERVER] Servers closed")

        self._closing = False
        self._stopped.set()

    async def _bounded(self, name: str, closing, ends_at: float):
        remaining = max(0.0, ends_at - asyncio.get_running_loop().time())
        try:
            await asyncio.wait_for(closing, timeout=remaining)
        except asyncio.TimeoutError:
            logger.warning(f"[SERVER] {name} did not stop before the shutdown deadline, moving on")

    async def wait_closed(self):
        await self._stopped.wait()
