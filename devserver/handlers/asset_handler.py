import logging
from typing import Dict, Optional

from aiohttp import web

from devserver.core.errors import AssetReadError
from devserver.core.models import AssetRecord
from devserver.core.resolver import AssetResolver

logger = logging.getLogger(__name__)

NO_CACHE = "no-cache, no-store, must-revalidate"


def relative_request_path(url_path: str) -> Optional[str]:
    """Turn a decoded URL path into a path relative to the base directories.

    Returns None for paths that would leave the base directories.
    """
    relative = url_path[1:] if url_path.startswith("/") else url_path
    segments = relative.replace("\\", "/").split("/")
    if relative.startswith(("/", "\\")) or ".." in segments:
        return None
    return relative


def response_headers(record: AssetRecord) -> Dict[str, str]:
    return {
        "Cache-Control": NO_CACHE,
        "Last-Modified": record.last_modified,
        "Content-Length": str(record.size),
        "Content-Type": record.content_type,
    }


def not_found() -> web.Response:
    return web.Response(status=404, text="404 Not Found")


class AssetHandler:
    def __init__(self, resolver: AssetResolver):
        self.resolver = resolver

    async def handle(self, request: web.Request) -> web.StreamResponse:
        """Serve the requested file, or the default document if there is none"""
        path = relative_request_path(request.path)
        if path is None:
            logger.warning(f"[HANDLER] Refusing path outside the document root: {request.path}")
            return not_found()

        record = await self.resolver.resolve_or_default(path)
        if record is None:
            return not_found()

        headers = response_headers(record)
        if record.is_cached:
            return web.Response(body=record.buffer, headers=headers)
        return await self._stream(request, record, headers)

    async def _stream(self, request: web.Request, record: AssetRecord,
                      headers: Dict[str, str]) -> web.StreamResponse:
        stream = record.stream
        response = web.StreamResponse(status=200, headers=headers)
        try:
            await response.prepare(request)
            if request.method != "HEAD":
                async for chunk in stream:
                    await response.write(chunk)
            await response.write_eof()
        except AssetReadError as e:
            # Headers are already out; the only option left is to drop the connection
            logger.warning(f"[HANDLER] Aborting {request.path}: {e}")
            if request.transport is not None:
                request.transport.close()
        except ConnectionResetError:
            logger.debug(f"[HANDLER] Client went away during {request.path}")
        finally:
            await stream.close()
        return response
