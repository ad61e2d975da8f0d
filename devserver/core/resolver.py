import logging
import os
import stat
from typing import Optional, Sequence

import aiofiles
import aiofiles.os

from devserver.checkers.idle_reaper import DEFAULT_IDLE_TIMEOUT, IdleStream
from devserver.core import mime
from devserver.core.models import AssetRecord, Cache, http_date

logger = logging.getLogger(__name__)


async def open_asset_stream(path: str, idle_timeout: float = DEFAULT_IDLE_TIMEOUT) -> Optional[AssetRecord]:
    """Open a regular file for streaming, or None if there is nothing to serve"""
    try:
        stats = await aiofiles.os.stat(path)
    except (OSError, ValueError) as e:
        logger.debug(f"[RESOLVER] No file at {path}: {e}")
        return None
    if not stat.S_ISREG(stats.st_mode):
        return None

    try:
        handle = await aiofiles.open(path, "rb")
    except OSError as e:
        logger.warning(f"[RESOLVER] Failed to open {path}: {e}")
        return None

    stream = IdleStream(handle, idle_timeout=idle_timeout, name=path)
    stream.arm()
    return AssetRecord(
        last_modified=http_date(stats.st_mtime),
        content_type=mime.type_for_path(path),
        size=stats.st_size,
        stream=stream,
    )


async def resolve(base_paths: Sequence[str], request_path: str, cache: Cache,
                  idle_timeout: float = DEFAULT_IDLE_TIMEOUT) -> Optional[AssetRecord]:
    """Find request_path in the cache or, failing that, on disk under each base path.

    Base paths are tried in order and the first hit wins. Files left out of
    the cache (ignored directories included) are still served from disk.
    """
    for base_path in base_paths:
        record = cache.get(request_path)
        if record is None:
            record = await open_asset_stream(os.path.join(base_path, request_path), idle_timeout)
        if record is not None:
            return record
    return None


class AssetResolver:
    def __init__(self, base_paths: Sequence[str], cache: Cache,
                 default_document: str = "index.html",
                 idle_timeout: float = DEFAULT_IDLE_TIMEOUT):
        self.base_paths = list(base_paths)
        self.cache = cache
        self.default_document = default_document
        self.idle_timeout = idle_timeout

    async def resolve(self, request_path: str) -> Optional[AssetRecord]:
        return await resolve(self.base_paths, request_path, self.cache, self.idle_timeout)

    async def resolve_or_default(self, request_path: str) -> Optional[AssetRecord]:
        """Resolve the exact path, falling back to the default document"""
        record = await self.resolve(request_path)
        if record is None:
            record = await self.resolve(self.default_document)
        return record
