import logging
import os
from types import MappingProxyType
from typing import Dict, Iterable, List, Optional, Tuple

import aiofiles
import aiofiles.os

from devserver.core import mime
from devserver.core.errors import DocumentRootError
from devserver.core.models import AssetRecord, Cache, http_date

logger = logging.getLogger(__name__)


def is_ignored(path: str, ignore: Iterable[str]) -> bool:
    """True if path is one of the ignored directories or lies below one"""
    path = os.path.abspath(path)
    for ignored in ignore:
        ignored = os.path.abspath(ignored)
        try:
            if os.path.commonpath([ignored, path]) == ignored:
                return True
        except ValueError:
            # Different drives on Windows
            continue
    return False


def relative_key(root: str, path: str) -> str:
    """Cache key for a file: its path below root with forward slashes"""
    return os.path.relpath(path, root).replace(os.sep, "/")


async def read_asset(path: str) -> Optional[AssetRecord]:
    """Read a whole file into a buffered record, or None if it cannot be read"""
    try:
        async with aiofiles.open(path, "rb") as f:
            data = await f.read()
        stats = await aiofiles.os.stat(path)
    except OSError as e:
        logger.warning(f"[CACHE] Skipping {path}: {e}")
        return None

    return AssetRecord(
        last_modified=http_date(stats.st_mtime),
        content_type=mime.type_for_path(path),
        size=len(data),
        buffer=data,
    )


async def _list_dir(path: str) -> Tuple[List[str], List[str]]:
    files, dirs = [], []
    with await aiofiles.os.scandir(path) as entries:
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    dirs.append(entry.path)
                elif entry.is_file():
                    files.append(entry.path)
            except OSError as e:
                logger.warning(f"[CACHE] Skipping {entry.path}: {e}")
    return sorted(files), sorted(dirs)


async def build_cache(source_root: str, ignore: Iterable[str] = ()) -> Cache:
    """Read every non-ignored file under source_root into memory.

    Returns a read-only mapping keyed by forward-slash relative path.
    Raises DocumentRootError when source_root itself cannot be listed;
    unreadable files and subdirectories below it are skipped.
    """
    root = os.path.abspath(source_root)
    ignore = [os.path.abspath(path) for path in ignore]
    cache: Dict[str, AssetRecord] = {}

    try:
        if not await aiofiles.os.path.isdir(root):
            raise DocumentRootError(root, "not a directory")
        pending = [await _list_dir(root)]
    except OSError as e:
        raise DocumentRootError(root, e.strerror or str(e)) from e

    total_bytes = 0
    while pending:
        files, dirs = pending.pop()
        for path in files:
            if is_ignored(path, ignore):
                continue
            record = await read_asset(path)
            if record is None:
                continue
            cache[relative_key(root, path)] = record
            total_bytes += record.size

        for path in dirs:
            if is_ignored(path, ignore):
                logger.debug(f"[CACHE] Ignoring {path}")
                continue
            try:
                pending.append(await _list_dir(path))
            except OSError as e:
                logger.warning(f"[CACHE] Skipping directory {path}: {e}")

    logger.info(f"[CACHE] Cached {len(cache)} files ({total_bytes} bytes) from {root}")
    return MappingProxyType(cache)
