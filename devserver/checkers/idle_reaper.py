import asyncio
import logging
from enum import Enum
from typing import Optional

from devserver.core.errors import AssetReadError, StreamClosedError

logger = logging.getLogger(__name__)

DEFAULT_IDLE_TIMEOUT = 10.0
DEFAULT_CHUNK_SIZE = 64 * 1024


class ReaperState(Enum):
    IDLE_TIMER_UNSET = "idle_timer_unset"
    IDLE_TIMER_RUNNING = "idle_timer_running"
    CLOSED = "closed"


class IdleStream:
    """Chunked reader over an open aiofiles handle that closes itself when idle.

    Every produced chunk restarts an idle timer. If the consumer does not ask
    for the next chunk before the timer fires, the handle is closed. End of
    data closes the handle as well. Closing is idempotent.
    """

    def __init__(self, handle, idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
                 chunk_size: int = DEFAULT_CHUNK_SIZE, name: Optional[str] = None):
        self._handle = handle
        self.idle_timeout = idle_timeout
        self.chunk_size = chunk_size
        self.name = name or repr(handle)
        self.state = ReaperState.IDLE_TIMER_UNSET
        self.closed_by: Optional[str] = None
        self._timer: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self.state is ReaperState.CLOSED

    async def read(self) -> bytes:
        """Read the next chunk; returns b"" once the file is exhausted"""
        if self.closed:
            if self.closed_by == "end":
                return b""
            raise StreamClosedError(f"Stream {self.name} was closed ({self.closed_by})")

        # The consumer is active while it waits on a read
        self._cancel_timer()
        try:
            chunk = await self._handle.read(self.chunk_size)
        except (OSError, ValueError) as e:
            if self.closed:
                raise StreamClosedError(f"Stream {self.name} was closed ({self.closed_by})") from e
            await self._close("error")
            raise AssetReadError(f"Failed reading {self.name}: {e}") from e

        if self.closed:
            # Closed by the caller while the read was in flight
            raise StreamClosedError(f"Stream {self.name} was closed ({self.closed_by})")

        if not chunk:
            await self._close("end")
            return b""

        self._start_timer()
        return chunk

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        chunk = await self.read()
        if not chunk:
            raise StopAsyncIteration
        return chunk

    def arm(self):
        """Start the idle timer before the first read, so an unread stream is reaped too"""
        if self.state is ReaperState.IDLE_TIMER_UNSET:
            self._start_timer()

    async def close(self):
        """Release the file handle; no-op if already closed"""
        await self._close("caller")

    def _start_timer(self):
        self._timer = asyncio.create_task(self._reap_when_idle())
        self.state = ReaperState.IDLE_TIMER_RUNNING

    def _cancel_timer(self):
        if self._timer is not None:
            if self._timer is not asyncio.current_task():
                self._timer.cancel()
            self._timer = None
        if not self.closed:
            self.state = ReaperState.IDLE_TIMER_UNSET

    async def _reap_when_idle(self):
        try:
            await asyncio.sleep(self.idle_timeout)
        except asyncio.CancelledError:
            return
        logger.info(f"[REAPER] Closing {self.name} after {self.idle_timeout}s without reads")
        await self._close("idle")

    async def _close(self, reason: str):
        if self.closed:
            return
        self._cancel_timer()
        self.state = ReaperState.CLOSED
        self.closed_by = reason
        try:
            await self._handle.close()
        except OSError as e:
            logger.warning(f"[REAPER] Error closing {self.name}: {e}")
        logger.debug(f"[REAPER] Closed {self.name} ({reason})")
