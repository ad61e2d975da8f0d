from dataclasses import dataclass
from email.utils import formatdate
from typing import Mapping, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from devserver.checkers.idle_reaper import IdleStream


def http_date(timestamp: float) -> str:
    """Format a POSIX timestamp as an HTTP date (IMF-fixdate, GMT)"""
    return formatdate(timestamp, usegmt=True)


@dataclass(frozen=True)
class AssetRecord:
    last_modified: str
    content_type: str
    size: int
    buffer: Optional[bytes] = None
    stream: Optional["IdleStream"] = None

    def __post_init__(self):
        if (self.buffer is None) == (self.stream is None):
            raise ValueError("AssetRecord needs exactly one of buffer or stream")

    @property
    def is_cached(self) -> bool:
        return self.buffer is not None


# Relative path (forward slashes) -> buffered record, read-only after build
Cache = Mapping[str, AssetRecord]
