class DevServerError(Exception):
    """Base class for every error raised by the dev server"""


class ConfigError(DevServerError):
    """Invalid configuration or missing TLS material"""


class DocumentRootError(DevServerError):
    """The document root cannot be enumerated; the server cannot start"""

    def __init__(self, root: str, reason: str):
        super().__init__(f"Cannot read document root {root}: {reason}")
        self.root = root
        self.reason = reason


class AssetReadError(DevServerError):
    """A file failed while it was being streamed to a client"""


class StreamClosedError(AssetReadError):
    """Read attempted on a stream whose file handle is already closed"""
