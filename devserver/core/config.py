import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from devserver.core.errors import ConfigError

_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class ServerConfig:
    source_root: str = "."
    base_paths: List[str] = field(default_factory=list)
    ignore: List[str] = field(default_factory=list)
    default_document: str = "index.html"
    idle_timeout_ms: int = 10000
    host: str = "0.0.0.0"
    port: int = 443
    redirect_from: Optional[int] = 80
    tls: bool = True
    certfile: str = "server.crt"
    keyfile: str = "server.key"
    shutdown_timeout: float = 5.0
    precache: bool = True

    def __post_init__(self):
        self.source_root = os.path.abspath(self.source_root)
        if not self.base_paths:
            self.base_paths = [self.source_root]
        self.base_paths = [os.path.abspath(path) for path in self.base_paths]
        # Relative ignore entries are taken relative to the document root
        self.ignore = [os.path.abspath(os.path.join(self.source_root, path)) for path in self.ignore]
        if self.idle_timeout_ms <= 0:
            raise ConfigError(f"idle_timeout_ms must be positive, got {self.idle_timeout_ms}")
        if self.shutdown_timeout < 0:
            raise ConfigError(f"shutdown_timeout must not be negative, got {self.shutdown_timeout}")

    @property
    def idle_timeout(self) -> float:
        """Idle timeout in seconds"""
        return self.idle_timeout_ms / 1000

    @property
    def scheme(self) -> str:
        return "https" if self.tls else "http"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "ServerConfig":
        """Build a config from DEVSERVER_* variables, after loading a .env file"""
        load_dotenv(env_file)
        defaults = cls.__dataclass_fields__
        return cls(
            source_root=os.getenv("DEVSERVER_ROOT", "."),
            base_paths=_path_list(os.getenv("DEVSERVER_BASE_PATHS")),
            ignore=_path_list(os.getenv("DEVSERVER_IGNORE")),
            default_document=os.getenv("DEVSERVER_DEFAULT_DOCUMENT", defaults["default_document"].default),
            idle_timeout_ms=_number("DEVSERVER_IDLE_TIMEOUT_MS", defaults["idle_timeout_ms"].default, int),
            host=os.getenv("DEVSERVER_HOST", defaults["host"].default),
            port=_number("DEVSERVER_PORT", defaults["port"].default, int),
            redirect_from=_optional_port("DEVSERVER_REDIRECT_FROM", defaults["redirect_from"].default),
            tls=_flag("DEVSERVER_TLS", True),
            certfile=os.getenv("DEVSERVER_CERT", defaults["certfile"].default),
            keyfile=os.getenv("DEVSERVER_KEY", defaults["keyfile"].default),
            shutdown_timeout=_number("DEVSERVER_SHUTDOWN_TIMEOUT", defaults["shutdown_timeout"].default, float),
            precache=_flag("DEVSERVER_PRECACHE", True),
        )


def _path_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [path for path in value.split(os.pathsep) if path]


def _number(name: str, default, kind):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return kind(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


def _optional_port(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None:
        return default
    if value.strip() == "":
        return None
    return _number(name, default, int)


def _flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in _FALSE_VALUES
