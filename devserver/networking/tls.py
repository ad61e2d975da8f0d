import os
import ssl

from devserver.core.errors import ConfigError


def load_tls_context(certfile: str, keyfile: str) -> ssl.SSLContext:
    """Server-side TLS context from a PEM certificate and key"""
    missing = [path for path in (certfile, keyfile) if not os.path.isfile(path)]
    if missing:
        raise ConfigError(
            f"TLS certificate files not found: {', '.join(missing)}. "
            "Generate them with e.g. "
            "`mkcert -cert-file server.crt -key-file server.key localhost 127.0.0.1 ::1` "
            "or set DEVSERVER_TLS=0 to serve plain HTTP"
        )

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    try:
        context.load_cert_chain(certfile=certfile, keyfile=keyfile)
    except (ssl.SSLError, OSError) as e:
        raise ConfigError(f"Failed to load TLS certificate {certfile}: {e}") from e
    return context
