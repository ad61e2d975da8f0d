import asyncio
import logging
import os
import signal
import sys

from devserver.core.config import ServerConfig
from devserver.core.errors import DevServerError
from devserver.server import DevServer


async def run(config: ServerConfig):
    server = DevServer(config)
    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()

    def on_signal(sig: signal.Signals):
        print(f"[SERVER] {sig.name} signal received")
        stop_requested.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, on_signal, sig)
        except NotImplementedError:
            # Windows event loops have no signal handlers; CTRL+C raises KeyboardInterrupt
            pass

    print("[SERVER] Starting HTTP servers...")
    try:
        await server.start()
        print("[SERVER] Press CTRL+C to stop servers")
        await stop_requested.wait()
    finally:
        await server.shutdown(config.shutdown_timeout)


def main():
    logging.basicConfig(
        level=os.getenv("DEVSERVER_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = ServerConfig.from_env()
        asyncio.run(run(config))
    except (DevServerError, OSError) as e:
        print(f"[!] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
