"""
TCP listener for the browser interface.

Connections are accepted one at a time on the calling thread. Each
accepted connection is handed to its own daemon worker thread (or handled
inline), runs one request/response cycle and is closed. There is no
admission control: every connection is served.
"""

import socket
import threading
from typing import Optional, Tuple

from .logger import get_logger
from .protocol import ConnectionHandler

logger = get_logger()

ACCEPT_POLL_INTERVAL = 0.5


class JobServer:
    """Serves a Router over plain HTTP until shutdown() is called."""

    def __init__(
        self,
        router,
        host: str = "127.0.0.1",
        port: int = 8080,
        timeout: Optional[float] = 10.0,
        threaded: bool = True,
    ):
        self.handler = ConnectionHandler(router, timeout=timeout)
        self.threaded = threaded
        self._stop = threading.Event()
        self._stopped = threading.Event()
        self._stopped.set()

        self.socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self.socket.bind((host, port))
            self.socket.listen()
        except OSError:
            self.socket.close()
            raise
        self.socket.settimeout(ACCEPT_POLL_INTERVAL)

    @property
    def server_address(self) -> Tuple[str, int]:
        return self.socket.getsockname()[:2]

    @property
    def url(self) -> str:
        host, port = self.server_address
        return f"http://{host}:{port}"

    def serve_forever(self) -> None:
        self._stop.clear()
        self._stopped.clear()
        logger.info(f"Listening on {self.url}")
        try:
            while not self._stop.is_set():
                try:
                    conn, peer = self.socket.accept()
                except socket.timeout:
                    continue
                except OSError as e:
                    if self._stop.is_set():
                        break
                    logger.error("Error while accepting connection", error=str(e))
                    continue

                if self.threaded:
                    worker = threading.Thread(
                        target=self.handler.handle, args=(conn, peer), daemon=True
                    )
                    worker.start()
                else:
                    self.handler.handle(conn, peer)
        finally:
            self._stopped.set()
            logger.log_metrics_summary()

    def shutdown(self, wait: float = 5.0) -> None:
        """Stop the accept loop and wait for it to exit."""
        self._stop.set()
        self._stopped.wait(wait)

    def server_close(self) -> None:
        self.socket.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()
        self.server_close()
