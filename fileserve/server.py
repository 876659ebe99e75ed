import logging
import socket
import threading
from typing import Optional, Tuple

from .config import ServerConfig
from .engine import HTTPEngine
from .models import Handler
from .pool import WorkerPool, close_quietly

log = logging.getLogger(__name__)


class ThreadedHTTPServer:
    def __init__(self, config: ServerConfig, handler: Handler) -> None:
        self.config = config
        self.handler = handler

        # Created on bind()
        self._listen_sock: Optional[socket.socket] = None
        self._pool: Optional[WorkerPool] = None

        self._stop_event = threading.Event()

    @property
    def server_address(self) -> Tuple[str, int]:
        if self._listen_sock is None:
            raise RuntimeError("server is not bound")
        return self._listen_sock.getsockname()[:2]

    def bind(self) -> None:
        """
        Create/bind/listen. Raises OSError when the address is unavailable.
        SO_REUSEADDR only skips TIME_WAIT; a second live listener on the same
        port still fails.
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
            sock.settimeout(self.config.accept_timeout)
        except OSError:
            sock.close()
            raise
        self._listen_sock = sock

    def serve_forever(self) -> None:
        if self._listen_sock is None:
            self.bind()
        self._stop_event.clear()

        engine = HTTPEngine(self.config, self.handler)
        self._pool = WorkerPool(self.config, engine)
        self._pool.start()

        try:
            self._accept_loop()
        finally:
            self._cleanup()

    def stop(self) -> None:
        self._stop_event.set()

        # unblock accept() immediately
        if self._listen_sock is not None:
            close_quietly(self._listen_sock)

    def _cleanup(self) -> None:
        if self._listen_sock is not None:
            close_quietly(self._listen_sock)

        if self._pool is not None:
            self._pool.stop()

        self._listen_sock = None
        self._pool = None

    def _accept_loop(self) -> None:
        """
        Accept connections and submit to worker pool.
        Exits when stop_event is set or listen socket is closed.
        """
        assert self._listen_sock is not None
        assert self._pool is not None

        while not self._stop_event.is_set():
            try:
                conn, addr = self._listen_sock.accept()
            except socket.timeout:
                continue
            except OSError:
                # socket was likely closed during stop()
                break

            try:
                conn.settimeout(self.config.recv_timeout)
                conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            except OSError:
                close_quietly(conn)
                continue

            # Pool closes conn after handling.
            self._pool.submit(conn, addr)
