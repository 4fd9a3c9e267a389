"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

The listening socket and the accept loop.

    ┌──────────┐   bind()/listen()   ┌─────────────┐  accept()  ┌────────────┐
    │ socket() │ ──────────────────▶ │ LISTENING   │ ─────────▶ │ Connection │
    └──────────┘   (port retries)    │ 1s timeout  │            │ → handler  │
                                     └─────────────┘            └────────────┘

The accept loop does no I/O on client sockets. It wraps each accepted
socket in a Connection and hands it to the connection handler (the
HTTPServer, which queues it on the thread pool), then goes straight back
to accept().

=============================================================================
PORT RETRY
=============================================================================

Starting a second dev server on the default port is common. With
``port_retries = N`` a bind failing with EADDRINUSE moves on to the next
port, up to N times:

    3000 in use → 3001 in use → 3002 bound

Port 0 asks the OS for any free port and is never retried. Either way
``SocketServer.port`` holds the port actually bound.

SO_REUSEPORT is not set. With it, Linux lets a second process bind an
occupied port and EADDRINUSE never happens.

=============================================================================
"""

import errno
import logging
import signal
import socket
import threading
from typing import Callable, Optional

from ..config import ServerConfig
from .connection import Connection

logger = logging.getLogger(__name__)

ConnectionHandler = Callable[[Connection], None]


class SocketServer:
    """
    Listening socket plus accept loop.

        server = SocketServer(config)
        server.bind()
        print(server.port)
        server.serve_forever(handle_connection)   # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self.port: int = config.port
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._ready = threading.Event()
        self._previous_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    def _open_listener(self, family: int) -> socket.socket:
        sock = socket.socket(family, socket.SOCK_STREAM)

        # Restarting right after a shutdown must not hit TIME_WAIT.
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() wakes up every second to check the running flag.
        sock.settimeout(1.0)
        return sock

    def _address_family(self, port: int) -> int:
        """AF_INET or AF_INET6, whichever the configured host resolves to first."""
        try:
            infos = socket.getaddrinfo(self.config.host, port, type=socket.SOCK_STREAM)
        except socket.gaierror as e:
            raise OSError(f"Cannot resolve host {self.config.host!r}: {e}") from e
        return infos[0][0]

    # =========================================================================
    # BINDING
    # =========================================================================

    def bind(self) -> int:
        """
        Bind and listen, walking up from the configured port on EADDRINUSE.

        Returns:
            The port actually bound.

        Raises:
            OSError: If no port could be bound.
        """
        host = self.config.host
        port = self.config.port
        attempts = self.config.port_retries + 1 if port else 1
        family = self._address_family(port)

        for attempt in range(1, attempts + 1):
            sock = self._open_listener(family)
            try:
                sock.bind((host, port))
            except OSError as e:
                sock.close()
                if e.errno != errno.EADDRINUSE or attempt == attempts:
                    logger.error(f"Failed to bind to {host}:{port}: {e}")
                    raise
                logger.warning(f"Port {port} is in use, trying {port + 1}")
                port += 1
                continue

            sock.listen(self.config.backlog)
            self._socket = sock
            self.port = sock.getsockname()[1]
            logger.info(f"Listening on {host}:{self.port}")
            return self.port

        raise OSError(errno.EADDRINUSE, "No free port found")

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def _install_signal_handlers(self):
        """
        SIGINT/SIGTERM trigger a graceful shutdown.

        signal.signal() only works in the main thread; a server started from
        a background thread (tests, embedding) is stopped via shutdown().
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def on_signal(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, shutting down...")
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._previous_handlers[sig] = signal.signal(sig, on_signal)

    def _restore_signal_handlers(self):
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler)
        self._previous_handlers.clear()

    # =========================================================================
    # ACCEPT LOOP
    # =========================================================================

    def serve_forever(self, handler: ConnectionHandler):
        """Run the accept loop until shutdown()."""
        if self._socket is None:
            raise RuntimeError("serve_forever() called before bind()")

        self._running = True
        self._install_signal_handlers()
        self._ready.set()

        try:
            while self._running:
                conn = self._accept()
                if conn is not None:
                    handler(conn)
        finally:
            self._close_listener()

    def _accept(self) -> Optional[Connection]:
        try:
            client_socket, client_address = self._socket.accept()
        except socket.timeout:
            return None
        except OSError as e:
            if self._running:
                logger.error(f"Accept error: {e}")
            self._running = False
            return None

        logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")
        return Connection(
            socket=client_socket,
            address=client_address[:2],
            buffer_size=self.config.buffer_size,
            timeout=self.config.timeout,
            keep_alive_timeout=self.config.keep_alive_timeout,
            max_request_size=self.config.max_request_size,
        )

    def shutdown(self):
        """Stop accepting. Takes effect within one accept timeout."""
        logger.info("Stopping accept loop...")
        self._running = False

    def _close_listener(self):
        self._restore_signal_handlers()
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        self._ready.clear()
        logger.info("Listener closed")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop is running."""
        return self._ready.wait(timeout)
