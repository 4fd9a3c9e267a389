"""
=============================================================================
STATIC HTTP SERVER
=============================================================================

Ties the transport (socket server, thread pool, connections) to the
request pipeline.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          HTTPServer                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   SocketServer ──accept──▶ ThreadPool ──worker──▶ _process_connection│
    │                                                      │              │
    │                        ┌─────────────────────────────┘              │
    │                        ▼                                            │
    │        read_request → RequestParser → RequestPipeline               │
    │                                             │                       │
    │                        ┌────────────────────┘                       │
    │                        ▼                                            │
    │        Connection.send_response (streamed) → access log             │
    │                        │                                            │
    │                        └── keep-alive? loop : close                 │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
TRANSPORT ERRORS
=============================================================================

Problems with the bytes on the wire never reach the pipeline. They are
answered with a plain-text status and the connection is closed:

    request exceeds max_request_size   413 Payload Too Large
    nothing arrives within timeout     408 Request Timeout
    unparsable request                 400 / 405 / 505
    thread pool queue full             503 Service Unavailable

=============================================================================
"""

import logging
import socket
import time
from typing import Any, Optional

from . import access_log
from .config import ServerConfig
from .core import Connection, SocketServer, ThreadPool
from .errors import PayloadTooLarge
from .http import HTTPParseError, HTTPStatus, RequestParser, ResponseBuilder
from .pipeline import RequestPipeline

logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Static file server.

        server = HTTPServer(ServerConfig(root_directory="./public"))
        server.run()                 # blocks until SIGINT/SIGTERM or stop()

    Args:
        config:       Server configuration, validated here.
        mock_handler: Optional MockHandler (or plain callable) answering
                      requests under config.mock_prefix.
    """

    def __init__(self, config: Optional[ServerConfig] = None, mock_handler: Any = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self.pipeline = RequestPipeline(self.config, mock_handler=mock_handler)

        self._running = False

    @property
    def port(self) -> int:
        """The bound port (differs from config.port after a retry or port 0)."""
        return self._socket_server.port

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, banner: bool = True):
        """Bind, start workers, and serve until stopped."""
        self._setup_logging()

        self._socket_server.bind()
        self.pipeline.address = (self.config.host, self.port)

        self._running = True
        self._thread_pool.start()

        if banner:
            self._print_startup_banner()

        try:
            self._socket_server.serve_forever(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def stop(self):
        """Ask the accept loop to exit; run() then shuts the pool down."""
        self._running = False
        self._socket_server.shutdown()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("staticserver").setLevel(level)

    def _print_startup_banner(self):
        port = self.port
        print()
        print(f"  {self.config.server_name} serving {self.config.root_directory}")
        print()
        print(f"  Local:    http://{self.config.host}:{port}")
        print(f"  Network:  http://{lan_address()}:{port}")
        print()
        print(f"  Workers: {self.config.min_workers}-{self.config.max_workers} threads")
        print("  Press Ctrl+C to stop")
        print()

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=self.config.keep_alive_timeout + 5)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Runs on the accept thread: queue the connection, never block."""
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            timeout=self.config.timeout,
            on_expired=self._reject_connection,
            block=False,
        )
        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._reject_connection(conn)

    def _reject_connection(self, conn: Connection):
        self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE)
        conn.close()

    def _process_connection(self, conn: Connection):
        """Runs on a worker: serve requests until the connection ends."""
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                except PayloadTooLarge as e:
                    logger.warning(f"[{conn.id}] {e.detail}")
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE)
                    break
                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                    break

                if raw_request is None:
                    break

                try:
                    request = self._parser.parse(raw_request, conn.address)
                except HTTPParseError as e:
                    logger.info(f"[{conn.id}] Bad request: {e}")
                    self._send_error(conn, e.status_code)
                    break

                if not self._serve_request(conn, request):
                    break

                conn.set_keep_alive()

    def _serve_request(self, conn: Connection, request) -> bool:
        """
        Run one request through the pipeline and write the response.

        Returns:
            True if the connection may be reused.
        """
        start = time.time()
        result = self.pipeline.handle(request)
        response = result.response

        keep_alive = request.is_keep_alive and self.config.keep_alive and self._running
        if keep_alive:
            response.set_header("Connection", "keep-alive")
            response.set_header("Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}")
        else:
            response.set_header("Connection", "close")

        sent = conn.send_response(
            response,
            self.config.server_name,
            include_body=request.method != "HEAD",
        )

        access_log.emit(
            access_log.RequestLog(
                method=request.method,
                path=request.raw_path,
                query=request.raw_query,
                client_ip=conn.client_ip,
                user_agent=request.user_agent or "-",
                status_code=int(response.status),
                content_length=conn.last_response_size,
                duration_ms=(time.time() - start) * 1000,
                state=result.state.value,
            ),
            log_format=self.config.log_format,
        )

        return sent and keep_alive

    def _send_error(self, conn: Connection, status: int):
        response = ResponseBuilder().status(status).text(HTTPStatus(status).phrase).close_connection().build()
        conn.send_response(response, self.config.server_name)


def lan_address() -> str:
    """
    Best guess at this machine's LAN IP.

    Connecting a UDP socket sends nothing; it only makes the kernel pick
    the outgoing interface.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect(("10.255.255.255", 1))
        return sock.getsockname()[0]
    except OSError:
        return "127.0.0.1"
    finally:
        sock.close()
