"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket with buffered request reading and
response writing.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

recv() returns whatever the kernel has buffered: half a request line, two
pipelined requests, or a header block split across packets. So we keep a
buffer and look for protocol delimiters:

    ┌──────────────────────────────┬────────┬──────────────────────────┐
    │ request line + headers       │\r\n\r\n│ body (Content-Length)    │
    └──────────────────────────────┴────────┴──────────────────────────┘
      read until the terminator               then read exactly N bytes

Anything after the body stays in the buffer for the next keep-alive
request.

=============================================================================
WRITING A STREAMED RESPONSE
=============================================================================

    head bytes ──sendall──▶ socket
    for chunk in response.iter_body():
        chunk ──sendall──▶ socket        blocks while the client is slow
    response.close()                      always, even if the peer vanished

sendall() returns only when the kernel accepted every byte, so a slow
reader throttles how fast the file is read and compressed. Memory stays
bounded by one chunk.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid

from ..errors import PayloadTooLarge
from ..http.response import HTTPResponse

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket:             The accepted client socket.
        address:            (ip, port) of the client.
        id:                 Short id used to correlate log lines.
        requests_handled:   Requests read so far on this connection.
        last_response_size: Body bytes written by the last send_response().
    """

    socket: socket.socket
    address: tuple[str, int]
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0
    last_response_size: int = 0

    buffer_size: int = 8192
    timeout: float = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete request (headers plus Content-Length body).

        Returns:
            The raw request bytes, or None if the client closed the
            connection or went quiet between keep-alive requests.

        Raises:
            PayloadTooLarge: The request exceeds max_request_size.
            TimeoutError: The first request did not arrive in time.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                self._check_size(len(self._buffer))

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            # Refuse before reading a body we would reject anyway.
            self._check_size(body_start + content_length)

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break
                self._buffer += chunk

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.time()
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _check_size(self, size: int):
        if size > self.max_request_size:
            raise PayloadTooLarge(
                f"{size} bytes exceeds limit of {self.max_request_size}"
            )

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Scan the header block for Content-Length.

        Only framing is decided here; the parser validates the value again
        and rejects garbage with 400.
        """
        for line in headers.decode("iso-8859-1").lower().split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(int(line.split(":", 1)[1].strip()), 0)
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(
        self,
        response: HTTPResponse,
        server_name: str,
        include_body: bool = True,
    ) -> bool:
        """
        Write a response, streaming its body chunk by chunk.

        The response's stream is closed on every path, which lets the
        generator producing it release its file and compressor.

        Args:
            include_body: False for HEAD; headers are still computed as if
                          the body were sent.

        Returns:
            True if everything was written, False if the client went away.
        """
        self.state = ConnectionState.WRITING
        self.last_response_size = 0
        try:
            self.socket.sendall(response.head_bytes(server_name))
            if include_body:
                for chunk in response.iter_body():
                    self.socket.sendall(chunk)
                    self.last_response_size += len(chunk)
            self.last_activity = time.time()
            return True
        except OSError as e:
            logger.info(
                f"[{self.id}] Client went away after "
                f"{self.last_response_size} body bytes: {e}"
            )
            return False
        finally:
            response.close()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    def close(self):
        """
        Graceful close: half-close, drain briefly, then release the socket.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Closed after {self.requests_handled} requests "
            f"in {time.time() - self.created_at:.1f}s"
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
