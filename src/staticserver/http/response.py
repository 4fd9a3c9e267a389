"""
=============================================================================
HTTP RESPONSES
=============================================================================

Three ways to produce a response, one wire format:

    HTTPResponse     the data container; knows how to serialize itself
    ResponseSink     what pipeline stages and mock handlers write into
                     (status, headers, body, stream, end)
    ResponseBuilder  fluent one-shot construction for transport errors

=============================================================================
BUFFERED VS STREAMED BODIES
=============================================================================

    Buffered (body=b"...")
        HTTP/1.1 200 OK\r\n
        Content-Length: 11\r\n
        \r\n
        hello world

    Streamed, length known (identity file transfer)
        Content-Length: <file size>, then the chunks back to back

    Streamed, length unknown (compressed file transfer)
        Transfer-Encoding: chunked\r\n
        \r\n
        1F40\r\n <8000 bytes> \r\n
        ...
        0\r\n\r\n

The stream is an iterator of bytes. Whoever consumes it (the server's send
loop) MUST call close() when done or when the client goes away, so that the
generator behind it can release its file descriptor and compressor.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Union
import json

from .status_codes import HTTPStatus


# =============================================================================
# HEADER HELPERS
# =============================================================================

def _find_header(headers: Dict[str, str], name: str) -> Optional[str]:
    """Return the stored key matching ``name`` case-insensitively."""
    lowered = name.lower()
    for key in headers:
        if key.lower() == lowered:
            return key
    return None


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be sent.

    Header names keep the case they were set with; every lookup is
    case-insensitive.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    stream: Optional[Iterator[bytes]] = field(default=None, repr=False)
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def is_streaming(self) -> bool:
        return self.stream is not None

    @property
    def is_chunked(self) -> bool:
        value = self.get_header("Transfer-Encoding") or ""
        return value.lower() == "chunked"

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        key = _find_header(self.headers, name)
        return self.headers[key] if key is not None else default

    def has_header(self, name: str) -> bool:
        return _find_header(self.headers, name) is not None

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a header, replacing any existing one with the same name."""
        key = _find_header(self.headers, name)
        if key is not None:
            del self.headers[key]
        self.headers[name] = str(value)
        return self

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def head_bytes(self, server_name: str = "StaticServer/1.0") -> bytes:
        """
        Serialize status line and headers, finalizing framing headers.

        Framing rules:
            204/304           no Content-Length, no Transfer-Encoding
            buffered body     Content-Length = len(body)
            stream + length   Content-Length as given by the producer
            stream, no length Transfer-Encoding: chunked
        """
        headers = dict(self.headers)

        def has(name: str) -> bool:
            return _find_header(headers, name) is not None

        if not self.status.allows_body:
            for name in ("Content-Length", "Transfer-Encoding", "Content-Type"):
                key = _find_header(headers, name)
                if key is not None:
                    del headers[key]
        elif self.stream is None:
            if not has("Content-Length"):
                headers["Content-Length"] = str(len(self.body))
        elif not has("Content-Length") and not has("Transfer-Encoding"):
            headers["Transfer-Encoding"] = "chunked"

        if not has("Date"):
            headers["Date"] = format_http_date(datetime.now(timezone.utc))
        if not has("Server"):
            headers["Server"] = server_name

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        lines.append("")
        return ("\r\n".join(lines) + "\r\n").encode("iso-8859-1")

    def iter_body(self) -> Iterator[bytes]:
        """
        Yield the body as it should appear on the wire.

        Chunked framing is applied exactly when head_bytes() would announce
        Transfer-Encoding: chunked.
        """
        if not self.status.allows_body:
            return

        if self.stream is None:
            if self.body:
                yield self.body
            return

        chunked = self.is_chunked or not self.has_header("Content-Length")
        for chunk in self.stream:
            if not chunk:
                # A zero-length chunk would terminate chunked framing early.
                continue
            if chunked:
                yield f"{len(chunk):X}\r\n".encode("ascii") + chunk + b"\r\n"
            else:
                yield chunk
        if chunked:
            yield b"0\r\n\r\n"

    def to_bytes(self, server_name: str = "StaticServer/1.0") -> bytes:
        """Serialize the complete response (drains and closes a stream)."""
        head = self.head_bytes(server_name)
        try:
            return head + b"".join(self.iter_body())
        finally:
            self.close()

    def close(self) -> None:
        """Release the body stream, if any. Safe to call repeatedly."""
        stream, self.stream = self.stream, None
        if stream is not None and hasattr(stream, "close"):
            stream.close()


class ResponseSink:
    """
    The write side of one request.

    Pipeline stages and mock handlers share a single sink per request; the
    capability set is fixed:

        set_status(status)        status code (int or HTTPStatus)
        set_header(name, value)   add or replace a header
        write(data)               append to the buffered body
        stream(iterator, length)  hand over a lazily produced body and end
        end(data=None)            optionally write, then finish

    Once ended, further writes raise RuntimeError. Headers set before a
    stage ends the sink are kept (CORS headers on a 404, cache headers on a
    304, ...).
    """

    def __init__(self):
        self._response = HTTPResponse()
        self._chunks: list[bytes] = []
        self._ended = False

    # ─────────────────────────────────────────────────────────────────────
    # STATE
    # ─────────────────────────────────────────────────────────────────────

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def status(self) -> HTTPStatus:
        return self._response.status

    @property
    def headers(self) -> Dict[str, str]:
        """A copy of the headers set so far."""
        return dict(self._response.headers)

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._response.get_header(name, default)

    @property
    def has_body(self) -> bool:
        return any(self._chunks)

    # ─────────────────────────────────────────────────────────────────────
    # MUTATION
    # ─────────────────────────────────────────────────────────────────────

    def set_status(self, status: int) -> "ResponseSink":
        self._check_open()
        self._response.status = HTTPStatus(status)
        return self

    def set_header(self, name: str, value: Any) -> "ResponseSink":
        self._check_open()
        self._response.set_header(name, str(value))
        return self

    def set_headers(self, headers: Dict[str, str]) -> "ResponseSink":
        for name, value in headers.items():
            self.set_header(name, value)
        return self

    def add_vary(self, token: str) -> "ResponseSink":
        """Append a token to Vary unless it is already listed."""
        current = self.get_header("Vary", "")
        listed = [t.strip().lower() for t in current.split(",") if t.strip()]
        if token.lower() not in listed:
            self.set_header("Vary", f"{current}, {token}" if current else token)
        return self

    def write(self, data: Union[str, bytes]) -> "ResponseSink":
        self._check_open()
        self._chunks.append(data.encode("utf-8") if isinstance(data, str) else data)
        return self

    def clear_body(self) -> None:
        self._check_open()
        self._chunks.clear()

    def stream(
        self,
        chunks: Iterator[bytes],
        content_length: Optional[int] = None,
    ) -> None:
        """
        End the response with a lazily produced body.

        Without ``content_length`` the body goes out with chunked framing.
        """
        self._check_open()
        if content_length is not None:
            self._response.set_header("Content-Length", str(content_length))
        self._response.stream = chunks
        self._ended = True

    def end(self, data: Union[str, bytes, None] = None) -> None:
        if data is not None:
            self.write(data)
        self._ended = True

    # ─────────────────────────────────────────────────────────────────────
    # CONVENIENCE FOR HANDLERS
    # ─────────────────────────────────────────────────────────────────────

    def send_json(self, data: Any, status: int = HTTPStatus.OK) -> None:
        self.set_status(status)
        self.set_header("Content-Type", "application/json; charset=utf-8")
        self.end(json.dumps(data, ensure_ascii=False))

    def send_text(self, text: str, status: int = HTTPStatus.OK) -> None:
        self.set_status(status)
        self.set_header("Content-Type", "text/plain; charset=utf-8")
        self.end(text)

    def to_response(self) -> HTTPResponse:
        """
        Freeze the sink into an HTTPResponse.

        A handler that wrote without calling end() is treated as ended.
        """
        self._ended = True
        if self._response.stream is None:
            self._response.body = b"".join(self._chunks)
        return self._response

    def _check_open(self) -> None:
        if self._ended:
            raise RuntimeError("Response already ended")


class ResponseBuilder:
    """
    Fluent builder for one-shot responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.REQUEST_TIMEOUT)
            .text("Request Timeout")
            .close_connection()
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: int) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

_DAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an IMF-fixdate (RFC 7231 section 7.1.1.1).

        Thu, 15 Jan 2026 12:30:45 GMT

    Naive datetimes are taken to be UTC; aware ones are converted.
    Formatting is locale independent (strftime("%a") is not).
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return (
        f"{_DAYS[dt.weekday()]}, "
        f"{dt.day:02d} {_MONTHS[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def text_response(status: int, message: Optional[str] = None) -> HTTPResponse:
    """Plain-text response whose body defaults to the reason phrase."""
    status = HTTPStatus(status)
    return ResponseBuilder().status(status).text(message or status.phrase).build()
