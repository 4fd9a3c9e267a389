"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes (as delivered by Connection.read_request)
into HTTPRequest objects.

    GET /docs/guide.html?lang=en HTTP/1.1\r\n     ← request line
    Host: localhost:3000\r\n                       ← headers
    Accept-Encoding: gzip, br\r\n
    \r\n                                           ← blank line
    <body, Content-Length bytes>

=============================================================================
WHAT THE PARSER DOES NOT DO
=============================================================================

The request target is kept verbatim (``HTTPRequest.target``). Splitting it
into path and query and percent-decoding the path is the first stage of the
request pipeline (see pipeline/context.py), because a target that fails to
decode is a pipeline outcome with its own status, not a framing error.

Likewise ".." segments are NOT rejected here. The path resolver normalizes
them and checks containment inside the served root.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, Optional
import re


class HTTPParseError(Exception):
    """
    Raised when request framing is invalid.

    Carries the HTTP status to answer with:

        400 Bad Request                 malformed request line / headers
        405 Method Not Allowed          unknown method token
        413 Payload Too Large           request exceeds size limit
        505 HTTP Version Not Supported  anything but HTTP/1.0 or HTTP/1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method:         Request method, uppercase.
        target:         Raw request target, e.g. "/a%20b/c.txt?x=1".
        version:        "HTTP/1.1" or "HTTP/1.0".
        headers:        Header map with LOWERCASE names.
        body:           Raw body bytes (exactly Content-Length of them).
        client_address: (ip, port) of the peer.
    """

    method: str
    target: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    client_address: tuple[str, int] = ("", 0)

    @property
    def raw_path(self) -> str:
        """Target without query string, still percent-encoded. For logging."""
        return self.target.split("?", 1)[0]

    @property
    def raw_query(self) -> str:
        parts = self.target.split("?", 1)
        return parts[1] if len(parts) == 2 else ""

    @property
    def content_type(self) -> Optional[str]:
        """
        Media type without parameters, lowercased.

        "application/json; charset=utf-8" → "application/json"
        """
        ct = self.headers.get("content-type", "").split(";")[0].strip().lower()
        return ct or None

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        HTTP/1.1 keeps the connection unless told "close";
        HTTP/1.0 closes it unless told "keep-alive".
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    REQUEST_LINE_PATTERN: ^([A-Z]+) ([^ ]+) (HTTP/\\d\\.\\d)$
        method, target, version separated by single spaces.

    HEADER_PATTERN: ^([^:]+):\\s*(.*)$
        name, optional whitespace, value.
    """

    VALID_METHODS = {
        "GET",
        "HEAD",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "OPTIONS",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest object.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        # ─────────────────────────────────────────────────────────────────
        # SPLIT HEADERS AND BODY AT \r\n\r\n
        # ─────────────────────────────────────────────────────────────────
        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # Header bytes are ISO-8859-1 by RFC 7230; it never fails to decode.
        header_section = data[:header_end].decode("iso-8859-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, target, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        # ─────────────────────────────────────────────────────────────────
        # BODY: exactly Content-Length bytes
        # ─────────────────────────────────────────────────────────────────
        try:
            content_length = int(headers.get("content-length", "0"))
        except ValueError:
            raise HTTPParseError(
                f"Invalid Content-Length: {headers['content-length']!r}"
            )
        if content_length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {content_length}")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            target=target,
            version=version,
            headers=headers,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str]:
        """
        Parse "METHOD SP REQUEST-TARGET SP HTTP-VERSION".

        Raises:
            HTTPParseError: 400 / 405 / 505 depending on what is wrong.
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        return method, target, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict with lowercase names.

        - obsolete line folding (leading whitespace) continues the previous
          header
        - repeated headers are joined with ", " (RFC 7230 section 3.2.2)
        - lines without a colon are skipped
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 10 * 1024 * 1024
) -> HTTPRequest:
    """Parse one request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
