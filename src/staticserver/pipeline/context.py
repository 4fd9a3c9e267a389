"""
=============================================================================
REQUEST CONTEXT
=============================================================================

Per-request state shared by the pipeline stages. Created when a request
enters the pipeline, dropped when its response is produced.

    HTTPRequest.target  "/docs/a%20b.txt?lang=en&lang=fr"
          │
          ▼  parse_target()
    ParsedURL.path      "/docs/a b.txt"          (percent-decoded)
    ParsedURL.query     {"lang": "fr"}           (last value wins)

=============================================================================
BODY PARSING
=============================================================================

The body is only parsed when a stage asks for it (the mock dispatcher), and
only once. A parse failure is remembered too: asking twice raises the same
BadMockPayload twice without re-reading the bytes.

    Content-Type                         body
    ───────────────────────────────────  ──────────────────────────────
    application/json                     json.loads() result, {} if empty
    application/x-www-form-urlencoded    flat dict (last value wins),
                                         {} if empty
    anything else                        bytes decoded as UTF-8

=============================================================================
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, unquote, urlsplit

from ..errors import BadMockPayload, MalformedURL
from ..http.request import HTTPRequest

# A "%" that does not start a two-digit hex escape.
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

_UNSET = object()


@dataclass(frozen=True)
class ParsedURL:
    path: str
    query: Dict[str, str] = field(default_factory=dict)
    raw_query: str = ""


def parse_query(raw_query: str) -> Dict[str, str]:
    """
    Flatten a query string; on duplicate keys the last value wins.

        >>> parse_query("a=1&b=2&a=3")
        {'a': '3', 'b': '2'}
    """
    return dict(parse_qsl(raw_query, keep_blank_values=True))


def parse_target(target: str) -> ParsedURL:
    """
    Split a request target into decoded path and flat query.

    Accepts origin-form ("/path?q") and absolute-form
    ("http://host/path?q"). The path is percent-decoded strictly: a broken
    escape or bytes that are not UTF-8 make the whole URL malformed.

    Raises:
        MalformedURL
    """
    if target.startswith(("http://", "https://")):
        parts = urlsplit(target)
        raw_path, raw_query = parts.path or "/", parts.query
    elif target.startswith("/"):
        # Not urlsplit(): it would read "//host/x" as a network location.
        raw_path, _, raw_query = target.partition("?")
    else:
        raise MalformedURL(f"Unsupported request target: {target!r}")

    raw_path = raw_path.split("#", 1)[0]
    raw_query = raw_query.split("#", 1)[0]

    if _BAD_ESCAPE.search(raw_path):
        raise MalformedURL(f"Invalid percent-escape in {raw_path!r}")

    try:
        path = unquote(raw_path, encoding="utf-8", errors="strict")
    except UnicodeDecodeError as e:
        raise MalformedURL(f"Path is not valid UTF-8: {raw_path!r}") from e

    if "\x00" in path:
        raise MalformedURL("NUL byte in path")

    return ParsedURL(path=path, query=parse_query(raw_query), raw_query=raw_query)


def parse_body(content_type: Optional[str], raw: bytes) -> Any:
    """
    Parse a request body according to its media type.

    Raises:
        BadMockPayload: JSON or form body that cannot be decoded.
    """
    if content_type == "application/json":
        if not raw.strip():
            return {}
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise BadMockPayload(f"Invalid JSON body: {e}") from e

    if content_type == "application/x-www-form-urlencoded":
        if not raw:
            return {}
        try:
            return parse_query(raw.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise BadMockPayload(f"Invalid form body: {e}") from e

    return raw.decode("utf-8", errors="replace")


class RequestContext:
    """
    State for one request while it moves through the pipeline.

    Attributes:
        request: The parsed HTTPRequest.
        url:     Decoded path and flat query.
    """

    def __init__(self, request: HTTPRequest, url: ParsedURL):
        self.request = request
        self.url = url
        self._body: Any = _UNSET
        self._body_error: Optional[BadMockPayload] = None
        self._target = None

    @classmethod
    def from_request(cls, request: HTTPRequest) -> "RequestContext":
        """Raises MalformedURL if the target cannot be parsed."""
        return cls(request, parse_target(request.target))

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        return self.url.path

    @property
    def query(self) -> Dict[str, str]:
        return self.url.query

    @property
    def headers(self) -> Dict[str, str]:
        """Request headers keyed by lowercase name."""
        return self.request.headers

    def header(self, name: str, default: str = "") -> str:
        return self.request.headers.get(name.lower(), default)

    @property
    def body(self) -> Any:
        """
        Lazily parsed body, memoized for the life of the request.

        Raises:
            BadMockPayload: On every access if parsing failed.
        """
        if self._body_error is not None:
            raise self._body_error
        if self._body is _UNSET:
            try:
                self._body = parse_body(self.request.content_type, self.request.body)
            except BadMockPayload as e:
                self._body_error = e
                raise
        return self._body

    @property
    def target(self):
        """The resolved filesystem Target, or None before resolution."""
        return self._target

    @target.setter
    def target(self, value) -> None:
        if self._target is not None:
            raise RuntimeError("Request target already resolved")
        self._target = value
