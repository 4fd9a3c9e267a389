"""
=============================================================================
HTTP PROTOCOL PACKAGE
=============================================================================

Everything that speaks HTTP/1.1 on the wire, independent of what is served:

    request.py       raw bytes → HTTPRequest
    response.py      HTTPResponse / ResponseSink / ResponseBuilder → bytes
    status_codes.py  HTTPStatus enum with reason phrases
    mime_types.py    extension → Content-Type

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseSink,
    ResponseBuilder,
    format_http_date,
    text_response,
)
from .status_codes import HTTPStatus
from .mime_types import get_mime_type, get_content_type, is_image_type

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Responses
    "HTTPResponse",
    "ResponseSink",
    "ResponseBuilder",
    "format_http_date",
    "text_response",

    # Status codes
    "HTTPStatus",

    # MIME types
    "get_mime_type",
    "get_content_type",
    "is_image_type",
]
