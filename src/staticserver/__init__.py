"""
=============================================================================
STATICSERVER - Static File HTTP/1.1 Server on Raw Sockets
=============================================================================

Serves a directory over HTTP with the things a front-end developer wants
from a local server:

    - index.html fallback and HTML directory listings
    - conditional caching (Expires, Last-Modified, ETag, 304)
    - streamed gzip / brotli / deflate compression
    - image hotlink protection (Referer check)
    - permissive CORS with preflight handling
    - pluggable mock API handlers under /mock/

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    staticserver/
    ├── __main__.py          CLI (python -m staticserver)
    ├── server.py            HTTPServer: transport ↔ pipeline glue
    ├── config.py            ServerConfig frozen dataclass
    ├── errors.py            exception taxonomy with HTTP statuses
    ├── access_log.py        RequestLog, text/JSON access lines
    ├── core/                socket server, connections, thread pool
    ├── http/                request parser, responses, status, MIME
    └── pipeline/            per-request stages and the orchestrator

=============================================================================
QUICK START
=============================================================================

    from staticserver import HTTPServer, ServerConfig, EchoMockHandler

    server = HTTPServer(
        ServerConfig(root_directory="./public", port=8080),
        mock_handler=EchoMockHandler(),
    )
    server.run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .errors import (
    BadMockPayload,
    ForbiddenError,
    MalformedURL,
    NotFoundError,
    PayloadTooLarge,
    StaticServerError,
    UpstreamFailure,
)
from .http import HTTPRequest, HTTPResponse, HTTPStatus, ResponseSink
from .pipeline import (
    EchoMockHandler,
    MockHandler,
    MockRequest,
    PipelineResult,
    PipelineState,
    RequestPipeline,
)
from .server import HTTPServer

__all__ = [
    "__version__",
    "HTTPServer",
    "ServerConfig",
    "RequestPipeline",
    "PipelineResult",
    "PipelineState",
    "MockHandler",
    "MockRequest",
    "EchoMockHandler",
    "HTTPRequest",
    "HTTPResponse",
    "HTTPStatus",
    "ResponseSink",
    "StaticServerError",
    "MalformedURL",
    "NotFoundError",
    "ForbiddenError",
    "BadMockPayload",
    "UpstreamFailure",
    "PayloadTooLarge",
]
