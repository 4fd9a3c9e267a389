"""
=============================================================================
REQUEST PIPELINE
=============================================================================

Turns one HTTPRequest into one HTTPResponse. Stages run in a fixed order;
the first one that produces a response ends the request.

    HTTPRequest
        │
        ▼
    parse target ── malformed ─────────────────────────────▶ SERVER_ERROR
        │
        ▼
    CORS ── OPTIONS with Origin ───────────────────────────▶ CORS_PREFLIGHT_ENDED
        │   (headers kept on everything below)
        ▼
    mock ── handled ───────────────────────────────────────▶ MOCK_HANDLED
        │  ── bad body ────────────────────────────────────▶ BAD_REQUEST
        │  ── handler raised ──────────────────────────────▶ SERVER_ERROR
        ▼
    resolve path ── missing / outside root ────────────────▶ NOT_FOUND
        │
        ├── directory without index ── listing ────────────▶ DIRECTORY_LISTED
        ▼
    cache ── both validators match ────────────────────────▶ NOT_MODIFIED
        │
        ▼
    referer ── foreign host on an image ───────────────────▶ FORBIDDEN
        │
        ▼
    encoding ── stream file (compressed or not) ───────────▶ FILE_SENT

Any exception that escapes a stage becomes SERVER_ERROR: logged with its
traceback, answered with a plain "Internal Server Error".

=============================================================================
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..config import ServerConfig
from ..errors import ForbiddenError, MalformedURL, NotFoundError, StaticServerError
from ..http.mime_types import get_content_type, get_mime_type
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseSink, text_response
from ..http.status_codes import HTTPStatus
from .cache import CacheNegotiator
from .context import RequestContext
from .cors import CorsHandler
from .encoding import EncodingNegotiator
from .listing import build_entries, listing_footer, render_listing
from .mock import MockDispatcher
from .referer import RefererGuard, RefererVerdict
from .resolver import FileChunks, PathResolver


class PipelineState(Enum):
    CORS_PREFLIGHT_ENDED = "cors_preflight_ended"
    MOCK_HANDLED = "mock_handled"
    FILE_SENT = "file_sent"
    DIRECTORY_LISTED = "directory_listed"
    NOT_MODIFIED = "not_modified"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    SERVER_ERROR = "server_error"


@dataclass
class PipelineResult:
    state: PipelineState
    response: HTTPResponse


_ERROR_STATES = {
    400: PipelineState.BAD_REQUEST,
    403: PipelineState.FORBIDDEN,
    404: PipelineState.NOT_FOUND,
}


class RequestPipeline:
    """
    The per-request state machine.

    Stateless between requests: every component it holds is either
    immutable or recomputes everything per call, so one pipeline serves all
    worker threads.

        pipeline = RequestPipeline(config, mock_handler=EchoMockHandler())
        result = pipeline.handle(request)
        result.state      # PipelineState.FILE_SENT
        result.response   # HTTPResponse, body possibly a stream
    """

    def __init__(
        self,
        config: ServerConfig,
        mock_handler: Any = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

        self.cors = CorsHandler()
        self.mock = MockDispatcher(mock_handler, prefix=config.mock_prefix, logger=self.logger)
        self.resolver = PathResolver(config.root_directory, index_file=config.index_file)
        self.cache = CacheNegotiator(max_age=config.cache_max_age)
        self.referer = RefererGuard()
        self.encoding = EncodingNegotiator(level=config.compression_level)

        # Shown in listing footers; the server updates it once bound.
        self.address: Tuple[str, int] = config.address

    def handle(self, request: HTTPRequest) -> PipelineResult:
        sink = ResponseSink()
        cors_headers: Dict[str, str] = {}

        try:
            try:
                context = RequestContext.from_request(request)
            except MalformedURL as e:
                self.logger.warning(f"Malformed request target {request.target!r}: {e.detail}")
                return self._fail(PipelineState.SERVER_ERROR, e, cors_headers)

            cors = self.cors.apply(context.headers, context.method, sink)
            cors_headers = cors.headers
            if cors.terminated:
                return self._finish(PipelineState.CORS_PREFLIGHT_ENDED, sink)

            outcome = self.mock.try_dispatch(context, sink)
            if outcome.is_handled:
                return self._finish(PipelineState.MOCK_HANDLED, sink)
            if outcome.is_error:
                state = _ERROR_STATES.get(outcome.exception.status_code, PipelineState.SERVER_ERROR)
                return self._fail(state, outcome.exception, cors_headers)

            try:
                context.target = self.resolver.resolve(context.path)
            except NotFoundError as e:
                self.logger.debug(f"Not found: {e.detail}")
                return self._fail(PipelineState.NOT_FOUND, e, cors_headers)

            if context.target.listing_required:
                return self._send_listing(context, sink, cors_headers)
            return self._send_file(context, sink, cors_headers)

        except Exception as e:
            self.logger.exception(f"Unhandled error for {request.method} {request.target}")
            sink.to_response().close()
            return self._fail(PipelineState.SERVER_ERROR, e, cors_headers)

    # =========================================================================
    # TERMINAL STAGES
    # =========================================================================

    def _send_listing(
        self,
        context: RequestContext,
        sink: ResponseSink,
        cors_headers: Dict[str, str],
    ) -> PipelineResult:
        directory = context.target.file.absolute_path
        try:
            entries = build_entries(directory, context.path)
        except OSError as e:
            error = NotFoundError(f"Cannot list {context.path!r}: {e.strerror}")
            error.__cause__ = e
            return self._fail(PipelineState.NOT_FOUND, error, cors_headers)

        page = render_listing(entries, listing_footer(*self.address), title=context.path)
        sink.set_status(HTTPStatus.OK)
        sink.set_header("Content-Type", "text/html; charset=utf-8")
        sink.end(page)
        return self._finish(PipelineState.DIRECTORY_LISTED, sink)

    def _send_file(
        self,
        context: RequestContext,
        sink: ResponseSink,
        cors_headers: Dict[str, str],
    ) -> PipelineResult:
        file = context.target.file

        decision = self.cache.evaluate(context.headers, file)
        sink.set_headers(decision.headers)
        if decision.fresh:
            sink.set_status(HTTPStatus.NOT_MODIFIED)
            sink.end()
            return self._finish(PipelineState.NOT_MODIFIED, sink)

        mime_type = get_mime_type(file.absolute_path)
        if self.referer.check(context.headers, mime_type) is RefererVerdict.DENY:
            self.logger.info(
                f"Blocked hotlink to {context.path} from "
                f"{context.header('referer') or context.header('referrer')}"
            )
            return self._fail(
                PipelineState.FORBIDDEN,
                ForbiddenError(f"Foreign referer for {context.path}"),
                cors_headers,
                headers=decision.headers,
            )

        encoding = self.encoding.negotiate(context.headers)

        try:
            source = FileChunks(file.absolute_path, self.config.chunk_size, limit=file.size)
        except OSError as e:
            error = NotFoundError(f"Cannot open {context.path!r}: {e.strerror}")
            error.__cause__ = e
            return self._fail(PipelineState.NOT_FOUND, error, cors_headers)

        sink.set_status(HTTPStatus.OK)
        sink.set_header("Content-Type", get_content_type(file.absolute_path))

        if encoding.is_identity:
            sink.stream(source, content_length=file.size)
        else:
            sink.set_header("Content-Encoding", encoding.name)
            sink.add_vary("Accept-Encoding")
            sink.stream(encoding.transform(source))

        return self._finish(PipelineState.FILE_SENT, sink)

    # =========================================================================
    # RESULTS
    # =========================================================================

    def _finish(self, state: PipelineState, sink: ResponseSink) -> PipelineResult:
        return PipelineResult(state, sink.to_response())

    def _fail(
        self,
        state: PipelineState,
        error: Exception,
        cors_headers: Dict[str, str],
        headers: Optional[Dict[str, str]] = None,
    ) -> PipelineResult:
        """
        Plain-text error response. Only the client-safe message goes out;
        details stay in the log. ``headers`` are copied onto the response
        (the 403 keeps the cache headers already computed for the file).
        """
        if isinstance(error, StaticServerError):
            status = error.status_code
        else:
            status = HTTPStatus.INTERNAL_SERVER_ERROR

        response = text_response(status)
        for name, value in (headers or {}).items():
            response.set_header(name, value)
        for name, value in cors_headers.items():
            response.set_header(name, value)
        if cors_headers:
            response.set_header("Vary", "Origin")
        return PipelineResult(state, response)
