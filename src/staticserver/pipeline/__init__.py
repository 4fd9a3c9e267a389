"""
=============================================================================
REQUEST PIPELINE PACKAGE
=============================================================================

    context.py       RequestContext: decoded URL, query, lazy body
    cors.py          CorsHandler: reflected-origin headers, preflight
    mock.py          MockDispatcher / MockHandler / EchoMockHandler
    resolver.py      PathResolver: URL path → file / index / listing
    cache.py         CacheNegotiator: Expires, ETag, 304 decision
    referer.py       RefererGuard: image hotlink protection
    encoding.py      EncodingNegotiator: gzip / br / deflate streams
    listing.py       DirectoryEntry + render_listing()
    outcome.py       Outcome tagged result
    orchestrator.py  RequestPipeline: runs the stages in order

=============================================================================
"""

from .cache import CacheDecision, CacheNegotiator, compute_etag
from .context import ParsedURL, RequestContext, parse_body, parse_query, parse_target
from .cors import CorsHandler, CorsResult
from .encoding import Encoding, EncodingNegotiator, parse_accept_encoding
from .listing import DirectoryEntry, build_entries, render_listing
from .mock import (
    EchoMockHandler,
    FunctionMockHandler,
    MockDispatcher,
    MockHandler,
    MockRequest,
    as_mock_handler,
)
from .orchestrator import PipelineResult, PipelineState, RequestPipeline
from .outcome import Outcome, OutcomeKind
from .referer import RefererGuard, RefererVerdict
from .resolver import FileChunks, FileDescriptor, PathResolver, Target

__all__ = [
    "RequestPipeline",
    "PipelineResult",
    "PipelineState",
    "RequestContext",
    "ParsedURL",
    "parse_target",
    "parse_query",
    "parse_body",
    "CorsHandler",
    "CorsResult",
    "MockDispatcher",
    "MockHandler",
    "MockRequest",
    "FunctionMockHandler",
    "EchoMockHandler",
    "as_mock_handler",
    "PathResolver",
    "FileDescriptor",
    "FileChunks",
    "Target",
    "CacheNegotiator",
    "CacheDecision",
    "compute_etag",
    "RefererGuard",
    "RefererVerdict",
    "EncodingNegotiator",
    "Encoding",
    "parse_accept_encoding",
    "DirectoryEntry",
    "build_entries",
    "render_listing",
    "Outcome",
    "OutcomeKind",
]
