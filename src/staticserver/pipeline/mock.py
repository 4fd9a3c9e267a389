"""
=============================================================================
MOCK API RESPONDER
=============================================================================

Lets a front-end developer fake a JSON API next to the static files.
Requests under the mock prefix (default "/mock/") are offered to a
registered MockHandler before the filesystem is consulted:

    GET /mock/user?name=x
          │
          ▼
    MockDispatcher ── no handler registered ───────────▶ NOT_HANDLED
          │                                               (static lookup)
          │ parse query (flat, last wins) and body
          │ ── malformed JSON/form body ────────────────▶ ERROR(400)
          ▼
    handler(path, MockRequest, sink)
          │ ── returns truthy ──────────────────────────▶ HANDLED
          │ ── returns falsy ───────────────────────────▶ NOT_HANDLED
          │ ── raises ──────────────────────────────────▶ ERROR(500),
          ▼                                               logged with
                                                          traceback

=============================================================================
WRITING A HANDLER
=============================================================================

Either a plain function:

    def api(path, request, sink):
        if path == "/mock/ping":
            sink.send_json({"pong": True})
            return True
        return False

or a MockHandler subclass (see EchoMockHandler). From the command line:

    static-http-server --mock myproject.fake_api:api

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union

from ..errors import BadMockPayload, UpstreamFailure
from ..http.response import ResponseSink
from .context import RequestContext
from .outcome import Outcome

logger = logging.getLogger(__name__)


@dataclass
class MockRequest:
    """
    What a mock handler gets to see of the request.

    Attributes:
        method:  "GET", "POST", ...
        headers: Header map keyed by lowercase name.
        query:   Flat query mapping.
        body:    Parsed body (dict for JSON/form, str otherwise).
    """

    method: str
    headers: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, str] = field(default_factory=dict)
    body: Any = None


class MockHandler(ABC):
    """Base class for mock responders."""

    @abstractmethod
    def handle(self, path: str, request: MockRequest, sink: ResponseSink) -> bool:
        """Write a response into ``sink`` and return True, or return False."""

    def __call__(self, path: str, request: MockRequest, sink: ResponseSink) -> bool:
        return self.handle(path, request, sink)


class FunctionMockHandler(MockHandler):
    """Adapts a plain ``(path, request, sink) -> bool`` callable."""

    def __init__(self, func: Callable[[str, MockRequest, ResponseSink], Any]):
        self.func = func

    def handle(self, path: str, request: MockRequest, sink: ResponseSink) -> bool:
        return bool(self.func(path, request, sink))

    def __repr__(self) -> str:
        name = getattr(self.func, "__qualname__", repr(self.func))
        return f"FunctionMockHandler({name})"


def as_mock_handler(obj: Any) -> MockHandler:
    """
    Normalize something registered as a mock handler.

    Raises:
        TypeError: If ``obj`` is neither a MockHandler nor callable.
    """
    if isinstance(obj, MockHandler):
        return obj
    if callable(obj):
        return FunctionMockHandler(obj)
    raise TypeError(f"Mock handler must be callable, got {type(obj).__name__}")


class EchoMockHandler(MockHandler):
    """
    Echoes request data back as JSON on ``<prefix>user``.

        GET  /mock/user?name=x           → {"name": "x"}
        POST /mock/user?id=1  {"a": 2}   → {"a": 2, "id": "1"}

    Query values win over body fields on POST. Other paths and methods
    fall through.
    """

    def __init__(self, prefix: str = "/mock/"):
        self.path = prefix.rstrip("/") + "/user"

    def handle(self, path: str, request: MockRequest, sink: ResponseSink) -> bool:
        if path != self.path:
            return False

        if request.method == "GET":
            payload = dict(request.query)
        elif request.method == "POST":
            body = request.body if isinstance(request.body, dict) else {}
            payload = {**body, **request.query}
        else:
            return False

        logger.debug(f"Echo mock {request.method} {path}: {payload}")
        sink.send_json(payload)
        return True


class MockDispatcher:
    """
    Offers requests under ``prefix`` to the registered handler.

    The handler gets the full request path, prefix included.
    """

    def __init__(
        self,
        handler: Union[MockHandler, Callable[..., Any], None] = None,
        prefix: str = "/mock/",
        logger: Optional[logging.Logger] = None,
    ):
        self.handler = as_mock_handler(handler) if handler is not None else None
        self.prefix = prefix
        self.logger = logger or logging.getLogger(__name__)

    def applies_to(self, path: str) -> bool:
        return path.startswith(self.prefix)

    def try_dispatch(self, context: RequestContext, sink: ResponseSink) -> Outcome:
        if self.handler is None or not self.applies_to(context.path):
            return Outcome.not_handled()

        try:
            body = context.body
        except BadMockPayload as e:
            self.logger.info(f"Rejected mock payload for {context.path}: {e.detail}")
            return Outcome.error(e)

        request = MockRequest(
            method=context.method,
            headers=dict(context.headers),
            query=dict(context.query),
            body=body,
        )

        try:
            handled = self.handler(context.path, request, sink)
        except Exception as e:
            self.logger.exception(f"Mock handler {self.handler!r} failed on {context.path}")
            failure = UpstreamFailure(f"Mock handler raised {type(e).__name__}: {e}")
            failure.__cause__ = e
            return Outcome.error(failure)

        if handled:
            return Outcome.handled()

        if sink.ended:
            # Nothing else can be written once the handler ended the response.
            self.logger.warning(
                f"Mock handler ended the response for {context.path} but returned "
                f"{handled!r}; treating it as handled"
            )
            return Outcome.handled()

        if sink.has_body:
            self.logger.warning(f"Discarding body written by unhandled mock for {context.path}")
            sink.clear_body()

        return Outcome.not_handled()
