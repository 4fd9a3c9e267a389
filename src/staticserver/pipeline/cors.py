"""
=============================================================================
CORS
=============================================================================

Cross-Origin Resource Sharing, permissive flavour: whatever Origin asks is
reflected back.

    Request with Origin: http://app.test
        Access-Control-Allow-Origin:  http://app.test
        Access-Control-Allow-Methods: GET, POST, PUT, DELETE, OPTIONS
        Access-Control-Allow-Headers: Content-Type, Authorization
        Access-Control-Max-Age:       86400
        Vary:                         Origin

    OPTIONS with Origin (preflight)
        the headers above, 204 No Content, pipeline stops

    No Origin header
        nothing; same-origin and non-browser clients don't need CORS

The headers are written into the sink before anything else runs, so they
are present on every later response, error responses included.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, Mapping

from ..http.response import ResponseSink
from ..http.status_codes import HTTPStatus


@dataclass
class CorsResult:
    headers: Dict[str, str] = field(default_factory=dict)
    terminated: bool = False


class CorsHandler:
    ALLOW_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
    ALLOW_HEADERS = "Content-Type, Authorization"
    MAX_AGE = 86400

    def apply(
        self,
        request_headers: Mapping[str, str],
        method: str,
        sink: ResponseSink,
    ) -> CorsResult:
        """
        Apply CORS headers to ``sink``; end it for a preflight.

        Args:
            request_headers: Header map keyed by lowercase name.
        """
        origin = request_headers.get("origin")
        if not origin:
            return CorsResult()

        headers = {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Methods": self.ALLOW_METHODS,
            "Access-Control-Allow-Headers": self.ALLOW_HEADERS,
            "Access-Control-Max-Age": str(self.MAX_AGE),
        }
        sink.set_headers(headers)
        sink.add_vary("Origin")

        if method == "OPTIONS":
            sink.set_status(HTTPStatus.NO_CONTENT)
            sink.end()
            return CorsResult(headers=headers, terminated=True)

        return CorsResult(headers=headers)
