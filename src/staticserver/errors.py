"""
Exception taxonomy for the request pipeline.

Every error carries the HTTP status it maps to and a client-safe message.
The message is what the client sees; the detail (and ``__cause__``) is
what goes to the log.

    StaticServerError (500)
    ├── MalformedURL (500)
    ├── NotFoundError (404)
    ├── ForbiddenError (403)
    ├── BadMockPayload (400)
    ├── UpstreamFailure (500)
    └── PayloadTooLarge (413)
"""

from typing import Optional


class StaticServerError(Exception):
    """Base class. Subclasses override ``status_code`` and ``public_message``."""

    status_code: int = 500
    public_message: str = "Internal Server Error"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.public_message)
        self.detail = detail or self.public_message


class MalformedURL(StaticServerError):
    """The request target could not be parsed or percent-decoded."""


class NotFoundError(StaticServerError):
    """Path resolution failed (missing, no permission, outside root)."""

    status_code = 404
    public_message = "Not Found"


class ForbiddenError(StaticServerError):
    """Hotlink protection denied an image request."""

    status_code = 403
    public_message = "Forbidden"


class BadMockPayload(StaticServerError):
    """The mock request body does not match its declared Content-Type."""

    status_code = 400
    public_message = "Bad Request"


class UpstreamFailure(StaticServerError):
    """The mock handler raised, or I/O failed while producing a response."""


class PayloadTooLarge(StaticServerError):
    """Request exceeded ``max_request_size`` while being read."""

    status_code = 413
    public_message = "Payload Too Large"
