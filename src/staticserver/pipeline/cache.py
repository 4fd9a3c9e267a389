"""
=============================================================================
CONDITIONAL CACHING
=============================================================================

Protocol-level caching only: the server stores nothing, it just tells the
client how long a copy stays fresh and how to revalidate it.

    Freshness (every file response)
        Expires:        now + cache_max_age, as an HTTP-date
        Cache-Control:  max-age=<cache_max_age>

    Validators (every file response)
        Last-Modified:  file change time (ctime) as an HTTP-date
        ETag:           "<base64 md5 of '<size>-<ctime>'>"

    Revalidation
        Client sends back  If-Modified-Since: <Last-Modified>
                           If-None-Match:     <ETag>
        BOTH equal (exact string match) → 304 Not Modified, no body
        otherwise                       → 200 with the full body

The ETag is derived from metadata, never from file contents, so computing
it costs no reads. ctime rather than mtime means a chmod or rename also
invalidates cached copies.

=============================================================================
"""

import base64
import hashlib
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Mapping

from ..http.response import format_http_date
from .resolver import FileDescriptor


@dataclass
class CacheDecision:
    headers: Dict[str, str] = field(default_factory=dict)
    fresh: bool = False


def compute_etag(file: FileDescriptor) -> str:
    """Quoted entity tag: base64 MD5 of "<size>-<ctime>", 24 chars inside quotes."""
    seed = f"{file.size}-{file.change_time}".encode("utf-8")
    digest = base64.b64encode(hashlib.md5(seed).digest()).decode("ascii")
    return f'"{digest}"'


def last_modified(file: FileDescriptor) -> str:
    return format_http_date(datetime.fromtimestamp(file.change_time, tz=timezone.utc))


class CacheNegotiator:
    """
    Computes cache headers and the 304 decision for one file.

    ``clock`` returns epoch seconds; tests pass a fixed one.
    """

    def __init__(self, max_age: int = 10, clock: Callable[[], float] = time.time):
        self.max_age = max_age
        self.clock = clock

    def evaluate(
        self,
        request_headers: Mapping[str, str],
        file: FileDescriptor,
    ) -> CacheDecision:
        """
        Args:
            request_headers: Header map keyed by lowercase name.
            file:            The file about to be served.
        """
        expires = datetime.fromtimestamp(self.clock() + self.max_age, tz=timezone.utc)
        modified = last_modified(file)
        etag = compute_etag(file)

        headers = {
            "Expires": format_http_date(expires),
            "Cache-Control": f"max-age={self.max_age}",
            "Last-Modified": modified,
            "ETag": etag,
        }

        fresh = (
            request_headers.get("if-modified-since") == modified
            and request_headers.get("if-none-match") == etag
        )
        return CacheDecision(headers=headers, fresh=fresh)
