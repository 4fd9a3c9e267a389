"""
Hotlink protection for images.

An image request carrying a Referer from another host is refused with 403:

    Host: mysite.test
    Referer: http://mysite.test/page.html      → allow
    Referer: http://elsewhere.test/steal.html  → deny
    (no Referer)                               → allow

Only ``image/*`` responses are guarded. The non-standard spelling
``Referrer`` is honoured as well. Host comparison uses host[:port] with
default ports dropped, the way browsers write the Host header.
"""

from enum import Enum
from typing import Mapping, Optional
from urllib.parse import urlsplit

from ..http.mime_types import is_image_type

_DEFAULT_PORTS = {"http": 80, "https": 443}


class RefererVerdict(Enum):
    ALLOW = "allow"
    DENY = "deny"


def referer_host(referer: str) -> Optional[str]:
    """
    host[:port] of a Referer URL, or None if it has no usable host.

        >>> referer_host("http://Example.test:80/a.html")
        'example.test'
        >>> referer_host("https://example.test:8443/")
        'example.test:8443'
    """
    try:
        parts = urlsplit(referer)
        port = parts.port
    except ValueError:
        return None

    if not parts.scheme or not parts.hostname:
        return None

    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    if port is not None and port != _DEFAULT_PORTS.get(parts.scheme.lower()):
        host = f"{host}:{port}"
    return host


class RefererGuard:
    def check(self, request_headers: Mapping[str, str], mime_type: str) -> RefererVerdict:
        """
        Args:
            request_headers: Header map keyed by lowercase name.
            mime_type:       Type of the file about to be served.
        """
        if not is_image_type(mime_type):
            return RefererVerdict.ALLOW

        referer = request_headers.get("referer") or request_headers.get("referrer")
        if not referer:
            return RefererVerdict.ALLOW

        host = request_headers.get("host", "").strip().lower()
        if referer_host(referer) != host:
            return RefererVerdict.DENY
        return RefererVerdict.ALLOW
