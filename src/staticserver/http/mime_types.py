"""
=============================================================================
MIME TYPE DETECTION
=============================================================================

Maps file extensions to MIME types for the Content-Type header, and tells
the hotlink guard which files are images.

Lookup order:

    1. WEB_TYPES below (explicit, platform independent)
    2. the stdlib ``mimetypes`` registry (reads /etc/mime.types etc.)
    3. application/octet-stream

The explicit table comes first because the platform registry differs
between machines (".js" has been "application/javascript" on some and
"text/javascript" on others), and a static server should answer the same
everywhere.

=============================================================================
"""

import mimetypes
from pathlib import Path
from typing import Optional


WEB_TYPES = {
    # Documents and code served to browsers
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".map": "application/json",
    ".xml": "application/xml",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".wasm": "application/wasm",

    # Images (hotlink-protected)
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".bmp": "image/bmp",

    # Fonts
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",

    # Media
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".mp4": "video/mp4",
    ".webm": "video/webm",

    # Archives and documents
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".gz": "application/gzip",
    ".tar": "application/x-tar",
}

DEFAULT_MIME_TYPE = "application/octet-stream"

TEXT_APPLICATION_TYPES = {
    "application/json",
    "application/xml",
    "application/javascript",
    "image/svg+xml",
}


def get_mime_type(path: str | Path, default: Optional[str] = None) -> str:
    """
    Get the MIME type for a file based on its extension.

    Examples:
        >>> get_mime_type("style.css")
        'text/css'
        >>> get_mime_type("/srv/site/logo.PNG")
        'image/png'
        >>> get_mime_type("blob.unknownext")
        'application/octet-stream'
    """
    extension = Path(path).suffix.lower()
    if extension in WEB_TYPES:
        return WEB_TYPES[extension]

    guessed, _ = mimetypes.guess_type(f"file{extension}")
    return guessed or default or DEFAULT_MIME_TYPE


def is_text_type(mime_type: str) -> bool:
    """True for text/* and the text-based application types."""
    return mime_type.startswith("text/") or mime_type in TEXT_APPLICATION_TYPES


def is_image_type(mime_type: str) -> bool:
    """True for any image/* type, the set the referer guard protects."""
    return mime_type.startswith("image/")


def get_content_type(path: str | Path, charset: str = "utf-8") -> str:
    """
    Full Content-Type header value: charset only for text content.

        >>> get_content_type("index.html")
        'text/html; charset=utf-8'
        >>> get_content_type("logo.png")
        'image/png'
    """
    mime_type = get_mime_type(path)
    if is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"
    return mime_type
