"""
=============================================================================
CONTENT ENCODING NEGOTIATION
=============================================================================

Chooses how a file body is compressed on the way out, and does the
compressing as a stream.

    Accept-Encoding: br;q=1.0, gzip;q=0.8, *;q=0.1
                     │
                     ▼  tokens, parameters dropped, lowercased
                     {"br", "gzip", "*"}
                     │
                     ▼  first of gzip > br > deflate present
                     gzip

Quality values are ignored: the server's own order decides.

    gzip     zlib, gzip container (wbits=31)
    br       brotli library
    deflate  zlib, zlib container (what browsers expect for "deflate")
    identity bytes pass through untouched

=============================================================================
STREAMING
=============================================================================

    file chunks ──▶ compressor.compress() ──▶ non-empty output ──▶ socket
                    ...
    end of file ──▶ compressor.flush()    ──▶ trailer

The compressor buffers internally; only what it emits is yielded, so the
transfer size is unknown up front and the response uses chunked framing.
EncodedStream.close() releases both the compressor and the source (the
open file), also when the client disconnects halfway.

=============================================================================
"""

import zlib
from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping, Set

import brotli

PREFERENCE = ("gzip", "br", "deflate")
IDENTITY = "identity"


def parse_accept_encoding(value: str) -> Set[str]:
    """
    Unweighted set of encoding tokens.

        >>> sorted(parse_accept_encoding("GZIP;q=0.5, br"))
        ['br', 'gzip']
    """
    tokens = set()
    for part in value.split(","):
        token = part.split(";", 1)[0].strip().lower()
        if token:
            tokens.add(token)
    return tokens


class _BrotliCompressor:
    """brotli.Compressor behind the zlib compressobj interface."""

    def __init__(self, quality: int):
        self._compressor = brotli.Compressor(quality=quality)

    def compress(self, data: bytes) -> bytes:
        return self._compressor.process(data)

    def flush(self) -> bytes:
        return self._compressor.finish()


def new_compressor(name: str, level: int = 6):
    if name == "gzip":
        return zlib.compressobj(level, zlib.DEFLATED, 31)
    if name == "deflate":
        return zlib.compressobj(level, zlib.DEFLATED, 15)
    if name == "br":
        return _BrotliCompressor(quality=level)
    raise ValueError(f"Unsupported encoding: {name}")


class EncodedStream:
    """
    Iterator of compressed chunks over a source iterator of raw chunks.
    """

    def __init__(self, source: Iterable[bytes], name: str, level: int = 6):
        self._source = source
        self._name = name
        self._level = level
        self._chunks = self._generate()

    def __iter__(self) -> Iterator[bytes]:
        return self

    def __next__(self) -> bytes:
        return next(self._chunks)

    def _generate(self) -> Iterator[bytes]:
        compressor = new_compressor(self._name, self._level)
        try:
            for chunk in self._source:
                out = compressor.compress(chunk)
                if out:
                    yield out
            tail = compressor.flush()
            if tail:
                yield tail
        finally:
            self._close_source()

    def _close_source(self) -> None:
        close = getattr(self._source, "close", None)
        if close is not None:
            close()

    def close(self) -> None:
        self._chunks.close()
        # A generator closed before its first next() never runs its finally.
        self._close_source()


@dataclass(frozen=True)
class Encoding:
    """A negotiated content coding."""

    name: str
    level: int = 6

    @property
    def is_identity(self) -> bool:
        return self.name == IDENTITY

    def transform(self, source: Iterable[bytes]) -> Iterable[bytes]:
        """Wrap a raw chunk stream; identity returns it unchanged."""
        if self.is_identity:
            return source
        return EncodedStream(source, self.name, self.level)


class EncodingNegotiator:
    def __init__(self, level: int = 6):
        self.level = level

    def negotiate(self, request_headers: Mapping[str, str]) -> Encoding:
        """
        Args:
            request_headers: Header map keyed by lowercase name.
        """
        accepted = parse_accept_encoding(request_headers.get("accept-encoding", ""))
        for name in PREFERENCE:
            if name in accepted:
                return Encoding(name, self.level)
        return Encoding(IDENTITY, self.level)
