"""
Unit tests for content encoding negotiation and streaming compression.
"""

import gzip
import zlib

import brotli
import pytest

from staticserver.pipeline.encoding import (
    EncodedStream,
    Encoding,
    EncodingNegotiator,
    new_compressor,
    parse_accept_encoding,
)

PAYLOAD = [b"static content " * 100, b"more bytes " * 50, b"tail"]


class TestNegotiation:
    @pytest.mark.parametrize("header, expected", [
        ("gzip, deflate, br", "gzip"),
        ("br, deflate", "br"),
        ("deflate", "deflate"),
        ("br;q=1.0, gzip;q=0.1", "gzip"),
        ("GZIP", "gzip"),
        ("compress", "identity"),
        ("", "identity"),
    ])
    def test_server_order_decides(self, header, expected):
        encoding = EncodingNegotiator().negotiate({"accept-encoding": header})

        assert encoding.name == expected

    def test_missing_header_is_identity(self):
        assert EncodingNegotiator().negotiate({}).is_identity

    def test_parse_drops_parameters(self):
        assert parse_accept_encoding(" gzip ;q=0.5 , ,br") == {"gzip", "br"}

    def test_level_is_carried(self):
        assert EncodingNegotiator(level=9).negotiate({"accept-encoding": "gzip"}).level == 9


class TestEncodedStream:
    def test_gzip(self):
        out = b"".join(EncodedStream(iter(PAYLOAD), "gzip"))

        assert gzip.decompress(out) == b"".join(PAYLOAD)

    def test_deflate_uses_zlib_container(self):
        out = b"".join(EncodedStream(iter(PAYLOAD), "deflate"))

        assert zlib.decompress(out) == b"".join(PAYLOAD)

    def test_brotli(self):
        out = b"".join(EncodedStream(iter(PAYLOAD), "br"))

        assert brotli.decompress(out) == b"".join(PAYLOAD)

    def test_empty_source(self):
        out = b"".join(EncodedStream(iter([]), "gzip"))

        assert gzip.decompress(out) == b""

    def test_no_empty_chunks(self):
        assert all(EncodedStream(iter(PAYLOAD), "gzip"))

    def test_unknown_encoding(self):
        with pytest.raises(ValueError):
            new_compressor("compress")


class _Source:
    def __init__(self, chunks):
        self._chunks = iter(chunks)
        self.closed = False

    def __iter__(self):
        return self

    def __next__(self):
        return next(self._chunks)

    def close(self):
        self.closed = True


class TestSourceRelease:
    def test_closed_after_exhaustion(self):
        source = _Source(PAYLOAD)
        list(EncodedStream(source, "gzip"))

        assert source.closed

    def test_closed_when_abandoned(self):
        source = _Source(PAYLOAD)
        stream = EncodedStream(source, "gzip")
        next(stream)

        stream.close()

        assert source.closed

    def test_closed_before_first_chunk(self):
        source = _Source(PAYLOAD)

        EncodedStream(source, "br").close()

        assert source.closed


class TestEncoding:
    def test_identity_passes_through(self):
        source = iter(PAYLOAD)

        assert Encoding("identity").transform(source) is source

    def test_transform_wraps(self):
        assert isinstance(Encoding("gzip").transform(iter(PAYLOAD)), EncodedStream)
