"""
Unit tests for CorsHandler.
"""

from staticserver.http.response import ResponseSink
from staticserver.http.status_codes import HTTPStatus
from staticserver.pipeline.cors import CorsHandler


class TestCorsHandler:
    def test_no_origin_no_headers(self):
        sink = ResponseSink()

        result = CorsHandler().apply({}, "GET", sink)

        assert result.headers == {}
        assert not result.terminated
        assert sink.get_header("Access-Control-Allow-Origin") is None

    def test_origin_reflected(self):
        sink = ResponseSink()

        result = CorsHandler().apply({"origin": "http://app.test"}, "GET", sink)

        assert not result.terminated
        assert not sink.ended
        assert sink.get_header("Access-Control-Allow-Origin") == "http://app.test"
        assert sink.get_header("Access-Control-Allow-Methods") == "GET, POST, PUT, DELETE, OPTIONS"
        assert sink.get_header("Access-Control-Allow-Headers") == "Content-Type, Authorization"
        assert sink.get_header("Access-Control-Max-Age") == "86400"
        assert sink.get_header("Vary") == "Origin"

    def test_preflight_terminates(self):
        sink = ResponseSink()

        result = CorsHandler().apply({"origin": "http://app.test"}, "OPTIONS", sink)

        assert result.terminated
        assert sink.ended
        response = sink.to_response()
        assert response.status == HTTPStatus.NO_CONTENT
        assert response.body == b""

    def test_options_without_origin_is_not_preflight(self):
        sink = ResponseSink()

        result = CorsHandler().apply({}, "OPTIONS", sink)

        assert not result.terminated
        assert not sink.ended
