"""
Unit tests for URL parsing and the per-request context.
"""

import pytest

from staticserver.errors import BadMockPayload, MalformedURL
from staticserver.pipeline.context import (
    RequestContext,
    parse_body,
    parse_query,
    parse_target,
)

from conftest import make_request


class TestParseTarget:
    def test_decodes_path(self):
        url = parse_target("/docs/a%20b.txt?lang=en")

        assert url.path == "/docs/a b.txt"
        assert url.query == {"lang": "en"}
        assert url.raw_query == "lang=en"

    def test_last_query_value_wins(self):
        assert parse_target("/x?a=1&b=2&a=3").query == {"a": "3", "b": "2"}

    def test_blank_query_values_kept(self):
        assert parse_query("flag&name=") == {"flag": "", "name": ""}

    def test_utf8_path(self):
        assert parse_target("/%E4%B8%AD.txt").path == "/中.txt"

    def test_absolute_form(self):
        url = parse_target("http://localhost:3000/a.txt?x=1")

        assert url.path == "/a.txt"
        assert url.query == {"x": "1"}

    def test_double_slash_is_a_path(self):
        assert parse_target("//etc/passwd").path == "//etc/passwd"

    @pytest.mark.parametrize("target", [
        "*",
        "a.txt",
        "/bad%zzescape",
        "/trailing%2",
        "/%FF%FE",
        "/nul%00byte",
    ])
    def test_malformed(self, target):
        with pytest.raises(MalformedURL):
            parse_target(target)


class TestParseBody:
    def test_json(self):
        assert parse_body("application/json", b'{"a": 1}') == {"a": 1}

    def test_empty_json_is_empty_dict(self):
        assert parse_body("application/json", b"") == {}

    def test_bad_json(self):
        with pytest.raises(BadMockPayload):
            parse_body("application/json", b"{not json")

    def test_form(self):
        body = b"a=1&b=two+words&a=3"

        assert parse_body("application/x-www-form-urlencoded", body) == {"a": "3", "b": "two words"}

    def test_empty_form_is_empty_dict(self):
        assert parse_body("application/x-www-form-urlencoded", b"") == {}

    def test_other_types_are_text(self):
        assert parse_body("text/plain", "héllo".encode()) == "héllo"
        assert parse_body(None, b"") == ""


class TestRequestContext:
    def test_exposes_request_parts(self):
        request = make_request("GET", "/a%2Bb?q=1", headers={"X-Test": "yes"})
        context = RequestContext.from_request(request)

        assert context.method == "GET"
        assert context.path == "/a+b"
        assert context.query == {"q": "1"}
        assert context.header("X-TEST") == "yes"

    def test_body_is_parsed_once(self, monkeypatch):
        request = make_request(
            "POST", "/mock/x",
            headers={"Content-Type": "application/json"},
            body=b'{"a": 1}',
        )
        context = RequestContext.from_request(request)

        calls = []
        import staticserver.pipeline.context as context_module
        original = context_module.parse_body

        def counting(content_type, raw):
            calls.append(1)
            return original(content_type, raw)

        monkeypatch.setattr(context_module, "parse_body", counting)

        assert context.body == {"a": 1}
        assert context.body is context.body
        assert len(calls) == 1

    def test_body_failure_is_memoized(self):
        request = make_request(
            "POST", "/mock/x",
            headers={"Content-Type": "application/json"},
            body=b"{oops",
        )
        context = RequestContext.from_request(request)

        with pytest.raises(BadMockPayload) as first:
            context.body
        with pytest.raises(BadMockPayload) as second:
            context.body

        assert first.value is second.value

    def test_target_is_set_once(self):
        context = RequestContext.from_request(make_request())
        context.target = "first"

        with pytest.raises(RuntimeError):
            context.target = "second"
        assert context.target == "first"
