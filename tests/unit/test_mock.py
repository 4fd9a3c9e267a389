"""
Unit tests for the mock API dispatcher and handlers.
"""

import json
import logging

import pytest

from staticserver.errors import BadMockPayload, UpstreamFailure
from staticserver.http.response import ResponseSink
from staticserver.pipeline.context import RequestContext
from staticserver.pipeline.mock import (
    EchoMockHandler,
    FunctionMockHandler,
    MockDispatcher,
    MockRequest,
    as_mock_handler,
)

from conftest import make_request


def dispatch(handler, method="GET", target="/mock/user", headers=None, body=b""):
    sink = ResponseSink()
    context = RequestContext.from_request(make_request(method, target, headers, body))
    outcome = MockDispatcher(handler).try_dispatch(context, sink)
    return outcome, sink


class TestEchoMockHandler:
    def test_get_echoes_query(self):
        outcome, sink = dispatch(EchoMockHandler(), target="/mock/user?name=x&name=y&age=3")

        assert outcome.is_handled
        response = sink.to_response()
        assert json.loads(response.body) == {"name": "y", "age": "3"}
        assert response.get_header("Content-Type") == "application/json; charset=utf-8"

    def test_post_merges_body_and_query(self):
        outcome, sink = dispatch(
            EchoMockHandler(),
            method="POST",
            target="/mock/user?id=1&a=from-query",
            headers={"Content-Type": "application/json"},
            body=b'{"a": 2, "b": true}',
        )

        assert outcome.is_handled
        assert json.loads(sink.to_response().body) == {"a": "from-query", "b": True, "id": "1"}

    def test_post_form_body(self):
        outcome, sink = dispatch(
            EchoMockHandler(),
            method="POST",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            body=b"name=form+user",
        )

        assert json.loads(sink.to_response().body) == {"name": "form user"}

    def test_other_paths_fall_through(self):
        outcome, sink = dispatch(EchoMockHandler(), target="/mock/other")

        assert not outcome.is_handled
        assert not sink.ended

    def test_other_methods_fall_through(self):
        outcome, _ = dispatch(EchoMockHandler(), method="DELETE")

        assert not outcome.is_handled

    def test_custom_prefix(self):
        handler = EchoMockHandler(prefix="/api/")
        sink = ResponseSink()

        assert handler("/api/user", MockRequest(method="GET", query={"q": "1"}), sink)
        assert json.loads(sink.to_response().body) == {"q": "1"}


class TestMockDispatcher:
    def test_no_handler_falls_through(self):
        outcome, sink = dispatch(None)

        assert not outcome.is_handled
        assert not outcome.is_error

    def test_outside_prefix_not_offered(self):
        calls = []

        outcome, _ = dispatch(lambda path, request, sink: calls.append(path), target="/hello.txt")

        assert not outcome.is_handled
        assert calls == []

    def test_handler_sees_full_path(self):
        seen = []

        def handler(path, request, sink):
            seen.append((path, request.method, request.query))
            sink.send_text("ok")
            return True

        dispatch(handler, target="/mock/a/b?x=1")

        assert seen == [("/mock/a/b", "GET", {"x": "1"})]

    def test_bad_json_is_400(self):
        outcome, _ = dispatch(
            EchoMockHandler(),
            method="POST",
            headers={"Content-Type": "application/json"},
            body=b"{not json",
        )

        assert outcome.is_error
        assert isinstance(outcome.exception, BadMockPayload)
        assert outcome.exception.status_code == 400

    def test_raising_handler_is_500(self, caplog):
        def broken(path, request, sink):
            raise KeyError("boom")

        with caplog.at_level(logging.ERROR):
            outcome, _ = dispatch(broken)

        assert outcome.is_error
        assert isinstance(outcome.exception, UpstreamFailure)
        assert outcome.exception.status_code == 500
        assert isinstance(outcome.exception.__cause__, KeyError)
        assert "failed on /mock/user" in caplog.text

    def test_unhandled_output_is_discarded(self):
        def chatty(path, request, sink):
            sink.write("stray")
            return False

        outcome, sink = dispatch(chatty)

        assert not outcome.is_handled
        assert not sink.has_body

    def test_ended_but_falsy_counts_as_handled(self):
        def forgetful(path, request, sink):
            sink.send_text("done")

        outcome, _ = dispatch(forgetful)

        assert outcome.is_handled


class TestAsMockHandler:
    def test_wraps_function(self):
        handler = as_mock_handler(lambda path, request, sink: True)

        assert isinstance(handler, FunctionMockHandler)

    def test_keeps_handler_instance(self):
        echo = EchoMockHandler()

        assert as_mock_handler(echo) is echo

    def test_rejects_non_callable(self):
        with pytest.raises(TypeError):
            as_mock_handler(42)
