"""
Unit tests for the command-line entry point and the access log.
"""

import json
import logging

import pytest

from staticserver.__main__ import build_parser, config_from_args, load_mock_handler, main
from staticserver.access_log import RequestLog, emit
from staticserver.pipeline import EchoMockHandler, FunctionMockHandler


def echo_function(path, request, sink):
    return False


class TestLoadMockHandler:
    def test_class_is_instantiated(self):
        handler = load_mock_handler("staticserver.pipeline.mock:EchoMockHandler")

        assert isinstance(handler, EchoMockHandler)

    def test_function_is_wrapped(self):
        handler = load_mock_handler(f"{__name__}:echo_function")

        assert isinstance(handler, FunctionMockHandler)

    @pytest.mark.parametrize("spec", ["no_colon", ":attr", "module:"])
    def test_malformed_spec(self, spec):
        with pytest.raises(ValueError):
            load_mock_handler(spec)

    def test_missing_attribute(self):
        with pytest.raises(ValueError, match="no attribute"):
            load_mock_handler("staticserver.pipeline.mock:Nope")

    def test_missing_module(self):
        with pytest.raises(ImportError):
            load_mock_handler("not_a_real_module_xyz:handler")

    def test_not_callable(self):
        with pytest.raises(TypeError):
            load_mock_handler("staticserver:__version__")


class TestConfigFromArgs:
    def test_overrides(self, site, monkeypatch):
        monkeypatch.delenv("HTTP_PORT", raising=False)
        args = build_parser().parse_args([
            "-p", "8080", "-s", "0.0.0.0", "-d", str(site), "-w", "3", "-l", "debug",
        ])

        config = config_from_args(args)

        assert config.port == 8080
        assert config.host == "0.0.0.0"
        assert config.root_directory == str(site)
        assert config.min_workers == 3
        assert config.max_workers == 6
        assert config.log_level == "DEBUG"

    def test_env_fallback(self, site, monkeypatch):
        monkeypatch.setenv("HTTP_PORT", "5050")
        monkeypatch.setenv("HTTP_ROOT", str(site))

        config = config_from_args(build_parser().parse_args([]))

        assert config.port == 5050
        assert config.root_directory == str(site)

    def test_mock_options_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--mock", "a:b", "--echo-mock"])

    def test_bad_directory_exits(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["-d", str(tmp_path / "missing")])

        assert exc_info.value.code == 2


class TestAccessLog:
    def entry(self):
        return RequestLog(
            method="GET",
            path="/hello.txt",
            query="",
            client_ip="127.0.0.1",
            user_agent="curl/8.0",
            status_code=200,
            content_length=12,
            duration_ms=1.234,
            state="file_sent",
            timestamp="15/Jan/2026:12:30:45 +0000",
        )

    def test_text(self):
        assert self.entry().to_text() == (
            '127.0.0.1 - - [15/Jan/2026:12:30:45 +0000] "GET /hello.txt" 200 12 1.23ms file_sent'
        )

    def test_json(self, caplog):
        with caplog.at_level(logging.INFO, logger="staticserver.access"):
            emit(self.entry(), log_format="json")

        record = json.loads(caplog.records[-1].getMessage())
        assert record["status_code"] == 200
        assert record["duration_ms"] == 1.23
        assert record["state"] == "file_sent"
