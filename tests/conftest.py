"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Dict, Generator, Optional

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from staticserver import EchoMockHandler, HTTPServer, ServerConfig
from staticserver.http import HTTPRequest, HTTPResponse
from staticserver.pipeline import RequestPipeline


# 1x1 transparent PNG
PNG_BYTES = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6360000002000154a24f5d0000000049454e44ae426082"
)

CSS_TEXT = "body { color: #333; }\n" * 200


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """
    A small site tree:

        hello.txt
        style.css
        logo.png
        docs/index.html
        files/a.txt
        files/b b.txt
        files/sub/
        empty/
    """
    root = tmp_path / "site"
    root.mkdir()
    (root / "hello.txt").write_text("hello world\n")
    (root / "style.css").write_text(CSS_TEXT)
    (root / "logo.png").write_bytes(PNG_BYTES)

    (root / "docs").mkdir()
    (root / "docs" / "index.html").write_text("<h1>Docs</h1>")

    (root / "files").mkdir()
    (root / "files" / "a.txt").write_text("a" * 2048)
    (root / "files" / "b b.txt").write_text("b")
    (root / "files" / "sub").mkdir()

    (root / "empty").mkdir()
    return root


@pytest.fixture
def config(site: Path) -> ServerConfig:
    """Test configuration serving the site tree."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        root_directory=str(site),
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=1.0,
        log_level="WARNING",
    )


@pytest.fixture
def pipeline(config: ServerConfig) -> RequestPipeline:
    """Pipeline with the echo mock handler registered."""
    return RequestPipeline(config, mock_handler=EchoMockHandler())


def make_request(
    method: str = "GET",
    target: str = "/",
    headers: Optional[Dict[str, str]] = None,
    body: bytes = b"",
) -> HTTPRequest:
    """Build an HTTPRequest directly (header names lowercased like the parser does)."""
    all_headers = {"host": "localhost:3000"}
    all_headers.update({k.lower(): v for k, v in (headers or {}).items()})
    if body:
        all_headers["content-length"] = str(len(body))
    return HTTPRequest(
        method=method,
        target=target,
        headers=all_headers,
        body=body,
        client_address=("127.0.0.1", 50000),
    )


def drain(response: HTTPResponse) -> bytes:
    """Payload bytes of a response (stream consumed and closed, no chunk framing)."""
    if response.stream is None:
        return response.body
    try:
        return b"".join(response.stream)
    finally:
        response.close()


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.port

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"banner": False},
            daemon=True,
        )
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


@pytest.fixture
def live_server(config: ServerConfig) -> Generator[TestServer, None, None]:
    """A running server on a free port, echo mock registered."""
    test_srv = TestServer(HTTPServer(config, mock_handler=EchoMockHandler()))
    test_srv.start()

    yield test_srv

    test_srv.stop()
