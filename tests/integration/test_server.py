"""
End-to-end tests against a running server over real sockets.
"""

import gzip
import http.client
import json
import socket
from dataclasses import replace

import pytest

from staticserver import EchoMockHandler, HTTPServer

from conftest import CSS_TEXT, PNG_BYTES, TestServer


@pytest.fixture
def client(live_server):
    conn = http.client.HTTPConnection("127.0.0.1", live_server.port, timeout=5)
    yield conn
    conn.close()


def raw_exchange(port: int, data: bytes) -> bytes:
    with socket.create_connection(("127.0.0.1", port), timeout=5) as sock:
        sock.sendall(data)
        chunks = []
        while True:
            chunk = sock.recv(65536)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


class TestStaticFiles:
    def test_get_file(self, client):
        client.request("GET", "/hello.txt")
        response = client.getresponse()

        assert response.status == 200
        assert response.getheader("Content-Type") == "text/plain; charset=utf-8"
        assert response.getheader("Content-Length") == "12"
        assert response.getheader("Server") == "StaticServer/1.0"
        assert response.read() == b"hello world\n"

    def test_binary_file(self, client):
        client.request("GET", "/logo.png")
        response = client.getresponse()

        assert response.read() == PNG_BYTES

    def test_not_found(self, client):
        client.request("GET", "/nope.txt")
        response = client.getresponse()

        assert response.status == 404
        assert response.read() == b"Not Found"

    def test_head_has_headers_only(self, client):
        client.request("HEAD", "/hello.txt")
        response = client.getresponse()

        assert response.status == 200
        assert response.getheader("Content-Length") == "12"
        assert response.read() == b""

    def test_listing(self, client):
        client.request("GET", "/files/")
        response = client.getresponse()
        page = response.read().decode()

        assert response.status == 200
        assert 'href="/files/b%20b.txt"' in page


class TestCachingAndCompression:
    def test_revalidation(self, client):
        client.request("GET", "/style.css")
        first = client.getresponse()
        first.read()

        client.request("GET", "/style.css", headers={
            "If-Modified-Since": first.getheader("Last-Modified"),
            "If-None-Match": first.getheader("ETag"),
        })
        second = client.getresponse()

        assert second.status == 304
        assert second.read() == b""
        assert second.getheader("Content-Length") is None

    def test_revalidation_with_gzip_accepted(self, client):
        client.request("GET", "/style.css", headers={"Accept-Encoding": "gzip"})
        first = client.getresponse()
        first.read()

        client.request("GET", "/style.css", headers={
            "Accept-Encoding": "gzip",
            "If-Modified-Since": first.getheader("Last-Modified"),
            "If-None-Match": first.getheader("ETag"),
        })
        second = client.getresponse()

        assert second.status == 304
        assert second.read() == b""
        assert second.getheader("Content-Encoding") is None
        assert second.getheader("Transfer-Encoding") is None

    def test_gzip_chunked(self, client):
        client.request("GET", "/style.css", headers={"Accept-Encoding": "gzip"})
        response = client.getresponse()

        assert response.getheader("Content-Encoding") == "gzip"
        assert response.getheader("Transfer-Encoding") == "chunked"
        assert gzip.decompress(response.read()) == CSS_TEXT.encode()


class TestConnections:
    def test_keep_alive_reuses_socket(self, client):
        client.request("GET", "/hello.txt")
        first = client.getresponse()
        first.read()
        sock = client.sock

        client.request("GET", "/files/a.txt")
        second = client.getresponse()

        assert first.getheader("Connection") == "keep-alive"
        assert second.read() == b"a" * 2048
        assert client.sock is sock

    def test_connection_close(self, live_server):
        data = raw_exchange(
            live_server.port,
            b"GET /hello.txt HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n",
        )

        assert data.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"Connection: close\r\n" in data
        assert data.endswith(b"\r\n\r\nhello world\n")

    def test_garbage_is_400(self, live_server):
        data = raw_exchange(live_server.port, b"NOT HTTP AT ALL\r\n\r\n")

        assert data.startswith(b"HTTP/1.1 400")

    def test_oversized_request_is_413(self, config):
        server = TestServer(HTTPServer(replace(config, max_request_size=1024), EchoMockHandler()))
        server.start()
        try:
            data = raw_exchange(
                server.port,
                b"POST /mock/user HTTP/1.1\r\nHost: x\r\nContent-Length: 4096\r\n\r\n",
            )
        finally:
            server.stop()

        assert data.startswith(b"HTTP/1.1 413")


class TestMockAndCors:
    def test_echo_get(self, client):
        client.request("GET", "/mock/user?name=x")
        response = client.getresponse()

        assert response.status == 200
        assert json.loads(response.read()) == {"name": "x"}

    def test_echo_post(self, client):
        client.request(
            "POST", "/mock/user?id=7",
            body=json.dumps({"role": "admin"}),
            headers={"Content-Type": "application/json"},
        )
        response = client.getresponse()

        assert json.loads(response.read()) == {"role": "admin", "id": "7"}

    def test_preflight(self, client):
        client.request("OPTIONS", "/mock/user", headers={"Origin": "http://app.test"})
        response = client.getresponse()

        assert response.status == 204
        assert response.getheader("Access-Control-Allow-Origin") == "http://app.test"
        assert response.read() == b""
